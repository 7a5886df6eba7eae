from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sentiscope.dependencies import get_current_user
from sentiscope.services import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[EmailStr] = None


@router.get("/profile")
def get_profile(user: dict = Depends(get_current_user)):
    profile = user_service.get_profile(user["id"])
    return {"success": True, "message": "Profile retrieved successfully", "data": profile}


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user)):
    profile = user_service.update_profile(user["id"], **payload.model_dump(exclude_unset=True))
    return {"success": True, "message": "Profile updated successfully", "data": profile}


@router.delete("/account")
def delete_account(user: dict = Depends(get_current_user)):
    user_service.delete_account(user["id"])
    return {"success": True, "message": "Account deleted successfully"}
