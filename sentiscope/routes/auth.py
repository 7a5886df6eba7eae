from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sentiscope.dependencies import get_current_user
from sentiscope.services import auth_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])


class RegisterPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken", min_length=1)


class ChangePasswordPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=6)


@router.post("/register", status_code=201)
def register(payload: RegisterPayload):
    result = auth_service.register(
        email=payload.email,
        password=payload.password,
        name=payload.name,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    return {"success": True, "message": "User registered successfully", "data": result}


@router.post("/login")
def login(payload: LoginPayload):
    result = auth_service.login(email=payload.email, password=payload.password)
    return {"success": True, "message": "Login successful", "data": result}


@router.post("/refresh")
def refresh(payload: RefreshPayload):
    tokens = auth_service.refresh_tokens(payload.refresh_token)
    return {"success": True, "message": "Token refreshed successfully", "data": tokens}


@router.post("/logout")
def logout(user: dict = Depends(get_current_user)):
    auth_service.logout(user["id"])
    return {"success": True, "message": "Logout successful"}


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return {"success": True, "message": "User retrieved successfully", "data": {"user": user}}


@router.post("/change-password")
def change_password(payload: ChangePasswordPayload, user: dict = Depends(get_current_user)):
    auth_service.change_password(user["id"], payload.current_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}


@router.post("/verify-email")
def verify_email(user: dict = Depends(get_current_user)):
    auth_service.verify_email(user["id"])
    return {"success": True, "message": "Email verified successfully"}
