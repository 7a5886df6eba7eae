from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from sentiscope.errors import AppError
from sentiscope.services import auth_service

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AppError("Access token required", 401)
    payload = auth_service.decode_access_token(token)
    if payload is None:
        raise AppError("Invalid token", 401)
    try:
        return auth_service.get_user_by_id(payload["userId"])
    except AppError:
        raise AppError("Invalid token", 401)
