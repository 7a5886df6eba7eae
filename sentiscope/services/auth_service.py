import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from sentiscope import config
from sentiscope.errors import AppError
from sentiscope.services.db_service import User, get_session

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "isActive": user.is_active,
        "emailVerified": user.email_verified,
        "avatarUrl": user.avatar_url,
        "lastLoginAt": user.last_login_at.isoformat() if user.last_login_at else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


def _encode(payload: dict, secret: str, expires_delta: timedelta, token_type: str) -> str:
    to_encode = payload.copy()
    to_encode.update({"type": token_type, "exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=config.JWT_ALGORITHM)


def generate_tokens(user: User) -> Dict[str, str]:
    payload = {"userId": user.id, "email": user.email, "role": user.role}
    return {
        "accessToken": _encode(
            payload, config.JWT_SECRET, timedelta(minutes=config.JWT_EXPIRES_MINUTES), "access"
        ),
        "refreshToken": _encode(
            payload, config.JWT_REFRESH_SECRET, timedelta(days=config.JWT_REFRESH_EXPIRES_DAYS), "refresh"
        ),
    }


def decode_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access" or not payload.get("userId"):
        return None
    return payload


def _active_user_query(session, **filters):
    return session.query(User).filter_by(**filters).filter(User.deleted_at.is_(None))


def _display_name(name: Optional[str], first_name: Optional[str], last_name: Optional[str], email: str) -> str:
    if name:
        return name
    full = f"{first_name or ''} {last_name or ''}".strip()
    return full or email.split("@")[0]


def register(
    *,
    email: str,
    password: str,
    name: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> dict:
    email = email.lower()
    try:
        with get_session() as session:
            if _active_user_query(session, email=email).first():
                raise AppError("Email already registered", 400)
            user = User(
                email=email,
                password_hash=get_password_hash(password),
                name=_display_name(name, first_name, last_name, email),
                first_name=first_name,
                last_name=last_name,
                role="user",
                is_active=True,
                email_verified=False,
                last_login_at=datetime.utcnow(),
            )
            session.add(user)
            session.flush()
            logger.info("Registered user %s", user.id)
            return {"user": serialize_user(user), **generate_tokens(user)}
    except IntegrityError:
        # a soft-deleted account still holds the unique email
        raise AppError("Email already registered", 400)


def login(*, email: str, password: str) -> dict:
    with get_session() as session:
        user = _active_user_query(session, email=email.lower()).first()
        if not user:
            raise AppError("Invalid email or password", 401)
        if not user.is_active:
            raise AppError("Account is deactivated. Please contact support.", 403)
        if not verify_password(password, user.password_hash):
            raise AppError("Invalid email or password", 401)
        user.last_login_at = datetime.utcnow()
        session.flush()
        return {"user": serialize_user(user), **generate_tokens(user)}


def refresh_tokens(refresh_token: str) -> Dict[str, str]:
    try:
        payload = jwt.decode(refresh_token, config.JWT_REFRESH_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AppError("Invalid refresh token", 401)
    if payload.get("type") != "refresh":
        raise AppError("Invalid refresh token", 401)

    with get_session() as session:
        user = _active_user_query(session, id=payload.get("userId")).first()
        if not user:
            raise AppError("User not found", 404)
        if not user.is_active:
            raise AppError("Account is deactivated", 403)
        return generate_tokens(user)


def logout(user_id: str) -> None:
    with get_session() as session:
        user = session.get(User, user_id)
        if user:
            user.updated_at = datetime.utcnow()


def get_user_by_id(user_id: str) -> dict:
    with get_session() as session:
        user = _active_user_query(session, id=user_id).first()
        if not user:
            raise AppError("User not found", 404)
        return serialize_user(user)


def change_password(user_id: str, current_password: str, new_password: str) -> None:
    with get_session() as session:
        user = _active_user_query(session, id=user_id).first()
        if not user:
            raise AppError("User not found", 404)
        if not verify_password(current_password, user.password_hash):
            raise AppError("Current password is incorrect", 401)
        user.password_hash = get_password_hash(new_password)
        user.updated_at = datetime.utcnow()


def verify_email(user_id: str) -> None:
    with get_session() as session:
        user = _active_user_query(session, id=user_id).first()
        if not user:
            raise AppError("User not found", 404)
        now = datetime.utcnow()
        user.email_verified = True
        user.email_verified_at = now
        user.updated_at = now
