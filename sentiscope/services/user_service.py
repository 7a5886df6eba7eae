from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from sentiscope.errors import AppError
from sentiscope.services.auth_service import serialize_user
from sentiscope.services.db_service import User, get_session


def _find_active(session, user_id: str) -> User:
    user = session.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if not user:
        raise AppError("User not found", 404)
    return user


def get_profile(user_id: str) -> dict:
    with get_session() as session:
        return serialize_user(_find_active(session, user_id))


def update_profile(
    user_id: str,
    *,
    name: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
) -> dict:
    try:
        with get_session() as session:
            user = _find_active(session, user_id)
            if email is not None:
                email = email.lower()
                taken = (
                    session.query(User)
                    .filter(User.email == email, User.id != user_id, User.deleted_at.is_(None))
                    .first()
                )
                if taken:
                    raise AppError("Email already registered", 400)
                user.email = email
            if name is not None:
                user.name = name
            if first_name is not None:
                user.first_name = first_name
            if last_name is not None:
                user.last_name = last_name
            user.updated_at = datetime.utcnow()
            session.flush()
            return serialize_user(user)
    except IntegrityError:
        # soft-deleted accounts keep their email
        raise AppError("Email already registered", 400)


def delete_account(user_id: str) -> None:
    """Soft delete: the row stays, every lookup skips it from now on."""
    with get_session() as session:
        user = _find_active(session, user_id)
        now = datetime.utcnow()
        user.deleted_at = now
        user.updated_at = now
