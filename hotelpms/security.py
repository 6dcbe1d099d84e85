from typing import Optional
from passlib.context import CryptContext
from itsdangerous import URLSafeSerializer, BadSignature
from fastapi import Request, Response, Depends
from sqlalchemy.orm import Session

from . import errors
from .config import settings
from .db import get_db
from .models import User, UserRole
from .permissions import RequestContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
serializer = URLSafeSerializer(settings.SECRET_KEY, salt="hotelpms-session")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def session_token(user_id: int) -> str:
    return serializer.dumps({"uid": user_id})


def set_session(response: Response, user_id: int):
    is_production = getattr(settings, "ENVIRONMENT", "development") == "production"
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_token(user_id),
        httponly=True,
        samesite="lax",
        secure=is_production,
        path="/",
        max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 60 * 60
    )


def clear_session(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


def get_current_user_id(request: Request) -> Optional[int]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        data = serializer.loads(token)
        return int(data.get("uid"))
    except (BadSignature, ValueError, TypeError):
        return None


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Dependency to protect routes that require a logged-in user.
    Responds 401 if the session is missing, invalid, or points at an inactive user.
    """
    user_id = get_current_user_id(request)
    if not user_id:
        raise errors.NotAuthenticatedError()

    user = db.get(User, user_id)
    if not user or not user.is_active:
        # The user was removed or deactivated but the cookie remains.
        raise errors.NotAuthenticatedError("User not found")

    return user


def context_for(user: User) -> RequestContext:
    return RequestContext(
        user_id=user.id,
        role=UserRole(user.role),
        branch_id=user.branch_id,
        permissions=dict(user.permissions or {}),
    )


def get_context(user: User = Depends(require_user)) -> RequestContext:
    return context_for(user)
