import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from .. import errors
from ..config import settings
from ..db import get_db
from ..limiter import limiter
from ..models import User
from ..schemas import LoginIn, UserOut
from ..security import clear_session, require_user, set_session, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=UserOut)
@limiter.limit(settings.RATE_LIMIT_AUTH_API)
def api_login(request: Request, payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active or not verify_password(payload.password, user.hashed_password):
        logger.warning("Failed login for %s", email)
        raise errors.NotAuthenticatedError("Invalid email or password")
    set_session(response, user.id)
    logger.info("User %s logged in", user.id)
    return user


@router.post("/logout")
def api_logout(response: Response):
    clear_session(response)
    return {"ok": True}


@router.get("/user", response_model=UserOut)
def api_current_user(user: User = Depends(require_user)):
    return user
