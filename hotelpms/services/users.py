import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import errors
from ..models import Branch, User, UserRole
from ..permissions import RequestContext, require_role
from ..schemas import UserCreateIn, UserUpdateIn
from ..security import hash_password

logger = logging.getLogger(__name__)


def _check_branch(db: Session, branch_id):
    if branch_id is not None and not db.get(Branch, branch_id):
        raise errors.ValidationError("Branch not found")


def list_users(db: Session, ctx: RequestContext) -> list[User]:
    require_role(ctx, UserRole.SUPERADMIN)
    return db.query(User).order_by(User.email.asc()).all()


def get_user(db: Session, ctx: RequestContext, user_id: int) -> User:
    require_role(ctx, UserRole.SUPERADMIN)
    user = db.get(User, user_id)
    if not user:
        raise errors.NotFoundError("User not found")
    return user


def _commit_unique_email(db: Session, user: User) -> User:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.ValidationError("Email already registered")
    db.refresh(user)
    return user


def create_user(db: Session, ctx: RequestContext, payload: UserCreateIn) -> User:
    require_role(ctx, UserRole.SUPERADMIN)
    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise errors.ValidationError("Email already registered")
    _check_branch(db, payload.branch_id)
    user = User(
        email=email,
        hashed_password=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role.value,
        branch_id=payload.branch_id,
        permissions=payload.permissions or {},
        is_active=True,
    )
    db.add(user)
    _commit_unique_email(db, user)
    logger.info("User %s (%s) created by user %s", user.id, user.role, ctx.user_id)
    return user


def update_user(db: Session, ctx: RequestContext, user_id: int, payload: UserUpdateIn) -> User:
    user = get_user(db, ctx, user_id)
    data = payload.model_dump(exclude_unset=True)
    password = data.pop("password", None)
    if password:
        user.hashed_password = hash_password(password)
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    if "branch_id" in data:
        _check_branch(db, data["branch_id"])
    if data.get("role") is not None:
        data["role"] = UserRole(data["role"]).value
    for key, value in data.items():
        if key in ("email", "role", "permissions", "is_active") and value is None:
            continue
        setattr(user, key, value)
    return _commit_unique_email(db, user)


def deactivate_user(db: Session, ctx: RequestContext, user_id: int) -> None:
    user = get_user(db, ctx, user_id)
    if user.id == ctx.user_id:
        raise errors.ValidationError("You cannot deactivate your own account")
    user.is_active = False
    db.commit()
    logger.info("User %s deactivated by user %s", user_id, ctx.user_id)


def ensure_default_superadmin(db: Session, email: str, password: str) -> User:
    """Make sure at least one superadmin exists, promoting ``email`` if it is already registered."""
    existing = db.query(User).filter(User.role == UserRole.SUPERADMIN.value).first()
    if existing:
        return existing
    user = db.query(User).filter(User.email == email).first()
    if user:
        user.role = UserRole.SUPERADMIN.value
        user.is_active = True
    else:
        user = User(email=email, hashed_password=hash_password(password), role=UserRole.SUPERADMIN.value)
        db.add(user)
    db.commit()
    return user
