import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import errors
from ..models import Branch, Guest, User, UserRole
from ..permissions import RequestContext, require_role
from ..schemas import BranchIn, BranchUpdateIn
from . import outbox
from .guests import validate_email, validate_phone

logger = logging.getLogger(__name__)


def _validate_contact(data: dict) -> None:
    if data.get("phone") and not validate_phone(data["phone"]):
        raise errors.ValidationError("Invalid phone format")
    if data.get("email") and not validate_email(data["email"]):
        raise errors.ValidationError("Invalid email format")


def list_branches(db: Session, ctx: RequestContext) -> list[Branch]:
    """Superadmins see every branch; everyone else only their own, and only while it is active."""
    if ctx.role == UserRole.SUPERADMIN:
        return db.query(Branch).order_by(Branch.name.asc()).all()
    if not ctx.branch_id:
        return []
    return (
        db.query(Branch)
        .filter(Branch.id == ctx.branch_id, Branch.is_active == True)  # noqa: E712
        .all()
    )


def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id)
    if not branch:
        raise errors.NotFoundError("Branch not found")
    return branch


def create_branch(db: Session, ctx: RequestContext, payload: BranchIn) -> Branch:
    require_role(ctx, UserRole.SUPERADMIN)
    _validate_contact(payload.model_dump())
    branch = Branch(**payload.model_dump())
    db.add(branch)
    db.flush()
    outbox.enqueue_broadcast(db, "branches", "created", {"id": branch.id})
    db.commit()
    db.refresh(branch)
    logger.info("Branch %s (%s) created by user %s", branch.id, branch.name, ctx.user_id)
    outbox.dispatch_pending(db)
    return branch


def update_branch(db: Session, ctx: RequestContext, branch_id: int, payload: BranchUpdateIn) -> Branch:
    require_role(ctx, UserRole.SUPERADMIN)
    branch = get_branch(db, branch_id)
    data = payload.model_dump(exclude_unset=True)
    _validate_contact(data)
    for key, value in data.items():
        if key in ("name", "is_active") and value is None:
            continue
        setattr(branch, key, value)
    outbox.enqueue_broadcast(db, "branches", "updated", {"id": branch.id})
    db.commit()
    db.refresh(branch)
    outbox.dispatch_pending(db)
    return branch


def delete_branch(db: Session, ctx: RequestContext, branch_id: int) -> dict:
    """Two-phase delete.

    The first call on an active branch only deactivates it. A call on an
    already inactive branch removes it together with its rooms, room types and
    reservations; staff and guests keep their records with the branch cleared.
    """
    require_role(ctx, UserRole.SUPERADMIN)
    branch = get_branch(db, branch_id)

    if branch.is_active:
        branch.is_active = False
        outbox.enqueue_broadcast(db, "branches", "updated", {"id": branch.id, "isActive": False})
        db.commit()
        logger.info("Branch %s deactivated by user %s", branch_id, ctx.user_id)
        outbox.dispatch_pending(db)
        return {"action": "deactivated", "message": "Branch deactivated. Delete again to remove it permanently."}

    try:
        db.query(User).filter(User.branch_id == branch_id).update({User.branch_id: None}, synchronize_session=False)
        db.query(Guest).filter(Guest.branch_id == branch_id).update({Guest.branch_id: None}, synchronize_session=False)
        db.delete(branch)
        outbox.enqueue_broadcast(db, "branches", "deleted", {"id": branch_id})
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to delete branch %s", branch_id)
        raise errors.PersistenceError("Failed to delete branch") from e
    logger.info("Branch %s permanently deleted by user %s", branch_id, ctx.user_id)
    outbox.dispatch_pending(db)
    return {"action": "deleted", "message": "Branch permanently deleted."}
