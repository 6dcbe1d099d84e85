import logging
import re
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import errors
from ..config import settings
from ..models import Guest
from ..schemas import GuestIn, GuestOut, GuestUpdateIn

logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(r"^\+?[\d\s\-().]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def phone_digits(phone: str | None) -> str:
    """Digits-only form of a phone number, used as the dedup key."""
    return re.sub(r"\D", "", phone or "")


def validate_phone(phone: str) -> bool:
    if not _PHONE_RE.match(phone.strip()):
        return False
    return 7 <= len(phone_digits(phone)) <= 15


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email.strip()))


def _validate_contact(phone: str | None, email: str | None):
    if phone and not validate_phone(phone):
        raise errors.ValidationError("Invalid phone format")
    if email and not validate_email(email):
        raise errors.ValidationError("Invalid email format")


def find_by_phone(db: Session, phone: str | None, exclude_id: int | None = None) -> Optional[Guest]:
    """Active guest whose phone matches ignoring punctuation and spacing."""
    digits = phone_digits(phone)
    if not digits:
        return None
    q = db.query(Guest).filter(Guest.phone_digits == digits, Guest.is_active == True)  # noqa: E712
    if exclude_id is not None:
        q = q.filter(Guest.id != exclude_id)
    return q.order_by(Guest.created_at.asc(), Guest.id.asc()).first()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_guest(db: Session, guest_id: int) -> Guest:
    guest = db.get(Guest, guest_id)
    if not guest:
        raise errors.NotFoundError("Guest not found")
    return guest


def list_guests(db: Session) -> list[Guest]:
    return db.query(Guest).order_by(Guest.created_at.desc(), Guest.id.desc()).all()


def search_guests(db: Session, query: str, limit: int | None = None) -> list[Guest]:
    """Case-insensitive substring search over name, phone and email across all branches."""
    query = (query or "").strip()
    if not query:
        return []
    pattern = f"%{_escape_like(query.lower())}%"
    return (
        db.query(Guest)
        .filter(
            Guest.is_active == True,  # noqa: E712
            or_(
                Guest.first_name.ilike(pattern, escape="\\"),
                Guest.last_name.ilike(pattern, escape="\\"),
                Guest.phone.ilike(pattern, escape="\\"),
                Guest.email.ilike(pattern, escape="\\"),
            ),
        )
        .order_by(Guest.created_at.desc(), Guest.id.desc())
        .limit(limit or settings.GUEST_SEARCH_LIMIT)
        .all()
    )


def create_guest(db: Session, payload: GuestIn, branch_id: int | None = None) -> Guest:
    """Add a guest to the session (flushed, not committed) with a zero reservation count."""
    _validate_contact(payload.phone, payload.email)
    guest = Guest(
        **payload.model_dump(),
        phone_digits=phone_digits(payload.phone) or None,
        branch_id=branch_id,
        reservation_count=0,
        is_active=True,
    )
    db.add(guest)
    db.flush()
    return guest


def register_guest(db: Session, payload: GuestIn, branch_id: int | None = None) -> Guest:
    """Explicit guest registration; a known phone number surfaces the existing record."""
    existing = find_by_phone(db, payload.phone)
    if existing:
        raise errors.ConflictError(
            "Guest with this phone number already exists",
            extra={"guest": guest_payload(existing)},
        )
    guest = create_guest(db, payload, branch_id)
    db.commit()
    db.refresh(guest)
    logger.info("Guest %s registered", guest.id)
    return guest


def resolve_guest(db: Session, payload: GuestIn, branch_id: int | None) -> tuple[Guest, bool]:
    """Reuse the guest owning this phone number or create one; returns (guest, created)."""
    existing = find_by_phone(db, payload.phone)
    if existing:
        return existing, False
    return create_guest(db, payload, branch_id), True


def update_guest(db: Session, guest: Guest, payload: GuestUpdateIn) -> Guest:
    data = payload.model_dump(exclude_unset=True, exclude={"id"})
    _validate_contact(data.get("phone"), data.get("email"))
    phone = data["phone"] if "phone" in data else guest.phone
    reactivating = data.get("is_active") is True and not guest.is_active
    stays_active = data.get("is_active") is not False and guest.is_active
    # At most one active guest per phone number
    if ("phone" in data and stays_active) or reactivating:
        other = find_by_phone(db, phone, exclude_id=guest.id)
        if other:
            raise errors.ConflictError(
                "Guest with this phone number already exists",
                extra={"guest": guest_payload(other)},
            )
    for key, value in data.items():
        if key in ("first_name", "is_active") and value is None:
            continue
        setattr(guest, key, value)
    if "phone" in data:
        guest.phone_digits = phone_digits(guest.phone) or None
    return guest


def deactivate_guest(db: Session, guest: Guest) -> None:
    guest.is_active = False
    db.commit()
    logger.info("Guest %s deactivated", guest.id)


def guest_payload(guest: Guest) -> dict:
    return GuestOut.model_validate(guest).model_dump(mode="json", by_alias=True)


def edit_guest(db: Session, guest: Guest, payload: GuestUpdateIn) -> Guest:
    update_guest(db, guest, payload)
    db.commit()
    db.refresh(guest)
    return guest
