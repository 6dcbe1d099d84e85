"""Reservation lifecycle: create, edit, cancel.

Each mutation runs as one database transaction covering the reservation rows,
the guest counter, room-status transitions and the outbox records for the
resulting broadcasts/notifications. Side effects are delivered only after the
transaction commits (see :mod:`hotelpms.services.outbox`).
"""
import logging
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from .. import errors
from ..models import Branch, Guest, Room, RoomStatus, Reservation, ReservationRoom, ReservationStatus, TaxApplicationType
from ..models.reservation import LOCKED_STATUSES
from ..permissions import RequestContext, require_branch, require_permission, resolve_target_branch
from ..schemas import ReservationCreateIn, ReservationFieldsUpdateIn, ReservationPatchIn, ReservationRoomIn
from . import outbox
from .guests import resolve_guest, update_guest
from .rooms import billable_nights, find_conflicts, lock_rooms, room_status_for, set_room_status, stays_overlap
from .taxes import compute_taxes, recompute_from_snapshot, to_money

logger = logging.getLogger(__name__)

CONFIRMATION_PREFIX = "RES"
_SUFFIX_SPACE = 10 ** 8

# Status changes that notify staff, keyed to the notification kind
_STATUS_NOTIFICATIONS = {
    ReservationStatus.CHECKED_IN.value: "check_in",
    ReservationStatus.CHECKED_OUT.value: "check_out",
}

# A reservation starts pending or confirmed, or checked-in for a walk-in
_INITIAL_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.CHECKED_IN.value,
)


def generate_confirmation_number(db: Session, now_ms: Optional[int] = None) -> str:
    """``RES`` + the last eight digits of the millisecond clock, bumped until unused."""
    stamp = int(now_ms if now_ms is not None else time.time() * 1000) % _SUFFIX_SPACE
    for _ in range(1000):
        candidate = f"{CONFIRMATION_PREFIX}{stamp:08d}"
        taken = db.query(Reservation.id).filter(Reservation.confirmation_number == candidate).first()
        if not taken:
            return candidate
        stamp = (stamp + 1) % _SUFFIX_SPACE
    raise errors.PersistenceError("Could not allocate a confirmation number")


def line_values(room_in: ReservationRoomIn) -> dict:
    """Column values for a reservation-room row; a missing line total is rate x billable nights."""
    nights = billable_nights(room_in.check_in_date, room_in.check_out_date)
    total = room_in.total_amount
    if total is None:
        total = room_in.rate_per_night * nights
    return {
        "room_id": room_in.room_id,
        "check_in_date": room_in.check_in_date,
        "check_out_date": room_in.check_out_date,
        "adults": room_in.adults,
        "children": room_in.children,
        "rate_per_night": to_money(room_in.rate_per_night),
        "total_amount": to_money(total),
        "special_requests": room_in.special_requests or "",
    }


def _with_details(q):
    return q.options(
        joinedload(Reservation.guest),
        selectinload(Reservation.reservation_rooms).joinedload(ReservationRoom.room).joinedload(Room.room_type),
    )


def get_reservation(db: Session, reservation_id: str) -> Reservation:
    reservation = _with_details(db.query(Reservation)).filter(Reservation.id == reservation_id).first()
    if not reservation:
        raise errors.NotFoundError("Reservation not found")
    return reservation


def list_reservations(db: Session, branch_id: Optional[int] = None) -> list[Reservation]:
    q = _with_details(db.query(Reservation))
    if branch_id:
        q = q.filter(Reservation.branch_id == branch_id)
    return q.order_by(Reservation.created_at.desc()).all()


def fetch_reservation(db: Session, ctx: RequestContext, reservation_id: str) -> Reservation:
    require_permission(ctx, "reservations", "read", "You do not have permission to view reservations")
    reservation = get_reservation(db, reservation_id)
    require_branch(ctx, reservation.branch_id)
    return reservation


def assert_editable(reservation: Reservation) -> None:
    if reservation.status in LOCKED_STATUSES:
        raise errors.EditForbiddenError()


def _summary(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "confirmationNumber": reservation.confirmation_number,
        "branchId": reservation.branch_id,
        "status": reservation.status,
    }


def _notification_payload(reservation: Reservation) -> dict:
    guest = reservation.guest
    first = reservation.reservation_rooms[0] if reservation.reservation_rooms else None
    room = first.room if first else None
    return {
        "reservationId": reservation.id,
        "confirmationNumber": reservation.confirmation_number,
        "branchName": reservation.branch.name if reservation.branch else None,
        "guestName": " ".join(p for p in (guest.first_name, guest.last_name) if p) if guest else None,
        "guestPhone": guest.phone if guest else None,
        "roomNumber": room.number if room else None,
        "roomType": room.room_type.name if room and room.room_type else None,
        "checkInDate": first.check_in_date if first else None,
        "checkOutDate": first.check_out_date if first else None,
        "totalAmount": reservation.total_amount,
    }


def _check_payload_overlaps(rooms_in: list[ReservationRoomIn]) -> None:
    """The same room may not appear twice in one request with overlapping dates."""
    for i, a in enumerate(rooms_in):
        for b in rooms_in[i + 1:]:
            if a.room_id == b.room_id and stays_overlap(a.check_in_date, a.check_out_date, b.check_in_date, b.check_out_date):
                raise errors.ConflictError(f"Room {a.room_id} is booked twice for overlapping dates")


def _check_rooms(rooms: dict[int, Room], rooms_in: list[ReservationRoomIn], branch_id: int) -> None:
    for r in rooms_in:
        room = rooms.get(r.room_id)
        if not room or not room.is_active:
            raise errors.NotFoundError(f"Room {r.room_id} not found")
        if room.branch_id != branch_id:
            raise errors.ValidationError(f"Room {room.number} does not belong to this branch")


def _check_availability(db: Session, rooms: dict[int, Room], rooms_in: list[ReservationRoomIn],
                        exclude_reservation_id: Optional[str] = None) -> None:
    for r in rooms_in:
        clash = find_conflicts(db, r.room_id, r.check_in_date, r.check_out_date, exclude_reservation_id)
        if clash:
            other = clash[0]
            raise errors.ConflictError(
                f"Room {rooms[r.room_id].number} is already reserved from "
                f"{other.check_in_date.isoformat()} to {other.check_out_date.isoformat()}"
            )


def _run_transaction(db: Session, work, what: str):
    try:
        result = work()
        db.commit()
        return result
    except errors.PMSError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to %s", what)
        raise errors.PersistenceError(f"Failed to {what}") from e


# ==== Create ====

def create_reservation(db: Session, ctx: RequestContext, payload: ReservationCreateIn) -> Reservation:
    require_permission(ctx, "reservations", "write", "You do not have permission to create reservations")
    branch_id = resolve_target_branch(ctx, payload.reservation.branch_id)
    if not branch_id:
        raise errors.ValidationError("reservation.branchId is required")
    branch = db.get(Branch, branch_id)
    if not branch or not branch.is_active:
        raise errors.NotFoundError("Branch not found")
    if payload.reservation.status.value not in _INITIAL_STATUSES:
        raise errors.ValidationError(f"A reservation cannot be created as {payload.reservation.status.value}")
    _check_payload_overlaps(payload.rooms)

    def work() -> Reservation:
        rooms = lock_rooms(db, [r.room_id for r in payload.rooms])
        _check_rooms(rooms, payload.rooms, branch_id)
        _check_availability(db, rooms, payload.rooms)

        guest, created = resolve_guest(db, payload.guest, branch_id)
        lines = [line_values(r) for r in payload.rooms]
        subtotal = sum((line["total_amount"] for line in lines), Decimal("0"))
        taxes = compute_taxes(db, subtotal, TaxApplicationType.RESERVATION.value)
        fields = payload.reservation

        reservation = Reservation(
            id=str(uuid.uuid4()),
            confirmation_number=generate_confirmation_number(db),
            branch_id=branch_id,
            guest_id=guest.id,
            status=fields.status.value,
            total_amount=to_money(subtotal + taxes.total_tax),
            tax_amount=taxes.total_tax,
            paid_amount=to_money(fields.paid_amount),
            applied_taxes=taxes.breakdown,
            notes=fields.notes,
            created_by_id=ctx.user_id,
        )
        reservation.branch = branch
        reservation.guest = guest
        walk_in = reservation.status == ReservationStatus.CHECKED_IN.value
        now = datetime.utcnow()
        for line in lines:
            rr = ReservationRoom(**line)
            rr.room = rooms[line["room_id"]]
            if walk_in:
                rr.actual_check_in = now
            reservation.reservation_rooms.append(rr)
        db.add(reservation)
        guest.reservation_count = Guest.reservation_count + 1

        room_status = room_status_for(reservation.status)
        for room in rooms.values():
            set_room_status(db, room, room_status)

        outbox.enqueue_broadcast(db, "reservations", "created", _summary(reservation))
        outbox.enqueue_notification(db, "reservation_created", _notification_payload(reservation))
        logger.info(
            "Reservation %s (%s) created in branch %s by user %s: %s room(s), subtotal %s, tax %s, total %s%s",
            reservation.confirmation_number, reservation.id, branch_id, ctx.user_id, len(lines),
            to_money(subtotal), taxes.total_tax, reservation.total_amount, " (new guest)" if created else "",
        )
        return reservation

    reservation = _run_transaction(db, work, "create reservation")
    outbox.dispatch_pending(db)
    return get_reservation(db, reservation.id)


# ==== Update ====

def _apply_fields(reservation: Reservation, fields: ReservationFieldsUpdateIn) -> None:
    data = fields.model_dump(exclude_unset=True)
    if data.get("status") is not None:
        reservation.status = ReservationStatus(data.pop("status")).value
    for key in ("paid_amount", "total_amount", "tax_amount"):
        if data.get(key) is not None:
            setattr(reservation, key, to_money(data.pop(key)))
    if "notes" in data:
        reservation.notes = data["notes"]


def _cascade_status(db: Session, reservation: Reservation) -> None:
    """Move every room of the reservation to the status its new reservation status implies."""
    room_status = room_status_for(reservation.status)
    rooms = lock_rooms(db, [rr.room_id for rr in reservation.reservation_rooms])
    now = datetime.utcnow()
    for rr in reservation.reservation_rooms:
        set_room_status(db, rooms[rr.room_id], room_status)
        if reservation.status == ReservationStatus.CHECKED_IN.value and rr.actual_check_in is None:
            rr.actual_check_in = now
        elif reservation.status == ReservationStatus.CHECKED_OUT.value and rr.actual_check_out is None:
            rr.actual_check_out = now
    kind = _STATUS_NOTIFICATIONS.get(reservation.status)
    if kind and reservation.reservation_rooms:
        outbox.enqueue_notification(db, kind, _notification_payload(reservation))


def _reprice(reservation: Reservation) -> None:
    subtotal = sum((rr.total_amount for rr in reservation.reservation_rooms), Decimal("0"))
    taxes = recompute_from_snapshot(subtotal, reservation.applied_taxes)
    reservation.applied_taxes = taxes.breakdown
    reservation.tax_amount = taxes.total_tax
    reservation.total_amount = to_money(subtotal + taxes.total_tax)


def _reconcile_rooms(db: Session, reservation: Reservation, rooms_in: list[ReservationRoomIn]) -> None:
    """Make the reservation's rooms match ``rooms_in``: removals first, then updates and inserts."""
    existing = {rr.id: rr for rr in reservation.reservation_rooms}
    incoming_ids = {r.id for r in rooms_in if r.id}
    unknown = incoming_ids - existing.keys()
    if unknown:
        raise errors.NotFoundError(f"Reservation room {min(unknown)} not found")
    _check_payload_overlaps(rooms_in)

    wanted_room_ids = {r.room_id for r in rooms_in}
    rooms = lock_rooms(db, [rr.room_id for rr in existing.values()] + list(wanted_room_ids))
    _check_rooms(rooms, rooms_in, reservation.branch_id)
    _check_availability(db, rooms, rooms_in, exclude_reservation_id=reservation.id)

    for rr_id, rr in existing.items():
        if rr_id in incoming_ids:
            continue
        reservation.reservation_rooms.remove(rr)
        db.delete(rr)
        if rr.room_id not in wanted_room_ids:
            set_room_status(db, rooms[rr.room_id], "available")
    db.flush()

    hold_status = room_status_for(reservation.status)
    for r in rooms_in:
        values = line_values(r)
        if r.id:
            rr = existing[r.id]
            previous_room_id = rr.room_id
            for key, value in values.items():
                setattr(rr, key, value)
            if previous_room_id != r.room_id:
                rr.room = rooms[r.room_id]
                if previous_room_id not in wanted_room_ids:
                    set_room_status(db, rooms[previous_room_id], "available")
                set_room_status(db, rooms[r.room_id], hold_status)
        else:
            rr = ReservationRoom(**values)
            rr.room = rooms[r.room_id]
            reservation.reservation_rooms.append(rr)
            set_room_status(db, rooms[r.room_id], RoomStatus.RESERVED.value)


def _apply_comprehensive(db: Session, reservation: Reservation, payload: ReservationPatchIn) -> None:
    if payload.guest is not None and reservation.guest is not None:
        update_guest(db, reservation.guest, payload.guest)

    previous_status = reservation.status
    fields = payload.reservation
    if fields is not None:
        _apply_fields(reservation, fields)

    if payload.rooms is not None:
        _reconcile_rooms(db, reservation, payload.rooms)
        explicit_totals = fields is not None and (fields.total_amount is not None or fields.tax_amount is not None)
        if not explicit_totals:
            _reprice(reservation)

    if reservation.status != previous_status:
        _cascade_status(db, reservation)


def _apply_status_only(db: Session, reservation: Reservation, fields: ReservationFieldsUpdateIn) -> None:
    previous_status = reservation.status
    _apply_fields(reservation, fields)
    if reservation.status != previous_status:
        _cascade_status(db, reservation)


def update_reservation(db: Session, ctx: RequestContext, reservation_id: str, payload: ReservationPatchIn) -> Reservation:
    reservation = get_reservation(db, reservation_id)
    # Terminal reservations are immutable for every role
    assert_editable(reservation)
    require_permission(ctx, "reservations", "write", "You do not have permission to update reservations")
    require_branch(ctx, reservation.branch_id)

    def work() -> None:
        previous_status = reservation.status
        if payload.is_comprehensive:
            _apply_comprehensive(db, reservation, payload)
        else:
            _apply_status_only(db, reservation, payload.flat_fields())
        reservation.updated_at = datetime.utcnow()
        outbox.enqueue_broadcast(db, "reservations", "updated", _summary(reservation))
        logger.info("Reservation %s updated by user %s (%s, status %s -> %s)",
                    reservation.id, ctx.user_id, "comprehensive" if payload.is_comprehensive else "status-only",
                    previous_status, reservation.status)

    _run_transaction(db, work, "update reservation")
    outbox.dispatch_pending(db)
    db.expire_all()
    return get_reservation(db, reservation_id)


# ==== Cancel ====

def cancel_reservation(db: Session, ctx: RequestContext, reservation_id: str) -> Reservation:
    """Soft-cancel: the reservation is kept for history and its rooms are released."""
    reservation = get_reservation(db, reservation_id)
    require_permission(ctx, "reservations", "delete", "You do not have permission to delete reservations")
    require_branch(ctx, reservation.branch_id)
    assert_editable(reservation)

    def work() -> None:
        reservation.status = ReservationStatus.CANCELLED.value
        reservation.updated_at = datetime.utcnow()
        _cascade_status(db, reservation)
        outbox.enqueue_broadcast(db, "reservations", "deleted", {"id": reservation.id})
        logger.info("Reservation %s cancelled by user %s", reservation.id, ctx.user_id)

    _run_transaction(db, work, "cancel reservation")
    outbox.dispatch_pending(db)
    return reservation
