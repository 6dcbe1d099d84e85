import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .. import errors
from ..models import Room, RoomType, RoomStatus, Reservation, ReservationRoom, ReservationStatus
from ..models.reservation import RELEASED_STATUSES
from ..schemas import RoomIn, RoomUpdateIn, RoomTypeIn, RoomTypeUpdateIn
from . import outbox

logger = logging.getLogger(__name__)

# Room status that follows each reservation status; anything unlisted holds the room.
_ROOM_STATUS_FOR_RESERVATION = {
    ReservationStatus.CHECKED_IN.value: RoomStatus.OCCUPIED.value,
    ReservationStatus.CHECKED_OUT.value: RoomStatus.AVAILABLE.value,
    ReservationStatus.CANCELLED.value: RoomStatus.AVAILABLE.value,
    ReservationStatus.CONFIRMED.value: RoomStatus.RESERVED.value,
    ReservationStatus.PENDING.value: RoomStatus.RESERVED.value,
}

# Direct edits into these states notify maintenance staff
MAINTENANCE_STATUSES = (RoomStatus.MAINTENANCE.value, RoomStatus.OUT_OF_ORDER.value)


def room_status_for(reservation_status: str) -> str:
    return _ROOM_STATUS_FOR_RESERVATION.get(reservation_status, RoomStatus.RESERVED.value)


def stay_end(check_in: date, check_out: date) -> date:
    """Exclusive end of a stay; a same-day stay still occupies one day."""
    return max(check_out, check_in + timedelta(days=1))


def billable_nights(check_in: date, check_out: date) -> int:
    return (stay_end(check_in, check_out) - check_in).days


def ranges_overlap(a: date, b: date, c: date, d: date) -> bool:
    """Half-open ranges [a, b) and [c, d) conflict iff a < d and c < b."""
    return a < d and c < b


def stays_overlap(in1: date, out1: date, in2: date, out2: date) -> bool:
    return ranges_overlap(in1, stay_end(in1, out1), in2, stay_end(in2, out2))


def set_room_status(db: Session, room: Room, status: str) -> bool:
    """Move a room to ``status`` and queue a rooms/updated broadcast; returns False if unchanged."""
    if room.status == status:
        return False
    logger.debug("Room %s: %s -> %s", room.id, room.status, status)
    room.status = status
    outbox.enqueue_broadcast(db, "rooms", "updated", {"id": room.id, "status": status})
    return True


def lock_rooms(db: Session, room_ids: Iterable[int]) -> dict[int, Room]:
    """Load rooms with a row lock (``FOR UPDATE`` where the backend supports it)."""
    ids = sorted(set(room_ids))
    if not ids:
        return {}
    rooms = db.query(Room).filter(Room.id.in_(ids)).order_by(Room.id).with_for_update().all()
    return {r.id: r for r in rooms}


def _holding_rows(db: Session, room_ids: Iterable[int], before: date) -> list[ReservationRoom]:
    """Reservation-room rows still holding any of the rooms and starting before ``before``."""
    return (
        db.query(ReservationRoom)
        .join(Reservation, ReservationRoom.reservation_id == Reservation.id)
        .filter(
            ReservationRoom.room_id.in_(list(room_ids)),
            ReservationRoom.check_in_date < before,
            Reservation.status.notin_(RELEASED_STATUSES),
        )
        .all()
    )


def find_conflicts(db: Session, room_id: int, check_in: date, check_out: date,
                   exclude_reservation_id: Optional[str] = None) -> list[ReservationRoom]:
    rows = _holding_rows(db, [room_id], stay_end(check_in, check_out))
    return [
        rr for rr in rows
        if rr.reservation_id != exclude_reservation_id
        and stays_overlap(check_in, check_out, rr.check_in_date, rr.check_out_date)
    ]


def get_available_rooms(db: Session, branch_id: int, check_in: date, check_out: date) -> list[Room]:
    """Active rooms in the branch with no held stay overlapping the requested window."""
    if check_out < check_in:
        raise errors.ValidationError("checkOut must be on or after checkIn")
    rooms = (
        db.query(Room)
        .options(joinedload(Room.room_type))
        .filter(Room.branch_id == branch_id, Room.is_active == True)  # noqa: E712
        .order_by(Room.number.asc())
        .all()
    )
    if not rooms:
        return []
    busy = {
        rr.room_id
        for rr in _holding_rows(db, [r.id for r in rooms], stay_end(check_in, check_out))
        if stays_overlap(check_in, check_out, rr.check_in_date, rr.check_out_date)
    }
    return [r for r in rooms if r.id not in busy]


# ==== Rooms ====

def list_rooms(db: Session, branch_id: Optional[int] = None, status: Optional[str] = None) -> list[Room]:
    q = db.query(Room).options(joinedload(Room.room_type))
    if branch_id:
        q = q.filter(Room.branch_id == branch_id)
    if status:
        q = q.filter(Room.status == status)
    return q.order_by(Room.number.asc()).all()


def get_room(db: Session, room_id: int) -> Room:
    room = db.get(Room, room_id)
    if not room:
        raise errors.NotFoundError("Room not found")
    return room


def _check_room_type(db: Session, room_type_id: int, branch_id: int):
    room_type = db.get(RoomType, room_type_id)
    if not room_type or not room_type.is_active:
        raise errors.ValidationError("Room type not found")
    if room_type.branch_id is not None and room_type.branch_id != branch_id:
        raise errors.ValidationError("Room type belongs to another branch")
    return room_type


def _flush_unique_number(db: Session):
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise errors.ValidationError("Room number already exists in this branch")


def create_room(db: Session, payload: RoomIn) -> Room:
    _check_room_type(db, payload.room_type_id, payload.branch_id)
    room = Room(
        branch_id=payload.branch_id,
        room_type_id=payload.room_type_id,
        number=payload.number,
        floor=payload.floor,
        status=payload.status.value,
        is_active=payload.is_active,
    )
    db.add(room)
    _flush_unique_number(db)
    outbox.enqueue_broadcast(db, "rooms", "created", {"id": room.id, "branchId": room.branch_id})
    db.commit()
    outbox.dispatch_pending(db)
    db.refresh(room)
    return room


def update_room(db: Session, room: Room, payload: RoomUpdateIn) -> Room:
    """Direct administrative edit; any status may be set and no reservation is touched."""
    data = payload.model_dump(exclude_unset=True)
    new_status = data.pop("status", None)
    if data.get("room_type_id") is not None:
        _check_room_type(db, data["room_type_id"], room.branch_id)
    for key, value in data.items():
        setattr(room, key, value)
    if "number" in data:
        _flush_unique_number(db)
    changed = False
    if new_status is not None:
        new_status = RoomStatus(new_status).value
        changed = set_room_status(db, room, new_status)
        if changed and new_status in MAINTENANCE_STATUSES:
            logger.info("Room %s marked %s", room.number, new_status)
            outbox.enqueue_notification(db, "maintenance", {
                "roomId": room.id,
                "roomNumber": room.number,
                "roomType": room.room_type.name if room.room_type else None,
                "branchName": room.branch.name if room.branch else None,
                "status": new_status,
            })
    if not changed:
        outbox.enqueue_broadcast(db, "rooms", "updated", {"id": room.id})
    db.commit()
    outbox.dispatch_pending(db)
    db.refresh(room)
    return room


def deactivate_room(db: Session, room: Room) -> None:
    room.is_active = False
    outbox.enqueue_broadcast(db, "rooms", "deleted", {"id": room.id})
    db.commit()
    outbox.dispatch_pending(db)
    logger.info("Room %s deactivated", room.id)


# ==== Room types ====

def list_room_types(db: Session, branch_id: Optional[int] = None) -> list[RoomType]:
    """All room types, or the branch's own plus the global ones."""
    q = db.query(RoomType)
    if branch_id:
        q = q.filter(or_(RoomType.branch_id == branch_id, RoomType.branch_id.is_(None)))
    return q.order_by(RoomType.name.asc()).all()


def get_room_type(db: Session, room_type_id: int) -> RoomType:
    room_type = db.get(RoomType, room_type_id)
    if not room_type:
        raise errors.NotFoundError("Room type not found")
    return room_type


def create_room_type(db: Session, payload: RoomTypeIn) -> RoomType:
    room_type = RoomType(**payload.model_dump())
    db.add(room_type)
    db.flush()
    outbox.enqueue_broadcast(db, "room-types", "created", {"id": room_type.id})
    db.commit()
    outbox.dispatch_pending(db)
    db.refresh(room_type)
    return room_type


def update_room_type(db: Session, room_type: RoomType, payload: RoomTypeUpdateIn) -> RoomType:
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(room_type, key, value)
    outbox.enqueue_broadcast(db, "room-types", "updated", {"id": room_type.id})
    db.commit()
    outbox.dispatch_pending(db)
    db.refresh(room_type)
    return room_type


def deactivate_room_type(db: Session, room_type: RoomType) -> None:
    room_type.is_active = False
    outbox.enqueue_broadcast(db, "room-types", "deleted", {"id": room_type.id})
    db.commit()
    outbox.dispatch_pending(db)
