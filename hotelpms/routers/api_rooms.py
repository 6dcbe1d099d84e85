from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from .. import errors
from ..db import get_db
from ..models import RoomStatus, UserRole
from ..permissions import (
    RequestContext,
    require_branch,
    require_permission,
    require_role,
    resolve_target_branch,
    scoped_branch,
)
from ..schemas import RoomIn, RoomOut, RoomUpdateIn
from ..security import get_context
from ..services import rooms as room_service

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


@router.get("", response_model=List[RoomOut])
def api_list_rooms(
    branch_id: Optional[int] = Query(None, alias="branchId"),
    status: Optional[RoomStatus] = None,
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    require_permission(ctx, "rooms", "read")
    return room_service.list_rooms(db, scoped_branch(ctx, branch_id), status.value if status else None)


# Registered before "/{room_id}" so the literal path wins
@router.get("/availability", response_model=List[RoomOut])
def api_room_availability(
    branch_id: Optional[int] = Query(None, alias="branchId"),
    check_in: Optional[date] = Query(None, alias="checkIn"),
    check_out: Optional[date] = Query(None, alias="checkOut"),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    if not branch_id or not check_in or not check_out:
        raise errors.ValidationError("branchId, checkIn and checkOut are required")
    require_permission(ctx, "rooms", "read")
    require_branch(ctx, branch_id)
    return room_service.get_available_rooms(db, branch_id, check_in, check_out)


@router.get("/{room_id}", response_model=RoomOut)
def api_get_room(room_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "rooms", "read")
    room = room_service.get_room(db, room_id)
    require_branch(ctx, room.branch_id)
    return room


@router.post("", response_model=RoomOut, status_code=201)
def api_create_room(payload: RoomIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "rooms", "write")
    branch_id = resolve_target_branch(ctx, payload.branch_id)
    return room_service.create_room(db, payload.model_copy(update={"branch_id": branch_id}))


def _update(room_id: int, payload: RoomUpdateIn, ctx: RequestContext, db: Session):
    require_permission(ctx, "rooms", "write")
    room = room_service.get_room(db, room_id)
    require_branch(ctx, room.branch_id)
    return room_service.update_room(db, room, payload)


@router.put("/{room_id}", response_model=RoomOut)
def api_replace_room(room_id: int, payload: RoomUpdateIn, ctx: RequestContext = Depends(get_context),
                     db: Session = Depends(get_db)):
    return _update(room_id, payload, ctx, db)


@router.patch("/{room_id}", response_model=RoomOut)
def api_update_room(room_id: int, payload: RoomUpdateIn, ctx: RequestContext = Depends(get_context),
                    db: Session = Depends(get_db)):
    """Direct edit, typically a status change such as marking the room under maintenance."""
    return _update(room_id, payload, ctx, db)


@router.delete("/{room_id}", status_code=204)
def api_delete_room(room_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, UserRole.SUPERADMIN, UserRole.BRANCH_ADMIN)
    require_permission(ctx, "rooms", "delete")
    room = room_service.get_room(db, room_id)
    require_branch(ctx, room.branch_id)
    room_service.deactivate_room(db, room)
    return Response(status_code=204)
