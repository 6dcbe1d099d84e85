from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from .. import errors
from ..db import get_db
from ..models import UserRole
from ..permissions import RequestContext, require_role, scoped_branch
from ..schemas import RoomTypeIn, RoomTypeOut, RoomTypeUpdateIn
from ..security import get_context
from ..services import rooms as room_service

router = APIRouter(prefix="/api/room-types", tags=["room-types"])


@router.get("", response_model=List[RoomTypeOut])
def api_list_room_types(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return room_service.list_room_types(db, scoped_branch(ctx))


@router.get("/{room_type_id}", response_model=RoomTypeOut)
def api_get_room_type(room_type_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    room_type = room_service.get_room_type(db, room_type_id)
    branch_id = scoped_branch(ctx)
    if branch_id and room_type.branch_id not in (None, branch_id):
        raise errors.NotFoundError("Room type not found")
    return room_type


@router.post("", response_model=RoomTypeOut, status_code=201)
def api_create_room_type(payload: RoomTypeIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, UserRole.SUPERADMIN)
    return room_service.create_room_type(db, payload)


@router.put("/{room_type_id}", response_model=RoomTypeOut)
def api_update_room_type(room_type_id: int, payload: RoomTypeUpdateIn, ctx: RequestContext = Depends(get_context),
                         db: Session = Depends(get_db)):
    require_role(ctx, UserRole.SUPERADMIN)
    room_type = room_service.get_room_type(db, room_type_id)
    return room_service.update_room_type(db, room_type, payload)


@router.delete("/{room_type_id}", status_code=204)
def api_delete_room_type(room_type_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, UserRole.SUPERADMIN)
    room_service.deactivate_room_type(db, room_service.get_room_type(db, room_type_id))
    return Response(status_code=204)
