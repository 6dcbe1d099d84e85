from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..permissions import RequestContext, require_permission
from ..schemas import GuestIn, GuestOut, GuestUpdateIn
from ..security import get_context
from ..services import guests as guest_service

router = APIRouter(prefix="/api/guests", tags=["guests"])


@router.get("", response_model=List[GuestOut])
def api_list_guests(phone: Optional[str] = None, ctx: RequestContext = Depends(get_context),
                    db: Session = Depends(get_db)):
    """All guests, or with ``?phone=`` the single active guest owning that number (or null)."""
    require_permission(ctx, "guests", "read")
    if phone is not None:
        guest = guest_service.find_by_phone(db, phone)
        return JSONResponse(guest_service.guest_payload(guest) if guest else None)
    return guest_service.list_guests(db)


@router.get("/search", response_model=List[GuestOut])
def api_search_guests(q: str = "", ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "guests", "read")
    return guest_service.search_guests(db, q)


@router.get("/{guest_id}", response_model=GuestOut)
def api_get_guest(guest_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "guests", "read")
    return guest_service.get_guest(db, guest_id)


@router.post("", response_model=GuestOut, status_code=201)
def api_create_guest(payload: GuestIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "guests", "write")
    return guest_service.register_guest(db, payload, ctx.branch_id)


@router.put("/{guest_id}", response_model=GuestOut)
def api_update_guest(guest_id: int, payload: GuestUpdateIn, ctx: RequestContext = Depends(get_context),
                     db: Session = Depends(get_db)):
    require_permission(ctx, "guests", "write")
    guest = guest_service.get_guest(db, guest_id)
    return guest_service.edit_guest(db, guest, payload)


@router.delete("/{guest_id}", status_code=204)
def api_delete_guest(guest_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_permission(ctx, "guests", "delete")
    guest_service.deactivate_guest(db, guest_service.get_guest(db, guest_id))
    return Response(status_code=204)
