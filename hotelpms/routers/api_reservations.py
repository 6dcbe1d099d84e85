from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..permissions import RequestContext, require_permission, scoped_branch
from ..schemas import ReservationCreateIn, ReservationOut, ReservationPatchIn
from ..security import get_context
from ..services import reservations as reservation_service

router = APIRouter(prefix="/api/reservations", tags=["reservations"])


@router.get("", response_model=List[ReservationOut])
def api_list_reservations(
    branch_id: Optional[int] = Query(None, alias="branchId"),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    require_permission(ctx, "reservations", "read", "You do not have permission to view reservations")
    return reservation_service.list_reservations(db, scoped_branch(ctx, branch_id))


@router.get("/{reservation_id}", response_model=ReservationOut)
def api_get_reservation(reservation_id: str, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return reservation_service.fetch_reservation(db, ctx, reservation_id)


@router.post("", response_model=ReservationOut, status_code=201)
def api_create_reservation(payload: ReservationCreateIn, ctx: RequestContext = Depends(get_context),
                           db: Session = Depends(get_db)):
    return reservation_service.create_reservation(db, ctx, payload)


@router.patch("/{reservation_id}", response_model=ReservationOut)
def api_update_reservation(reservation_id: str, payload: ReservationPatchIn,
                           ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    """Accepts either ``{guest, reservation, rooms}`` or a flat partial reservation body."""
    return reservation_service.update_reservation(db, ctx, reservation_id, payload)


@router.delete("/{reservation_id}", status_code=204)
def api_cancel_reservation(reservation_id: str, ctx: RequestContext = Depends(get_context),
                           db: Session = Depends(get_db)):
    reservation_service.cancel_reservation(db, ctx, reservation_id)
    return Response(status_code=204)
