from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import TaxApplicationType, UserRole
from ..permissions import RequestContext, require_role
from ..schemas import TaxIn, TaxOut, TaxUpdateIn
from ..security import get_context
from ..services import taxes as tax_service

router = APIRouter(prefix="/api/taxes", tags=["taxes"])

_ADMIN_TIERS = (UserRole.SUPERADMIN, UserRole.BRANCH_ADMIN)


@router.get("", response_model=List[TaxOut])
def api_list_taxes(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, *_ADMIN_TIERS)
    return tax_service.list_taxes(db)


@router.get("/active", response_model=List[TaxOut])
def api_active_taxes(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return tax_service.active_taxes(db)


@router.get("/reservation", response_model=List[TaxOut])
def api_reservation_taxes(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return tax_service.active_taxes(db, TaxApplicationType.RESERVATION.value)


@router.get("/order", response_model=List[TaxOut])
def api_order_taxes(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return tax_service.active_taxes(db, TaxApplicationType.ORDER.value)


@router.get("/{tax_id}", response_model=TaxOut)
def api_get_tax(tax_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, *_ADMIN_TIERS)
    return tax_service.get_tax(db, tax_id)


@router.post("", response_model=TaxOut, status_code=201)
def api_create_tax(payload: TaxIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, *_ADMIN_TIERS)
    return tax_service.create_tax(db, payload)


@router.put("/{tax_id}", response_model=TaxOut)
def api_update_tax(tax_id: int, payload: TaxUpdateIn, ctx: RequestContext = Depends(get_context),
                   db: Session = Depends(get_db)):
    require_role(ctx, *_ADMIN_TIERS)
    return tax_service.update_tax(db, tax_service.get_tax(db, tax_id), payload)


@router.delete("/{tax_id}", status_code=204)
def api_delete_tax(tax_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_role(ctx, *_ADMIN_TIERS)
    tax_service.delete_tax(db, tax_service.get_tax(db, tax_id))
    return Response(status_code=204)
