import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import errors
from ..models import Tax, TaxApplicationType
from ..schemas import TaxIn, TaxUpdateIn

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class TaxComputation:
    total_tax: Decimal = Decimal("0.00")
    breakdown: list[dict] = field(default_factory=list)


def active_taxes(db: Session, application_type: str | None = None) -> list[Tax]:
    q = db.query(Tax).filter(Tax.is_active == True)  # noqa: E712
    if application_type:
        q = q.filter(Tax.application_type == application_type)
    return q.order_by(Tax.tax_name.asc(), Tax.id.asc()).all()


def apply_rates(subtotal, rates: list[tuple[int, str, Decimal]]) -> TaxComputation:
    """Apply (tax_id, name, rate%) triples to a subtotal; each amount rounds to the cent."""
    subtotal = Decimal(str(subtotal))
    result = TaxComputation()
    for tax_id, name, rate in rates:
        rate = Decimal(str(rate))
        amount = to_money(subtotal * rate / 100)
        result.total_tax += amount
        result.breakdown.append({
            "taxId": tax_id,
            "name": name,
            "rate": f"{rate:.2f}",
            "amount": f"{amount:.2f}",
        })
    result.total_tax = to_money(result.total_tax)
    return result


def compute_taxes(db: Session, subtotal, application_type: str = TaxApplicationType.RESERVATION.value) -> TaxComputation:
    """Taxes due on a subtotal under every active tax of the given application type."""
    taxes = active_taxes(db, application_type)
    return apply_rates(subtotal, [(t.id, t.tax_name, t.rate) for t in taxes])


def recompute_from_snapshot(subtotal, snapshot: list[dict]) -> TaxComputation:
    """Re-price with the rates captured at creation time, ignoring later rate changes."""
    return apply_rates(subtotal, [(s["taxId"], s["name"], Decimal(s["rate"])) for s in snapshot or []])


# ==== Tax management ====

def list_taxes(db: Session) -> list[Tax]:
    return db.query(Tax).order_by(Tax.tax_name.asc()).all()


def get_tax(db: Session, tax_id: int) -> Tax:
    tax = db.get(Tax, tax_id)
    if not tax:
        raise errors.NotFoundError("Tax not found")
    return tax


def create_tax(db: Session, payload: TaxIn) -> Tax:
    tax = Tax(
        tax_name=payload.tax_name,
        rate=payload.rate,
        application_type=payload.application_type.value,
        is_active=payload.is_active,
    )
    db.add(tax)
    _commit_unique_name(db)
    db.refresh(tax)
    return tax


def update_tax(db: Session, tax: Tax, payload: TaxUpdateIn) -> Tax:
    data = payload.model_dump(exclude_unset=True)
    if data.get("application_type") is not None:
        data["application_type"] = TaxApplicationType(data["application_type"]).value
    for key, value in data.items():
        setattr(tax, key, value)
    _commit_unique_name(db)
    db.refresh(tax)
    return tax


def delete_tax(db: Session, tax: Tax) -> None:
    db.delete(tax)
    db.commit()
    logger.info("Tax %s deleted", tax.id)


def _commit_unique_name(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.ValidationError("Tax name already exists")
