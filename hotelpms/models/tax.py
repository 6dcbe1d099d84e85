from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, Numeric, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from ..db import Base

class TaxApplicationType(str, PyEnum):
    RESERVATION = "reservation"
    ORDER = "order"

class Tax(Base):
    __tablename__ = "taxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tax_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    # Percentage, e.g. 13.00 for 13%
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    application_type: Mapped[str] = mapped_column(String(20), default=TaxApplicationType.RESERVATION.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
