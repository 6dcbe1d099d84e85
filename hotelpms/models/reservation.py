from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, ForeignKey, Date, Numeric, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

if TYPE_CHECKING:
    from .branch import Branch
    from .guest import Guest
    from .room import Room

class ReservationStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"

# Reservations in these states can no longer be edited
LOCKED_STATUSES = (ReservationStatus.CHECKED_OUT.value, ReservationStatus.CANCELLED.value)

# Reservations in these states no longer hold their rooms
RELEASED_STATUSES = (
    ReservationStatus.CHECKED_OUT.value,
    ReservationStatus.CANCELLED.value,
    ReservationStatus.NO_SHOW.value,
)

def _new_reservation_id() -> str:
    return str(uuid.uuid4())

class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_reservation_id)
    confirmation_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)
    guest_id: Mapped[int] = mapped_column(ForeignKey("guests.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=ReservationStatus.CONFIRMED.value, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    # Snapshot of the taxes in force at creation: [{"taxId", "name", "rate", "amount"}]
    applied_taxes: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    branch: Mapped[Branch] = relationship(back_populates="reservations")
    guest: Mapped[Guest] = relationship(back_populates="reservations")
    reservation_rooms: Mapped[list[ReservationRoom]] = relationship(
        back_populates="reservation", cascade="all, delete-orphan", order_by="ReservationRoom.id"
    )

class ReservationRoom(Base):
    __tablename__ = "reservation_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reservation_id: Mapped[str] = mapped_column(ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id"), nullable=False, index=True)
    check_in_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    adults: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    children: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rate_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text)
    actual_check_in: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_check_out: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    reservation: Mapped[Reservation] = relationship(back_populates="reservation_rooms")
    room: Mapped[Room] = relationship(back_populates="reservation_rooms")
