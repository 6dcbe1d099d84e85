from datetime import datetime
from sqlalchemy import Integer, String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..db import Base

class Branch(Base):
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Hard delete (second phase) removes everything the branch owns.
    rooms: Mapped[list["Room"]] = relationship(back_populates="branch", cascade="all, delete-orphan")
    room_types: Mapped[list["RoomType"]] = relationship(back_populates="branch", cascade="all, delete-orphan")
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="branch", cascade="all, delete-orphan")

    # Staff assigned to this branch via users.branch_id -> branches.id
    users: Mapped[list["User"]] = relationship(back_populates="branch", passive_deletes=True)
