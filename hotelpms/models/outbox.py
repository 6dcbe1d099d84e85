from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Integer, String, DateTime, JSON, Text
from sqlalchemy.orm import Mapped, mapped_column
from ..db import Base

class OutboxTopic(str, PyEnum):
    BROADCAST = "broadcast"
    NOTIFICATION = "notification"

class OutboxEvent(Base):
    """A side effect recorded in the same transaction as the state change that caused it."""
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    topic: Mapped[str] = mapped_column(String(20), nullable=False)
    # broadcast: "<resource>.<event>"; notification: the notification kind
    kind: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
