"""Transactional outbox for post-commit side effects.

Broadcasts and notifications are written as ``OutboxEvent`` rows in the same
transaction as the change that caused them, then delivered by
:func:`dispatch_pending` once that transaction has committed. A failed
delivery leaves the row pending so a later dispatch retries it, up to
``OUTBOX_MAX_ATTEMPTS`` tries.
"""
import logging
from datetime import datetime
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import OutboxEvent, OutboxTopic
from . import broadcast as broadcast_sink
from . import notifications

logger = logging.getLogger(__name__)


def enqueue_broadcast(db: Session, resource: str, event: str, payload: Any) -> OutboxEvent:
    ev = OutboxEvent(
        topic=OutboxTopic.BROADCAST.value,
        kind=f"{resource}.{event}",
        payload=jsonable_encoder(payload),
    )
    db.add(ev)
    return ev


def enqueue_notification(db: Session, kind: str, payload: dict) -> OutboxEvent:
    if kind not in notifications.SENDERS:
        raise ValueError(f"Unknown notification kind: {kind}")
    ev = OutboxEvent(
        topic=OutboxTopic.NOTIFICATION.value,
        kind=kind,
        payload=jsonable_encoder(payload),
    )
    db.add(ev)
    return ev


def _deliver(ev: OutboxEvent) -> None:
    if ev.topic == OutboxTopic.BROADCAST.value:
        resource, _, event = ev.kind.partition(".")
        broadcast_sink.broadcast(resource, event, ev.payload)
    elif ev.topic == OutboxTopic.NOTIFICATION.value:
        notifications.SENDERS[ev.kind](ev.payload)
    else:
        raise ValueError(f"Unknown outbox topic: {ev.topic}")


def pending_events(db: Session, limit: int = 100) -> list[OutboxEvent]:
    return (
        db.query(OutboxEvent)
        .filter(
            OutboxEvent.dispatched_at.is_(None),
            OutboxEvent.attempts < settings.OUTBOX_MAX_ATTEMPTS,
        )
        .order_by(OutboxEvent.id.asc())
        .limit(limit)
        .all()
    )


def dispatch_pending(db: Session, limit: int = 100) -> int:
    """Deliver pending events in insertion order; returns how many were delivered.

    Never raises: the request that produced the events has already succeeded.
    """
    delivered = 0
    try:
        events = pending_events(db, limit)
        for ev in events:
            ev.attempts += 1
            try:
                _deliver(ev)
            except Exception as e:
                ev.last_error = str(e)[:1000]
                logger.error("Outbox event %s (%s %s) failed on attempt %s: %s",
                             ev.id, ev.topic, ev.kind, ev.attempts, e)
                continue
            ev.dispatched_at = datetime.utcnow()
            ev.last_error = None
            delivered += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Outbox dispatch aborted")
    if delivered:
        logger.debug("Outbox delivered %s event(s)", delivered)
    return delivered
