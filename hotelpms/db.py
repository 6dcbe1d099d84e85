import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from .config import settings

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    pass

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Indexes backing the room/date overlap lookups and guest phone dedup.
_INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_reservation_rooms_room_dates ON reservation_rooms(room_id, check_in_date, check_out_date);",
    "CREATE INDEX IF NOT EXISTS ix_reservations_branch_status ON reservations(branch_id, status);",
    "CREATE INDEX IF NOT EXISTS ix_guests_phone_digits ON guests(phone_digits);",
    "CREATE INDEX IF NOT EXISTS ix_outbox_events_pending ON outbox_events(dispatched_at, attempts);",
]


def ensure_schema(bind=None):
    """
    Lightweight, best-effort schema setup for environments without Alembic.
    - Create any missing tables from the ORM metadata
    - Ensure helpful indexes exist for overlap and dedup queries
    Never fails app startup; best-effort only.
    """
    from . import models  # noqa: F401  (register mappers on Base.metadata)

    bind = bind or engine
    try:
        Base.metadata.create_all(bind=bind)
    except Exception:
        logger.exception("Schema creation failed")
        return
    with bind.connect() as conn:
        for ddl in _INDEXES:
            try:
                conn.exec_driver_sql(ddl)
            except Exception as e:
                logger.warning("Index creation skipped (%s): %s", ddl, e)
        conn.commit()
