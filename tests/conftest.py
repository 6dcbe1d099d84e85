import os

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_NOTIFICATION_EMAIL_ENABLE"] = "false"

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hotelpms.config import settings
from hotelpms.db import Base, get_db
from hotelpms.main import app as main_app
from hotelpms.models import Branch, Room, RoomType, Tax, User, UserRole
from hotelpms.security import session_token
from hotelpms.services import broadcast

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def db():
    """Fresh schema per test; yields a session for arranging and inspecting state."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    main_app.dependency_overrides[get_db] = override_get_db
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture
def seed(db):
    """Two branches, a global room type, five rooms, one 10% reservation tax and one user per role."""
    main = Branch(name="Main Street", phone="+1 555 0000", is_active=True)
    lakeside = Branch(name="Lakeside", is_active=True)
    db.add_all([main, lakeside])
    db.flush()

    deluxe = RoomType(name="Deluxe", base_price=Decimal("100.00"), max_occupancy=2)
    db.add(deluxe)
    db.flush()

    rooms = {
        number: Room(branch_id=main.id, room_type_id=deluxe.id, number=number, floor=1)
        for number in ("101", "102", "103", "104")
    }
    lake_room = Room(branch_id=lakeside.id, room_type_id=deluxe.id, number="201", floor=2)
    db.add_all(list(rooms.values()) + [lake_room])

    db.add(Tax(tax_name="VAT", rate=Decimal("10.00"), application_type="reservation"))
    db.add(Tax(tax_name="Service charge", rate=Decimal("5.00"), application_type="order"))

    users = {
        "superadmin": User(email="root@example.com", hashed_password="x", role=UserRole.SUPERADMIN.value),
        "branch_admin": User(email="manager@example.com", hashed_password="x",
                             role=UserRole.BRANCH_ADMIN.value, branch_id=main.id),
        "front_desk": User(email="desk@example.com", hashed_password="x",
                           role=UserRole.FRONT_DESK.value, branch_id=main.id),
        "lake_desk": User(email="lake@example.com", hashed_password="x",
                          role=UserRole.FRONT_DESK.value, branch_id=lakeside.id),
        "custom": User(email="custom@example.com", hashed_password="x", role=UserRole.CUSTOM.value,
                       branch_id=main.id,
                       permissions={"reservations": {"read": True, "write": True, "delete": False}}),
    }
    db.add_all(users.values())
    db.commit()

    return SimpleNamespace(
        branch_id=main.id,
        lake_branch_id=lakeside.id,
        room_type_id=deluxe.id,
        room_ids={number: room.id for number, room in rooms.items()},
        lake_room_id=lake_room.id,
        user_ids={name: user.id for name, user in users.items()},
    )


@pytest.fixture
def client_for(app):
    """Build a TestClient carrying a session cookie for the given user id."""
    def _make(user_id=None):
        client = TestClient(app)
        if user_id is not None:
            client.cookies.set(settings.SESSION_COOKIE_NAME, session_token(user_id))
        return client
    return _make


@pytest.fixture
def admin(client_for, seed):
    return client_for(seed.user_ids["superadmin"])


@pytest.fixture
def desk(client_for, seed):
    return client_for(seed.user_ids["front_desk"])


@pytest.fixture
def broadcasts():
    """Collect every broadcast fanned out during the test."""
    seen = []
    unsubscribe = broadcast.subscribe(lambda resource, event, payload: seen.append((resource, event, payload)))
    yield seen
    unsubscribe()


def reservation_payload(branch_id, room_ids, check_in="2026-11-01", check_out="2026-11-03",
                        phone="555-0100", rate="100.00", total=None, **guest):
    rooms = []
    for room_id in room_ids:
        line = {
            "roomId": room_id,
            "checkInDate": check_in,
            "checkOutDate": check_out,
            "adults": 2,
            "ratePerNight": rate,
        }
        if total is not None:
            line["totalAmount"] = total
        rooms.append(line)
    return {
        "guest": {"firstName": guest.get("first_name", "Ada"), "lastName": guest.get("last_name", "Lovelace"),
                  "phone": phone, "email": guest.get("email")},
        "reservation": {"branchId": branch_id, "notes": "late arrival"},
        "rooms": rooms,
    }


@pytest.fixture
def make_reservation():
    return reservation_payload
