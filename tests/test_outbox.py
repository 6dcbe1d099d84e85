"""
Outbox: events written with the transaction, delivered after commit, retried on failure.
"""
import pytest
import requests

from hotelpms.config import settings
from hotelpms.models import OutboxEvent
from hotelpms.services import notifications, outbox


@pytest.fixture
def failing_sender(monkeypatch):
    calls = []

    def _sender(payload):
        calls.append(payload)
        raise notifications.NotificationError("mail provider unavailable")

    monkeypatch.setitem(notifications.SENDERS, "maintenance", _sender)
    return calls


class TestDispatch:

    def test_broadcast_delivered_in_order(self, db, broadcasts):
        outbox.enqueue_broadcast(db, "rooms", "updated", {"id": 1})
        outbox.enqueue_broadcast(db, "rooms", "updated", {"id": 2})
        db.commit()

        assert outbox.dispatch_pending(db) == 2

        assert broadcasts == [("rooms", "updated", {"id": 1}), ("rooms", "updated", {"id": 2})]
        assert all(ev.dispatched_at is not None for ev in db.query(OutboxEvent).all())
        assert outbox.dispatch_pending(db) == 0

    def test_uncommitted_events_are_not_delivered(self, db, broadcasts):
        outbox.enqueue_broadcast(db, "rooms", "updated", {"id": 1})
        db.rollback()
        assert outbox.dispatch_pending(db) == 0
        assert broadcasts == []

    def test_failed_notification_is_retried_then_abandoned(self, db, failing_sender, monkeypatch):
        monkeypatch.setattr(settings, "OUTBOX_MAX_ATTEMPTS", 2)
        outbox.enqueue_notification(db, "maintenance", {"roomNumber": "101", "status": "maintenance"})
        db.commit()

        assert outbox.dispatch_pending(db) == 0
        ev = db.query(OutboxEvent).one()
        assert ev.attempts == 1
        assert "mail provider unavailable" in ev.last_error
        assert ev.dispatched_at is None

        outbox.dispatch_pending(db)
        outbox.dispatch_pending(db)
        assert len(failing_sender) == 2
        assert db.query(OutboxEvent).one().attempts == 2

    def test_retry_succeeds_later(self, db, failing_sender, monkeypatch):
        outbox.enqueue_notification(db, "maintenance", {"roomNumber": "101", "status": "maintenance"})
        db.commit()
        outbox.dispatch_pending(db)

        monkeypatch.setitem(notifications.SENDERS, "maintenance", lambda payload: True)
        assert outbox.dispatch_pending(db) == 1
        ev = db.query(OutboxEvent).one()
        assert ev.dispatched_at is not None
        assert ev.last_error is None

    def test_unknown_notification_kind(self, db):
        with pytest.raises(ValueError):
            outbox.enqueue_notification(db, "fax", {})

    def test_request_succeeds_when_notification_fails(self, desk, seed, failing_sender):
        res = desk.patch(f"/api/rooms/{seed.room_ids['101']}", json={"status": "out-of-order"})
        assert res.status_code == 200
        assert res.json()["status"] == "out-of-order"
        assert failing_sender[0]["roomNumber"] == "101"


class TestMailgunSender:

    def test_skipped_when_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL_ENABLE", False)
        assert notifications.send_check_in({"roomNumber": "101"}) is False

    def test_posts_rendered_template(self, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL_ENABLE", True)
        monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL", "ops@example.com")
        monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key")
        monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.example.com")
        sent = {}

        class _Response:
            def raise_for_status(self):
                return None

        def _post(url, auth, data, timeout):
            sent.update(url=url, data=data)
            return _Response()

        monkeypatch.setattr(notifications.requests, "post", _post)

        assert notifications.send_reservation_created({
            "confirmationNumber": "RES00000001", "branchName": "Main Street", "guestName": "Ada Lovelace",
            "roomNumber": "101", "checkInDate": "2026-11-01", "checkOutDate": "2026-11-03", "totalAmount": 220.0,
        })
        assert sent["url"] == "https://api.mailgun.net/v3/mg.example.com/messages"
        assert sent["data"]["to"] == ["ops@example.com"]
        assert "RES00000001" in sent["data"]["subject"]
        assert "Ada Lovelace" in sent["data"]["html"]

    def test_provider_error_becomes_notification_error(self, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL_ENABLE", True)
        monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL", "ops@example.com")
        monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key")
        monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.example.com")

        def _post(*args, **kwargs):
            raise requests.exceptions.ConnectionError("down")

        monkeypatch.setattr(notifications.requests, "post", _post)

        with pytest.raises(notifications.NotificationError):
            notifications.send_maintenance({"roomNumber": "101", "status": "maintenance"})
