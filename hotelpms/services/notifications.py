import logging
import datetime
import requests
from ..config import settings
from ..templating import templates

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a configured notification channel rejects or fails a send."""


def _enabled() -> bool:
    if not settings.ADMIN_NOTIFICATION_EMAIL_ENABLE or not settings.ADMIN_NOTIFICATION_EMAIL:
        logger.debug("Admin notification e-mail disabled. Skipping notification.")
        return False
    if not settings.MAILGUN_API_KEY or not settings.MAILGUN_DOMAIN:
        logger.warning("Mailgun API key or domain not configured. Skipping notification.")
        return False
    return True


def _send(subject: str, template_name: str, context: dict) -> bool:
    """Render a template and send it to the admin notification address via Mailgun.

    Returns False when the channel is not configured; raises NotificationError on failure.
    """
    if not _enabled():
        return False

    template_body = templates.get_template(template_name).render({
        **context,
        "app_name": settings.APP_NAME,
        "base_url": settings.BASE_URL,
        "current_year": datetime.datetime.now().year,
    })

    mailgun_url = f"https://api.mailgun.net/v3/{settings.MAILGUN_DOMAIN}/messages"
    auth = ("api", settings.MAILGUN_API_KEY)
    data = {
        "from": f"{settings.APP_NAME} <{settings.MAIL_FROM}>",
        "to": [settings.ADMIN_NOTIFICATION_EMAIL],
        "subject": subject,
        "html": template_body,
    }

    try:
        response = requests.post(mailgun_url, auth=auth, data=data, timeout=10)
        response.raise_for_status()  # Raise an exception for bad status codes (4xx or 5xx)
    except requests.exceptions.RequestException as e:
        raise NotificationError(f"Mailgun send failed for '{subject}': {e}") from e
    logger.info(f"Notification '{subject}' sent to {settings.ADMIN_NOTIFICATION_EMAIL} via Mailgun.")
    return True


def send_reservation_created(payload: dict) -> bool:
    subject = f"New reservation {payload.get('confirmationNumber')} at {payload.get('branchName')}"
    return _send(subject, "emails/reservation_created.html", {"n": payload})


def send_check_in(payload: dict) -> bool:
    subject = f"Guest checked in: room {payload.get('roomNumber')} ({payload.get('branchName')})"
    return _send(subject, "emails/check_in.html", {"n": payload})


def send_check_out(payload: dict) -> bool:
    subject = f"Guest checked out: room {payload.get('roomNumber')} ({payload.get('branchName')})"
    return _send(subject, "emails/check_out.html", {"n": payload})


def send_maintenance(payload: dict) -> bool:
    subject = f"Room {payload.get('roomNumber')} is {payload.get('status')} ({payload.get('branchName')})"
    return _send(subject, "emails/maintenance.html", {"n": payload})


# Notification kinds recorded in the outbox
SENDERS = {
    "reservation_created": send_reservation_created,
    "check_in": send_check_in,
    "check_out": send_check_out,
    "maintenance": send_maintenance,
}
