"""Mailgun sender for workflow emails.

Posts form-encoded messages to the Mailgun v3 API. Deferred emails are
handed to Mailgun with `o:deliverytime`, so the provider owns the clock.
No retries: a failed send is raised to the caller, which logs it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from uuid import UUID

import httpx

from clinic_api.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when Mailgun rejects a message or cannot be reached."""

    pass


def mailgun_configured() -> bool:
    return settings.mailgun_configured


def build_reply_alias(email_id: UUID | str) -> str | None:
    """Reply-To address that routes replies back to the stored email row."""
    if not settings.MAILGUN_DOMAIN:
        return None
    return f"reply+{email_id}@{settings.MAILGUN_DOMAIN}"


def build_from_address() -> str:
    address = settings.MAILGUN_FROM_EMAIL or f"no-reply@{settings.MAILGUN_DOMAIN}"
    return f"{settings.MAILGUN_FROM_NAME} <{address}>"


def format_delivery_time(deliver_at: datetime) -> str:
    """RFC 2822 timestamp in GMT, the format `o:deliverytime` expects."""
    if deliver_at.tzinfo is None:
        deliver_at = deliver_at.replace(tzinfo=timezone.utc)
    return format_datetime(deliver_at.astimezone(timezone.utc), usegmt=True)


def _build_client() -> httpx.Client:
    return httpx.Client(timeout=settings.MAILGUN_TIMEOUT_SECONDS)


def send_email(
    *,
    to_email: str,
    subject: str,
    html: str,
    reply_to: str | None = None,
    deliver_at: datetime | None = None,
) -> str | None:
    """
    Send (or schedule) one email through Mailgun.

    Returns the Mailgun message id when the response carries one.
    """
    if not mailgun_configured():
        raise EmailDeliveryError("Mailgun not configured (missing MAILGUN_API_KEY or MAILGUN_DOMAIN)")

    data = {
        "from": build_from_address(),
        "to": to_email,
        "subject": subject,
        "html": html,
    }
    if reply_to:
        data["h:Reply-To"] = reply_to
    if deliver_at:
        data["o:deliverytime"] = format_delivery_time(deliver_at)

    url = f"{settings.MAILGUN_API_BASE_URL.rstrip('/')}/v3/{settings.MAILGUN_DOMAIN}/messages"
    try:
        with _build_client() as client:
            response = client.post(url, auth=("api", settings.MAILGUN_API_KEY), data=data)
    except httpx.TimeoutException as e:
        raise EmailDeliveryError("Mailgun request timed out") from e
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Mailgun connection error: {e.__class__.__name__}") from e

    if not 200 <= response.status_code < 300:
        raise EmailDeliveryError(f"Mailgun returned {response.status_code}: {response.text[:500]}")

    try:
        message_id = response.json().get("id")
    except ValueError:
        message_id = None
    logger.info(f"Mailgun accepted email, message_id={message_id}")
    return message_id if isinstance(message_id, str) else None
