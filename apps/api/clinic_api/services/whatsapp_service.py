"""Client for the internal WhatsApp sending server."""

from __future__ import annotations

from uuid import UUID

import httpx

from clinic_api.core.config import settings


class ChatDeliveryError(Exception):
    """Raised when the WhatsApp server rejects a message or cannot be reached."""

    pass


def _build_client() -> httpx.Client:
    return httpx.Client(timeout=settings.WHATSAPP_TIMEOUT_SECONDS)


def send_message(*, patient_id: UUID, to_number: str, message: str) -> str | None:
    """POST one message to `<WHATSAPP_SERVER_URL>/send`; returns the server's message id."""
    headers = {"Content-Type": "application/json"}
    if settings.WHATSAPP_API_KEY:
        headers["Authorization"] = f"Bearer {settings.WHATSAPP_API_KEY}"
    payload = {"patientId": str(patient_id), "toNumber": to_number, "message": message}

    url = f"{settings.WHATSAPP_SERVER_URL.rstrip('/')}/send"
    try:
        with _build_client() as client:
            response = client.post(url, headers=headers, json=payload)
    except httpx.TimeoutException as e:
        raise ChatDeliveryError("WhatsApp server timed out") from e
    except httpx.HTTPError as e:
        raise ChatDeliveryError(f"WhatsApp server connection error: {e.__class__.__name__}") from e

    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    if not 200 <= response.status_code < 300 or data.get("error"):
        error = data.get("error") or f"WhatsApp server returned {response.status_code}"
        raise ChatDeliveryError(str(error))

    message_id = data.get("messageId") or data.get("id")
    return str(message_id) if message_id else None
