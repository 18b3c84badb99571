import json
import uuid

import httpx
import pytest


def _install_transport(monkeypatch, handler):
    from clinic_api.services import whatsapp_service

    monkeypatch.setattr(
        whatsapp_service,
        "_build_client",
        lambda: httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_send_message_posts_payload_with_bearer_key(monkeypatch):
    from clinic_api.core.config import settings
    from clinic_api.services import whatsapp_service

    monkeypatch.setattr(settings, "WHATSAPP_SERVER_URL", "http://wa.test/")
    monkeypatch.setattr(settings, "WHATSAPP_API_KEY", "wa-key")
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "messageId": "wamid.1"})

    _install_transport(monkeypatch, handler)
    patient_id = uuid.uuid4()

    message_id = whatsapp_service.send_message(patient_id=patient_id, to_number="+41790000000", message="Hi")

    assert message_id == "wamid.1"
    assert captured["url"] == "http://wa.test/send"
    assert captured["auth"] == "Bearer wa-key"
    assert captured["body"] == {"patientId": str(patient_id), "toNumber": "+41790000000", "message": "Hi"}


def test_send_message_raises_with_server_error(monkeypatch):
    from clinic_api.services import whatsapp_service

    _install_transport(
        monkeypatch,
        lambda request: httpx.Response(503, json={"error": "WhatsApp server unavailable"}),
    )

    with pytest.raises(whatsapp_service.ChatDeliveryError) as exc:
        whatsapp_service.send_message(patient_id=uuid.uuid4(), to_number="+1", message="Hi")

    assert str(exc.value) == "WhatsApp server unavailable"


def test_send_message_raises_on_timeout(monkeypatch):
    from clinic_api.services import whatsapp_service

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    _install_transport(monkeypatch, handler)

    with pytest.raises(whatsapp_service.ChatDeliveryError) as exc:
        whatsapp_service.send_message(patient_id=uuid.uuid4(), to_number="+1", message="Hi")

    assert "timed out" in str(exc.value)
