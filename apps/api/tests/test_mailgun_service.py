from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest


@pytest.fixture
def mailgun_settings(monkeypatch):
    from clinic_api.core.config import settings

    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "key-123")
    monkeypatch.setattr(settings, "MAILGUN_DOMAIN", "mg.clinic.test")
    monkeypatch.setattr(settings, "MAILGUN_FROM_EMAIL", "")
    monkeypatch.setattr(settings, "MAILGUN_FROM_NAME", "Clinic")
    monkeypatch.setattr(settings, "MAILGUN_API_BASE_URL", "https://api.mailgun.test")
    return settings


def _install_transport(monkeypatch, handler):
    from clinic_api.services import mailgun_service

    monkeypatch.setattr(
        mailgun_service,
        "_build_client",
        lambda: httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_send_email_posts_form_with_reply_to_and_delivery_time(mailgun_settings, monkeypatch):
    from clinic_api.services import mailgun_service

    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "<msg@mg>", "message": "Queued"})

    _install_transport(monkeypatch, handler)

    message_id = mailgun_service.send_email(
        to_email="ana@example.com",
        subject="Hello",
        html="<p>Hi</p>",
        reply_to=mailgun_service.build_reply_alias("abc"),
        deliver_at=datetime(2026, 3, 8, 9, 30, tzinfo=timezone.utc),
    )

    assert message_id == "<msg@mg>"
    assert captured["url"] == "https://api.mailgun.test/v3/mg.clinic.test/messages"
    assert captured["auth"].startswith("Basic ")
    form = captured["form"]
    assert form["from"] == ["Clinic <no-reply@mg.clinic.test>"]
    assert form["to"] == ["ana@example.com"]
    assert form["h:Reply-To"] == ["reply+abc@mg.clinic.test"]
    assert form["o:deliverytime"] == ["Sun, 08 Mar 2026 09:30:00 GMT"]


def test_send_email_without_delivery_time_omits_it(mailgun_settings, monkeypatch):
    from clinic_api.services import mailgun_service

    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "x"})

    _install_transport(monkeypatch, handler)

    mailgun_service.send_email(to_email="a@b.ch", subject="S", html="<p>x</p>")

    assert "o:deliverytime" not in captured["form"]
    assert "h:Reply-To" not in captured["form"]


def test_send_email_raises_on_error_status(mailgun_settings, monkeypatch):
    from clinic_api.services import mailgun_service

    _install_transport(monkeypatch, lambda request: httpx.Response(401, text="Forbidden"))

    with pytest.raises(mailgun_service.EmailDeliveryError) as exc:
        mailgun_service.send_email(to_email="a@b.ch", subject="S", html="x")

    assert "401" in str(exc.value)


def test_send_email_raises_on_transport_error(mailgun_settings, monkeypatch):
    from clinic_api.services import mailgun_service

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    _install_transport(monkeypatch, handler)

    with pytest.raises(mailgun_service.EmailDeliveryError):
        mailgun_service.send_email(to_email="a@b.ch", subject="S", html="x")


def test_send_email_requires_configuration(monkeypatch):
    from clinic_api.core.config import settings
    from clinic_api.services import mailgun_service

    monkeypatch.setattr(settings, "MAILGUN_API_KEY", "")

    with pytest.raises(mailgun_service.EmailDeliveryError):
        mailgun_service.send_email(to_email="a@b.ch", subject="S", html="x")


def test_from_address_prefers_configured_sender(mailgun_settings, monkeypatch):
    from clinic_api.services import mailgun_service

    monkeypatch.setattr(mailgun_settings, "MAILGUN_FROM_EMAIL", "hello@clinic.test")

    assert mailgun_service.build_from_address() == "Clinic <hello@clinic.test>"
