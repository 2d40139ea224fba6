import base64

import pytest
import requests

from app.core.config import settings
from app.core.crypto import decrypt, encrypt
from app.core.exceptions import MailerError, NotFoundError
from app.services import email_service
from app.services.email_service import EmailService


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def zepto(monkeypatch):
    monkeypatch.setattr(settings, "ZEPTO_API_KEY", "Zoho-enczapikey test")
    monkeypatch.setattr(settings, "ZEPTO_FROM_ADDRESS", "noreply@reviewloop.app")


@pytest.fixture
def posts(monkeypatch):
    """Queue responses for requests.post and record every call."""
    calls = []
    responses = []

    def fake_post(url, **kwargs):
        calls.append({"url": url, **kwargs})
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(email_service.requests, "post", fake_post)
    return calls, responses


def test_zepto_success(db, make_tenant, zepto, posts):
    calls, responses = posts
    responses.append(FakeResponse(201, {"message": "OK", "data": [{"code": "EM_104"}]}))
    tenant = make_tenant()

    assert EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>") is True

    call = calls[0]
    assert call["url"] == settings.ZEPTO_API_URL
    assert call["headers"]["authorization"] == "Zoho-enczapikey test"
    assert '"name": "Bright Smile Dental"' in call["data"]
    assert call["timeout"] == settings.MAILER_TIMEOUT_SECONDS


def test_zepto_recipient_rejected(db, make_tenant, zepto, posts):
    _, responses = posts
    responses.append(FakeResponse(400, {"error": {"message": "Invalid address"}}))
    tenant = make_tenant()

    with pytest.raises(MailerError) as exc:
        EmailService(db).send(tenant.id, "nobody@gmail.com", "Hi", "<p>Hi</p>")

    assert exc.value.recipient_rejected is True
    assert str(exc.value).startswith("RECIPIENT_NOT_FOUND")


def test_zepto_server_error(db, make_tenant, zepto, posts):
    _, responses = posts
    responses.append(FakeResponse(503, None, text="upstream down"))
    tenant = make_tenant()

    with pytest.raises(MailerError) as exc:
        EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>")

    assert exc.value.recipient_rejected is False


def test_timeout_is_a_mailer_error(db, make_tenant, zepto, posts):
    _, responses = posts
    responses.append(requests.exceptions.Timeout("read timed out"))
    tenant = make_tenant()

    with pytest.raises(MailerError, match="TIMEOUT_ERROR"):
        EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>")


def test_no_sender_configured(db, make_tenant, posts):
    tenant = make_tenant()

    with pytest.raises(MailerError, match="not connected"):
        EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>")


def test_unknown_tenant(db):
    with pytest.raises(NotFoundError):
        EmailService(db).send(999, "ana@gmail.com", "Hi", "<p>Hi</p>")


def test_gmail_refreshes_token_and_sends(db, make_tenant, posts):
    calls, responses = posts
    responses.append(FakeResponse(200, {"access_token": "ya29.fresh", "expires_in": 3599}))
    responses.append(FakeResponse(200, {"id": "18c0ffee"}))
    tenant = make_tenant(
        email_provider="google",
        google_email_address="owner@brightsmile.com",
        google_refresh_token=encrypt("1//refresh-abc"),
    )

    assert EmailService(db).send(tenant.id, "ana@gmail.com", "How was it?", "<p>Hi</p>") is True

    refresh, send = calls
    assert refresh["url"] == settings.GOOGLE_TOKEN_URL
    assert refresh["data"]["refresh_token"] == "1//refresh-abc"
    assert send["url"] == settings.GMAIL_SEND_URL
    assert send["headers"]["Authorization"] == "Bearer ya29.fresh"

    message = base64.urlsafe_b64decode(send["json"]["raw"]).decode("utf-8")
    assert "To: ana@gmail.com" in message
    assert "From: owner@brightsmile.com" in message

    # stored encrypted, not committed by the service
    assert decrypt(tenant.google_access_token) == "ya29.fresh"
    assert tenant.google_token_expiry is not None


def test_gmail_refresh_refused(db, make_tenant, posts):
    _, responses = posts
    responses.append(FakeResponse(400, {"error": "invalid_grant"}, text="invalid_grant"))
    tenant = make_tenant(email_provider="google", google_refresh_token=encrypt("1//revoked"))

    with pytest.raises(MailerError, match="TOKEN_REFRESH_ERROR"):
        EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>")


def test_gmail_refresh_with_unreadable_body(db, make_tenant, posts):
    _, responses = posts
    responses.append(FakeResponse(200, None, text="<html>captive portal</html>"))
    tenant = make_tenant(email_provider="google", google_refresh_token=encrypt("1//refresh-abc"))

    with pytest.raises(MailerError, match="TOKEN_REFRESH_ERROR"):
        EmailService(db).send(tenant.id, "ana@gmail.com", "Hi", "<p>Hi</p>")


def test_gmail_recipient_rejected(db, make_tenant, posts):
    _, responses = posts
    responses.append(FakeResponse(200, {"access_token": "ya29.fresh"}))
    responses.append(FakeResponse(400, None, text="Invalid To header: address not found"))
    tenant = make_tenant(
        email_provider="google",
        google_email_address="owner@brightsmile.com",
        google_refresh_token=encrypt("1//refresh-abc"),
    )

    with pytest.raises(MailerError) as exc:
        EmailService(db).send(tenant.id, "ghost@gmail.com", "Hi", "<p>Hi</p>")

    assert exc.value.recipient_rejected is True
