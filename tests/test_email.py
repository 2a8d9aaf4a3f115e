"""Unit tests for the SendGrid email transport."""

from __future__ import annotations

import json
import types

import pytest

from app.infrastructure import email as email_module


class DummySettings:
    sendgrid_api_key = "SG.fake"
    sendgrid_sender = "sender@example.com"
    send_timeout_seconds = 12.5


class _StubSendGridAPIClient:
    """Default stub client that returns a successful response."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self.client = types.SimpleNamespace(timeout=None)

    def send(self, message):
        return types.SimpleNamespace(status_code=202, body=None)


def _configured(monkeypatch: pytest.MonkeyPatch, client_class) -> None:
    monkeypatch.setattr(email_module, "get_settings", lambda: DummySettings())
    monkeypatch.setattr(email_module, "SendGridAPIClient", client_class)


def test_delivery_without_configuration_is_permanent(monkeypatch: pytest.MonkeyPatch) -> None:
    """Missing SendGrid settings can never succeed on retry."""

    class Unconfigured:
        sendgrid_api_key = None
        sendgrid_sender = None

    monkeypatch.setattr(email_module, "get_settings", lambda: Unconfigured())

    assert email_module.is_email_configured() is False
    with pytest.raises(email_module.EmailDeliveryError) as excinfo:
        email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")
    assert excinfo.value.permanent is True


def test_delivery_success_bounds_the_request(monkeypatch: pytest.MonkeyPatch) -> None:
    sent = []

    class RecordingClient(_StubSendGridAPIClient):
        def send(self, message):
            sent.append((self.api_key, self.client.timeout, message))
            return types.SimpleNamespace(status_code=202, body=None)

    _configured(monkeypatch, RecordingClient)

    email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")

    assert email_module.is_email_configured() is True
    assert len(sent) == 1
    assert sent[0][0] == "SG.fake"
    assert sent[0][1] == 12.5


def test_forbidden_error_is_permanent_and_logged(monkeypatch: pytest.MonkeyPatch, caplog):
    """Forbidden responses from SendGrid should surface meaningful log details."""

    class FakeForbiddenError(Exception):
        status_code = 403
        body = json.dumps(
            {
                "errors": [
                    {
                        "message": "The provided authorization grant is invalid.",
                        "field": None,
                    }
                ]
            }
        ).encode()

    class FailingClient(_StubSendGridAPIClient):
        def send(self, message):
            raise FakeForbiddenError()

    _configured(monkeypatch, FailingClient)

    with caplog.at_level("ERROR"):
        with pytest.raises(email_module.EmailDeliveryError) as excinfo:
            email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")

    assert excinfo.value.permanent is True
    assert excinfo.value.status_code == 403
    assert "status 403" in caplog.text
    assert "authorization grant is invalid" in caplog.text


@pytest.mark.parametrize("status_code", [429, 500, 503])
def test_server_and_throttling_errors_are_transient(monkeypatch, status_code) -> None:
    class FakeHTTPError(Exception):
        body = b'{"errors": [{"message": "try again later", "field": "rate"}]}'

        def __init__(self):
            super().__init__("HTTP Error")
            self.status_code = status_code

    class FailingClient(_StubSendGridAPIClient):
        def send(self, message):
            raise FakeHTTPError()

    _configured(monkeypatch, FailingClient)

    with pytest.raises(email_module.EmailDeliveryError) as excinfo:
        email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")

    assert excinfo.value.permanent is False
    assert "try again later (field: rate)" in str(excinfo.value)


def test_network_error_is_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    class OfflineClient(_StubSendGridAPIClient):
        def send(self, message):
            raise ConnectionError("Name or service not known")

    _configured(monkeypatch, OfflineClient)

    with pytest.raises(email_module.EmailDeliveryError) as excinfo:
        email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")

    assert excinfo.value.permanent is False
    assert "Name or service not known" in str(excinfo.value)


def test_unexpected_response_status_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    class OddClient(_StubSendGridAPIClient):
        def send(self, message):
            return types.SimpleNamespace(status_code=400, body="bad request")

    _configured(monkeypatch, OddClient)

    with pytest.raises(email_module.EmailDeliveryError) as excinfo:
        email_module.deliver_email("Subject", "<p>Body</p>", "user@example.com")

    assert excinfo.value.permanent is True
    assert "bad request" in str(excinfo.value)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [(None, False), (400, True), (401, True), (404, True), (408, False), (429, False), (500, False)],
)
def test_is_permanent_status(status_code, expected) -> None:
    assert email_module.is_permanent_status(status_code) is expected
