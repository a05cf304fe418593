from __future__ import annotations

import http.client
import io
import json
import urllib.error
import urllib.request

import pytest

from adapters.webhook_notifier import WebhookNotifier
from core.config import WebhookConfig
from core.errors import DeliveryError
from core.models import NotificationPayload

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"ok") -> None:
        self.status = status
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> bool:
        return False


def _payload() -> NotificationPayload:
    return NotificationPayload(
        title="Bob killed Alice",
        link="https://zkillboard.com/kill/1001/",
        color="good",
        fallback="Bob killed Alice",
    )


def test_posts_json_attachment_body(monkeypatch) -> None:
    requests = []

    def fake_urlopen(request, timeout=None):
        requests.append((request, timeout))
        return FakeResponse()

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    WebhookNotifier(WebhookConfig(url=WEBHOOK_URL, timeout_seconds=5)).send(_payload())

    request, timeout = requests[0]
    assert request.full_url == WEBHOOK_URL
    assert request.get_method() == "POST"
    assert request.get_header("Content-type") == "application/json"
    assert timeout == 5
    body = json.loads(request.data.decode("utf-8"))
    assert body["attachments"][0]["title"] == "Bob killed Alice"


def test_text_payload_format(monkeypatch) -> None:
    requests = []

    def fake_urlopen(request, timeout=None):
        requests.append(request)
        return FakeResponse()

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    WebhookNotifier(WebhookConfig(url=WEBHOOK_URL, payload_format="text")).send(_payload())

    body = json.loads(requests[0].data.decode("utf-8"))
    assert body["text"].startswith("Bob killed Alice\nhttps://zkillboard.com/kill/1001/")


def test_http_error_carries_response_body(monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise urllib.error.HTTPError(WEBHOOK_URL, 400, "Bad Request", None, io.BytesIO(b"invalid_payload"))

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(DeliveryError) as excinfo:
        WebhookNotifier(WebhookConfig(url=WEBHOOK_URL)).send(_payload())

    assert excinfo.value.status == 400
    assert excinfo.value.body == "invalid_payload"


def test_non_success_status_is_delivery_error(monkeypatch) -> None:
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda request, timeout=None: FakeResponse(status=302, body=b"moved"),
    )

    with pytest.raises(DeliveryError) as excinfo:
        WebhookNotifier(WebhookConfig(url=WEBHOOK_URL)).send(_payload())

    assert excinfo.value.status == 302
    assert excinfo.value.body == "moved"


def test_connection_error_is_delivery_error(monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(DeliveryError) as excinfo:
        WebhookNotifier(WebhookConfig(url=WEBHOOK_URL)).send(_payload())

    assert excinfo.value.status is None


def test_url_is_required() -> None:
    with pytest.raises(ValueError):
        WebhookNotifier(WebhookConfig(url=""))


def test_truncated_response_is_delivery_error(monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise http.client.IncompleteRead(b"o")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(DeliveryError) as excinfo:
        WebhookNotifier(WebhookConfig(url=WEBHOOK_URL)).send(_payload())

    assert excinfo.value.status is None
