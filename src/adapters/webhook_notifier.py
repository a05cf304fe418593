"""Chat webhook notification adapter.

Posts the formatted payload to a Slack-compatible incoming webhook.
"""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request

from adapters.notification_formatting import format_payload
from core.config import WebhookConfig
from core.errors import DeliveryError
from core.models import NotificationPayload


class WebhookNotifier:
    """Notifier adapter that makes one POST per payload."""

    def __init__(self, config: WebhookConfig) -> None:
        if not config.url:
            raise ValueError("A webhook URL is required")
        self._config = config

    def send(self, payload: NotificationPayload) -> None:
        """Send the formatted notification, raising DeliveryError on any failure."""

        body = format_payload(payload, self._config.payload_format)
        data = json.dumps(body).encode("utf-8")
        request = urllib.request.Request(self._config.url, data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        # Blocking on purpose: the dispatcher paces sends one by one.
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                status = response.status
                response_body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace")
            raise DeliveryError(f"Webhook error {e.code}", status=e.code, body=error_body) from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise DeliveryError(f"Webhook request failed: {e}") from e

        if not 200 <= status < 300:
            raise DeliveryError(f"Webhook error {status}", status=status, body=response_body)
