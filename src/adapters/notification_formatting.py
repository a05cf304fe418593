"""Shared notification formatting helpers.

Keeping webhook body formatting here prevents drift between payload formats
and keeps messages consistent regardless of which one is configured.
"""

from __future__ import annotations

from typing import Any

from core.models import NotificationPayload, PayloadField


def _escape_mrkdwn(value: str) -> str:
    # Slack only requires these three characters to be escaped in text.
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _attachment_field_value(field: PayloadField) -> str:
    value = _escape_mrkdwn(field.value)
    if field.link:
        return f"<{field.link}|{value}>"
    return value


def _format_attachments(payload: NotificationPayload) -> dict[str, Any]:
    """Create the rich attachment body used by Slack-compatible webhooks."""

    attachment: dict[str, Any] = {
        "title": payload.title,
        "title_link": payload.link,
        "fallback": payload.fallback,
        "color": payload.color,
        "fields": [
            {"title": field.title, "value": _attachment_field_value(field), "short": field.short}
            for field in payload.fields
        ],
        "unfurl_links": False,
    }
    if payload.thumb_url:
        attachment["thumb_url"] = payload.thumb_url
    return {"attachments": [attachment]}


def _format_text(payload: NotificationPayload) -> dict[str, Any]:
    """Create the legacy plain text body.

    Deprecated: kept for webhooks that cannot render attachments.
    """

    lines = [payload.title, payload.link, ""]
    for field in payload.fields:
        line = f"{field.title}: {field.value}"
        if field.link:
            line = f"{line} ({field.link})"
        lines.append(line)
    return {"text": "\n".join(lines)}


def format_payload(payload: NotificationPayload, mode: str) -> dict[str, Any]:
    """Return the webhook body for the requested payload format."""

    if mode == "attachments":
        return _format_attachments(payload)
    if mode == "text":
        return _format_text(payload)
    raise ValueError(f"Unsupported payload format: {mode}")
