"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

FEED_FORMATS = ("json", "xml")
PAYLOAD_FORMATS = ("attachments", "text")


@dataclass(frozen=True)
class FeedConfig:
    """Where and how combat events are pulled."""

    base_url: str = "https://zkillboard.com"
    format: str = "json"
    user_agent: str = "killwatch"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ResolverConfig:
    """Location and type name lookup settings."""

    base_url: str = "https://esi.evetech.net/latest"
    datasource: str = "tranquility"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class WebhookConfig:
    """Notification delivery settings consumed by the dispatcher."""

    url: str
    payload_format: str = "attachments"
    rate_limit_seconds: float = 1.0
    timeout_seconds: float = 10.0
    link_base: str = "https://zkillboard.com"


@dataclass(frozen=True)
class ScheduleConfig:
    """Polling cadence for the update cycle."""

    interval_seconds: float = 300.0
