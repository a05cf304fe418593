"""Static configuration for killwatch.

All user-editable settings (entities, feed, webhook, schedule, logging) live in
a single JSON file for quick edits without touching Python. Secrets such as
the webhook URL may instead come from the environment (.env is honoured).
"""

import json
import os

from dotenv import load_dotenv

from core.config import (
    FEED_FORMATS,
    PAYLOAD_FORMATS,
    FeedConfig,
    ResolverConfig,
    ScheduleConfig,
    WebhookConfig,
)
from core.errors import FatalStartupError

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Entities, feed and webhook settings are loaded from config.json so users can
# add corporations or tweak templates without editing code.
CONFIG_PATH = os.getenv("KILLWATCH_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FatalStartupError(f"Config file not found: {CONFIG_PATH}")

    try:
        with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as e:
        raise FatalStartupError(f"Failed to read config file {CONFIG_PATH}: {e}") from e


def _normalize_entities(raw_entities: list[dict]) -> list[dict]:
    """Drop disabled entries and coerce ids so seeding can trust the shape."""

    entities: list[dict] = []
    for entry in raw_entities:
        if not entry.get("enabled", True):
            continue
        try:
            external_id = int(entry["external_id"])
            excluded = [int(location_id) for location_id in entry.get("excluded_locations", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise FatalStartupError(f"Invalid entity entry {entry!r}: {e}") from e
        entities.append(
            {
                "external_id": external_id,
                "name": str(entry.get("name", external_id)),
                "kill_template": entry.get("kill_template", "{killername} killed {victimname} ({victimshipname})"),
                "loss_template": entry.get("loss_template", "{victimname} lost a {victimshipname} to {killername}"),
                "excluded_locations": excluded,
            }
        )
    return entities


def _resolve_db_path(raw_path: str) -> str:
    if os.path.isabs(raw_path):
        return raw_path
    return os.path.join(PROJECT_ROOT, raw_path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
DB_PATH = _resolve_db_path(_CONFIG.get("database", {}).get("path", "killwatch.db"))

# Feed settings. format selects the decoder: "json" or "xml".
_feed = _CONFIG.get("feed", {})
FEED = FeedConfig(
    base_url=_feed.get("base_url", "https://zkillboard.com"),
    format=_feed.get("format", "json"),
    user_agent=_feed.get("user_agent", "killwatch"),
    timeout_seconds=float(_feed.get("timeout_seconds", 30)),
)
if FEED.format not in FEED_FORMATS:
    raise FatalStartupError(f"feed.format must be one of {FEED_FORMATS}, got {FEED.format!r}")

# Lookups for regions, systems and ship names.
_resolver = _CONFIG.get("resolver", {})
RESOLVER = ResolverConfig(
    base_url=_resolver.get("base_url", "https://esi.evetech.net/latest"),
    datasource=_resolver.get("datasource", "tranquility"),
    timeout_seconds=float(_resolver.get("timeout_seconds", 10)),
)

# Webhook delivery. The URL is a secret, so WEBHOOK_URL in the environment
# takes precedence over the config file. It is only required by `run`.
_webhook = _CONFIG.get("webhook", {})
WEBHOOK = WebhookConfig(
    url=os.getenv("WEBHOOK_URL") or _webhook.get("url", ""),
    payload_format=_webhook.get("payload_format", "attachments"),
    rate_limit_seconds=float(_webhook.get("rate_limit_seconds", 1)),
    timeout_seconds=float(_webhook.get("timeout_seconds", 10)),
    link_base=_webhook.get("link_base", "https://zkillboard.com"),
)
if WEBHOOK.payload_format not in PAYLOAD_FORMATS:
    raise FatalStartupError(
        f"webhook.payload_format must be one of {PAYLOAD_FORMATS}, got {WEBHOOK.payload_format!r}"
    )

# Polling cadence; the first sweep always runs immediately.
SCHEDULE = ScheduleConfig(interval_seconds=float(_CONFIG.get("schedule", {}).get("interval_seconds", 300)))

# Tracked corporations, seeded into the store at startup.
ENTITIES = _normalize_entities(_CONFIG.get("entities", []))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
