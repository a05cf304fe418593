"""zKillboard feed adapter.

Implements the core FeedPort over HTTP. zKillboard has served the same data in
two encodings over the years (a JSON list and an EVE API style XML rowset);
both decoders produce the same CombatEvent so nothing downstream cares which
one is configured.
"""

from __future__ import annotations

import gzip
import http.client
import json
import logging
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
import zlib
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from core.config import FeedConfig
from core.errors import FetchError
from core.models import Category, CombatEvent, Participant, TrackedEntity, Victim
from core.watermarks import pending_events

LOGGER = logging.getLogger(__name__)

_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%SZ", "%Y.%m.%d %H:%M:%S")


def _int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(float(value))


def _float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    return float(value)


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def parse_timestamp(raw: str) -> datetime:
    """Parse a feed timestamp; feed times are always UTC."""

    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized timestamp: {raw!r}")


def _victim(data: Mapping[str, Any]) -> Victim:
    return Victim(
        character_id=_int(data.get("characterID")),
        character_name=_str(data.get("characterName")),
        corporation_id=_int(data.get("corporationID")),
        corporation_name=_str(data.get("corporationName")),
        alliance_id=_int(data.get("allianceID")),
        alliance_name=_str(data.get("allianceName")),
        faction_id=_int(data.get("factionID")),
        faction_name=_str(data.get("factionName")),
        ship_type_id=_int(data.get("shipTypeID")),
        damage_taken=_int(data.get("damageTaken")),
    )


def _participant(data: Mapping[str, Any]) -> Participant:
    return Participant(
        character_id=_int(data.get("characterID")),
        character_name=_str(data.get("characterName")),
        corporation_id=_int(data.get("corporationID")),
        corporation_name=_str(data.get("corporationName")),
        alliance_id=_int(data.get("allianceID")),
        alliance_name=_str(data.get("allianceName")),
        faction_id=_int(data.get("factionID")),
        faction_name=_str(data.get("factionName")),
        ship_type_id=_int(data.get("shipTypeID")),
        weapon_type_id=_int(data.get("weaponTypeID")),
        damage_done=_int(data.get("damageDone")),
        final_blow=_int(data.get("finalBlow")) == 1,
        security_status=_float(data.get("securityStatus")),
    )


def decode_json(body: str) -> list[CombatEvent]:
    """Decode the JSON list encoding. Empty bodies mean no new events."""

    if not body.strip():
        return []
    try:
        entries = json.loads(body)
    except json.JSONDecodeError as exc:
        raise FetchError(f"Invalid JSON feed response: {exc}") from exc
    if entries is None:
        return []
    if isinstance(entries, dict) and "error" in entries:
        raise FetchError(f"Feed returned an error: {entries['error']}")
    if not isinstance(entries, list):
        raise FetchError(f"Unexpected JSON feed response type: {type(entries).__name__}")

    events: list[CombatEvent] = []
    try:
        for entry in entries:
            zkb = entry.get("zkb") or {}
            events.append(
                CombatEvent(
                    event_id=_int(entry["killID"]),
                    location_id=_int(entry.get("solarSystemID")),
                    occurred_at=parse_timestamp(entry["killTime"]),
                    victim=_victim(entry.get("victim") or {}),
                    participants=tuple(_participant(a) for a in entry.get("attackers") or []),
                    item_count=len(entry.get("items") or []),
                    total_value=_float(zkb.get("totalValue")),
                )
            )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise FetchError(f"Malformed JSON feed entry: {exc!r}") from exc
    return events


def _rowset(element: ET.Element, name: str) -> list[ET.Element]:
    for rowset in element.findall("rowset"):
        if rowset.get("name") == name:
            return rowset.findall("row")
    return []


def _zkb_value(row: ET.Element, key: str) -> Optional[str]:
    # Older documents put zkb data in attributes, newer ones in child elements.
    zkb = row.find("zkb")
    if zkb is None:
        return None
    if key in zkb.attrib:
        return zkb.get(key)
    return zkb.findtext(key)


def decode_xml(body: str) -> list[CombatEvent]:
    """Decode the EVE API style XML rowset encoding."""

    if not body.strip():
        return []
    try:
        # Bytes, so documents carrying an encoding declaration are accepted.
        root = ET.fromstring(body.encode("utf-8"))
    except (ET.ParseError, ValueError) as exc:
        raise FetchError(f"Invalid XML feed response: {exc}") from exc

    error = root.find("error")
    if error is not None:
        raise FetchError(f"Feed returned an error {error.get('code', '')}: {(error.text or '').strip()}")

    result = root.find("result")
    if result is None:
        raise FetchError("XML feed response has no result element")

    rows: list[ET.Element] = []
    for rowset in result.findall("rowset"):
        rows.extend(rowset.findall("row"))

    events: list[CombatEvent] = []
    try:
        for row in rows:
            victim = row.find("victim")
            events.append(
                CombatEvent(
                    event_id=_int(row.get("killID")),
                    location_id=_int(row.get("solarSystemID")),
                    occurred_at=parse_timestamp(row.get("killTime", "")),
                    victim=_victim(victim.attrib if victim is not None else {}),
                    participants=tuple(_participant(a.attrib) for a in _rowset(row, "attackers")),
                    item_count=len(_rowset(row, "items")),
                    total_value=_float(_zkb_value(row, "totalValue")),
                )
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise FetchError(f"Malformed XML feed row: {exc!r}") from exc
    return events


DECODERS: dict[str, Callable[[str], list[CombatEvent]]] = {
    "json": decode_json,
    "xml": decode_xml,
}


class ZKillboardFeed:
    """Fetches kills or losses for one entity newer than a watermark."""

    def __init__(self, config: FeedConfig, logger: Optional[logging.Logger] = None) -> None:
        if config.format not in DECODERS:
            raise ValueError(f"Unsupported feed format: {config.format}")
        self._config = config
        self._decode = DECODERS[config.format]
        self._logger = logger or LOGGER

    def _endpoint(self, entity: TrackedEntity, category: Category, after_watermark: int) -> str:
        url = (
            f"{self._config.base_url.rstrip('/')}/api/{category.feed_segment}"
            f"/corporationID/{entity.external_id}/afterKillID/{after_watermark}/"
        )
        if self._config.format == "xml":
            url += "xml/"
        return url

    def _get(self, url: str) -> str:
        request = urllib.request.Request(url, method="GET")
        request.add_header("User-Agent", self._config.user_agent)
        request.add_header("Accept-Encoding", "gzip")
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                status = response.status
                raw = response.read()
                encoding = response.headers.get("Content-Encoding", "")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise FetchError(f"Feed error {e.code} for {url}: {body}") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise FetchError(f"Feed request failed for {url}: {e}") from e

        if status == 204:
            return ""
        if status != 200:
            raise FetchError(f"Unexpected feed status {status} for {url}")
        if encoding == "gzip":
            try:
                raw = gzip.decompress(raw)
            except (OSError, EOFError, zlib.error) as e:
                raise FetchError(f"Invalid gzip feed body for {url}: {e}") from e
        return raw.decode("utf-8", errors="replace")

    def fetch(self, entity: TrackedEntity, category: Category, after_watermark: int) -> list[CombatEvent]:
        url = self._endpoint(entity, category, after_watermark)
        self._logger.debug("Querying feed %s", url)
        events = self._decode(self._get(url))
        return pending_events(events, after_watermark)
