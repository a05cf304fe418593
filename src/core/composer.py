"""Notification composition (core domain).

Turns a combat event and the entity's per-category template into a
NotificationPayload. Name lookups go through the resolver port; any
ResolveError aborts composing this event only.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping, Optional

from core.models import (
    Category,
    CombatEvent,
    NotificationPayload,
    Participant,
    PayloadField,
    TrackedEntity,
)
from core.ports import LocationResolverPort

LOGGER = logging.getLogger(__name__)

PLACEHOLDERS = (
    "victimname",
    "victimshipname",
    "victimcorpname",
    "killername",
    "killershipname",
    "killercorpname",
    "killid",
    "killlink",
)

_PLACEHOLDER_RE = re.compile(r"\{(" + "|".join(PLACEHOLDERS) + r")\}")

THUMB_URL = "https://images.evetech.net/types/{type_id}/render?size=64"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Replace every known placeholder in a single pass.

    Substituted values are never scanned again, so a victim named
    "{killername}" stays literal. Unknown braces are left untouched.
    """

    return _PLACEHOLDER_RE.sub(lambda match: values.get(match.group(1), ""), template)


def format_count(value: int) -> str:
    return f"{value:,}"


def format_isk(value: float) -> str:
    return f"{value:,.2f} ISK"


def find_killer(participants: Iterable[Participant]) -> Optional[Participant]:
    """Return the participant credited with the final blow, if any."""

    killer = None
    for participant in participants:
        if participant.final_blow:
            killer = participant
    return killer


def find_top_damage(participants: Iterable[Participant]) -> Optional[Participant]:
    """Return the player participant that dealt the most damage.

    NPCs (no character but a faction) never count. Ties keep the earliest
    participant.
    """

    top: Optional[Participant] = None
    top_damage = 0
    for participant in participants:
        if participant.character_id == 0 and participant.faction_id != 0:
            continue
        if participant.character_id != 0 and participant.damage_done > top_damage:
            top = participant
            top_damage = participant.damage_done
    return top


class MessageComposer:
    """Builds the payload posted for a kill or loss."""

    def __init__(
        self,
        resolver: LocationResolverPort,
        link_base: str = "https://zkillboard.com",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._resolver = resolver
        self._link_base = link_base.rstrip("/")
        self._logger = logger or LOGGER

    def kill_link(self, event_id: int) -> str:
        return f"{self._link_base}/kill/{event_id}/"

    def render(self, entity: TrackedEntity, event: CombatEvent, category: Category) -> NotificationPayload:
        killer = find_killer(event.participants)
        if killer is None:
            self._logger.warning(
                "Event #%d for entity #%d has no final blow participant",
                event.event_id,
                entity.external_id,
            )

        killer_name = ""
        killer_ship_name = ""
        killer_corp_name = ""
        if killer is not None:
            killer_ship_name = self._resolver.query_ship_name(killer.ship_type_id)
            # NPCs and structures have no character; the ship stands in for them.
            killer_name = killer.character_name if killer.character_id else killer_ship_name
            killer_corp_name = killer.corporation_name

        victim = event.victim
        victim_ship_name = self._resolver.query_ship_name(victim.ship_type_id)
        victim_name = victim.character_name if victim.character_id else victim_ship_name
        location_name = self._resolver.query_location_name(event.location_id)

        link = self.kill_link(event.event_id)
        title = render_template(
            entity.template(category),
            {
                "victimname": victim_name,
                "victimshipname": victim_ship_name,
                "victimcorpname": victim.corporation_name,
                "killername": killer_name,
                "killershipname": killer_ship_name,
                "killercorpname": killer_corp_name,
                "killid": str(event.event_id),
                "killlink": link,
            },
        )

        return NotificationPayload(
            title=title,
            link=link,
            color=category.color,
            fallback=title,
            thumb_url=THUMB_URL.format(type_id=victim.ship_type_id),
            fields=self._fields(event, category, victim_ship_name, location_name),
        )

    def _fields(
        self,
        event: CombatEvent,
        category: Category,
        victim_ship_name: str,
        location_name: str,
    ) -> tuple[PayloadField, ...]:
        top = find_top_damage(event.participants)
        if top is None:
            top_damage = PayloadField(title="Highest damage", value="Unknown")
        else:
            top_damage = PayloadField(
                title="Highest damage",
                value=f"{top.character_name} ({format_count(top.damage_done)} damage)",
                link=f"{self._link_base}/character/{top.character_id}/",
            )

        return (
            PayloadField(title=category.damage_label, value=format_count(event.victim.damage_taken)),
            PayloadField(title="Pilots involved", value=format_count(event.involved_count)),
            PayloadField(title="ISK value", value=format_isk(event.total_value)),
            top_damage,
            PayloadField(
                title="Solar system",
                value=location_name,
                link=f"{self._link_base}/system/{event.location_id}/",
            ),
            PayloadField(title="Ship", value=victim_ship_name),
            PayloadField(title="Timestamp", value=event.occurred_at.strftime(TIMESTAMP_FORMAT)),
            PayloadField(title="Kill ID", value=str(event.event_id)),
        )
