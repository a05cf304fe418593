"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any feed, webhook or storage-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Category(Enum):
    """The two feeds polled for every tracked entity."""

    KILL = "kill"
    LOSS = "loss"

    @property
    def feed_segment(self) -> str:
        return "kills" if self is Category.KILL else "losses"

    @property
    def watermark_attr(self) -> str:
        return "last_kill_id" if self is Category.KILL else "last_loss_id"

    @property
    def template_attr(self) -> str:
        return "kill_template" if self is Category.KILL else "loss_template"

    @property
    def color(self) -> str:
        return "good" if self is Category.KILL else "danger"

    @property
    def damage_label(self) -> str:
        return "Damage dealt" if self is Category.KILL else "Damage taken"


@dataclass
class TrackedEntity:
    """A tracked corporation together with its per-category watermarks.

    Only the watermarks change while the watcher runs; every other field is
    refreshed from configuration at startup.
    """

    id: Optional[int]
    external_id: int
    name: str
    last_kill_id: int = 0
    last_loss_id: int = 0
    kill_template: str = ""
    loss_template: str = ""
    excluded_locations: frozenset[int] = field(default_factory=frozenset)

    def watermark(self, category: Category) -> int:
        return getattr(self, category.watermark_attr)

    def template(self, category: Category) -> str:
        return getattr(self, category.template_attr)

    def advance(self, category: Category, event_id: int) -> bool:
        """Move the watermark forward to event_id; never moves it back."""

        if event_id <= self.watermark(category):
            return False
        setattr(self, category.watermark_attr, event_id)
        return True


@dataclass(frozen=True)
class Victim:
    """The losing side of a combat event."""

    character_id: int = 0
    character_name: str = ""
    corporation_id: int = 0
    corporation_name: str = ""
    alliance_id: int = 0
    alliance_name: str = ""
    faction_id: int = 0
    faction_name: str = ""
    ship_type_id: int = 0
    damage_taken: int = 0


@dataclass(frozen=True)
class Participant:
    """One attacker listed on a combat event."""

    character_id: int = 0
    character_name: str = ""
    corporation_id: int = 0
    corporation_name: str = ""
    alliance_id: int = 0
    alliance_name: str = ""
    faction_id: int = 0
    faction_name: str = ""
    ship_type_id: int = 0
    weapon_type_id: int = 0
    damage_done: int = 0
    final_blow: bool = False
    security_status: float = 0.0


@dataclass(frozen=True)
class CombatEvent:
    """Normalized feed entry, independent of the upstream encoding."""

    event_id: int
    location_id: int
    occurred_at: datetime
    victim: Victim
    participants: tuple[Participant, ...] = ()
    item_count: int = 0
    total_value: float = 0.0

    @property
    def involved_count(self) -> int:
        return len(self.participants)


@dataclass(frozen=True)
class PayloadField:
    """A labelled value shown beneath the notification title."""

    title: str
    value: str
    short: bool = True
    link: Optional[str] = None


@dataclass(frozen=True)
class NotificationPayload:
    """Rendered notification, serialized to a webhook body by an adapter."""

    title: str
    link: str
    color: str
    fallback: str
    thumb_url: Optional[str] = None
    fields: tuple[PayloadField, ...] = ()
