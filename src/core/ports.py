"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, lookup, feed and notification
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from core.models import Category, CombatEvent, NotificationPayload, TrackedEntity


class EntityStorePort(Protocol):
    """Persistence operations required by the update cycle."""

    def load_all(self) -> list[TrackedEntity]:
        ...

    def load_excluded_locations(self, entity_id: int) -> list[int]:
        ...

    def save(self, entity: TrackedEntity) -> TrackedEntity:
        ...


class LocationResolverPort(Protocol):
    """Lookups for regions and display names. Failures raise ResolveError."""

    def query_region_id(self, location_id: int) -> int:
        ...

    def query_ship_name(self, ship_type_id: int) -> str:
        ...

    def query_location_name(self, location_id: int) -> str:
        ...


class FeedPort(Protocol):
    """Retrieves events newer than a watermark. Failures raise FetchError."""

    def fetch(self, entity: TrackedEntity, category: Category, after_watermark: int) -> Iterable[CombatEvent]:
        ...


class NotifierPort(Protocol):
    """Single delivery attempt of a rendered payload. Failures raise DeliveryError."""

    def send(self, payload: NotificationPayload) -> None:
        ...
