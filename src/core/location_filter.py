"""Location exclusion logic (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.models import CombatEvent, TrackedEntity
from core.ports import LocationResolverPort

LOGGER = logging.getLogger(__name__)


class LocationFilter:
    """Decides whether an event happened somewhere its entity ignores.

    An exclusion id may name either the solar system itself or its region, so
    both are checked. Resolver failures are not swallowed here: the caller
    cannot tell whether the event is excluded and must skip it.
    """

    def __init__(self, resolver: LocationResolverPort, logger: Optional[logging.Logger] = None) -> None:
        self._resolver = resolver
        self._logger = logger or LOGGER

    def should_skip(self, entity: TrackedEntity, event: CombatEvent) -> bool:
        excluded = entity.excluded_locations
        if not excluded:
            return False

        if event.location_id in excluded:
            self._logger.debug(
                "Location #%d of event #%d is excluded for entity #%d",
                event.location_id,
                event.event_id,
                entity.external_id,
            )
            return True

        region_id = self._resolver.query_region_id(event.location_id)
        if region_id in excluded:
            self._logger.debug(
                "Region #%d (location #%d) of event #%d is excluded for entity #%d",
                region_id,
                event.location_id,
                event.event_id,
                entity.external_id,
            )
            return True
        return False
