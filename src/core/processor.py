"""Core update cycle.

This module is integration-agnostic. It only relies on ports for the feed,
storage and notifications. Per entity and category the order is strict:
1) Fetch events newer than the stored watermark
2) Walk them in ascending event id order
3) Skip events in excluded locations (the watermark still moves past them)
4) Compose and dispatch the notification
5) Advance the in-memory watermark after a successful delivery
6) Persist the entity once both categories were handled

Errors are contained at the smallest useful scope so one bad entity or event
cannot starve the rest of the sweep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from core.composer import MessageComposer
from core.dispatcher import Dispatcher
from core.errors import DeliveryError, FetchError, PersistenceError, ResolveError
from core.location_filter import LocationFilter
from core.models import Category, TrackedEntity
from core.ports import EntityStorePort, FeedPort
from core.watermarks import pending_events

LOGGER = logging.getLogger(__name__)

CATEGORIES = (Category.KILL, Category.LOSS)


@dataclass
class SweepReport:
    """Counters collected over one sweep for the summary log line."""

    entities: int = 0
    fetched: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0


class UpdateCycle:
    """Orchestrates fetching, filtering, composing, delivery and persistence."""

    def __init__(
        self,
        feed: FeedPort,
        location_filter: LocationFilter,
        composer: MessageComposer,
        dispatcher: Dispatcher,
        store: EntityStorePort,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._feed = feed
        self._filter = location_filter
        self._composer = composer
        self._dispatcher = dispatcher
        self._store = store
        self._logger = logger or LOGGER

    def run(self, entities: Iterable[TrackedEntity]) -> SweepReport:
        """Run one sweep over every tracked entity."""

        report = SweepReport()
        for entity in entities:
            report.entities += 1
            try:
                self.update(entity, report)
            except Exception:
                report.failed += 1
                self._logger.exception("Unexpected error while updating entity #%d", entity.external_id)
        self._logger.info(
            "Sweep complete: entities=%s, fetched=%s, delivered=%s, skipped=%s, failed=%s",
            report.entities,
            report.fetched,
            report.delivered,
            report.skipped,
            report.failed,
        )
        return report

    def update(self, entity: TrackedEntity, report: Optional[SweepReport] = None) -> None:
        """Process both categories for one entity and persist its watermarks."""

        report = report if report is not None else SweepReport()
        self._logger.debug("Running update for entity #%d (%s)", entity.external_id, entity.name)

        for category in CATEGORIES:
            try:
                self._process_category(entity, category, report)
            except FetchError as exc:
                # Watermark is untouched, so the same range is retried next sweep.
                report.failed += 1
                self._logger.error(
                    "Failed to fetch %ss for entity #%d: %s",
                    category.value,
                    entity.external_id,
                    exc,
                )

        # Saved even when nothing changed, matching the store's upsert contract.
        try:
            self._store.save(entity)
        except PersistenceError as exc:
            report.failed += 1
            self._logger.error(
                "Failed to persist watermarks for entity #%d (kill=%d, loss=%d): %s",
                entity.external_id,
                entity.last_kill_id,
                entity.last_loss_id,
                exc,
            )
            return

        self._logger.debug(
            "Finished update for entity #%d (kill=%d, loss=%d)",
            entity.external_id,
            entity.last_kill_id,
            entity.last_loss_id,
        )

    def _process_category(self, entity: TrackedEntity, category: Category, report: SweepReport) -> None:
        watermark = entity.watermark(category)
        events = pending_events(self._feed.fetch(entity, category, watermark), watermark)
        report.fetched += len(events)
        self._logger.debug(
            "Fetched %d %ss for entity #%d after #%d",
            len(events),
            category.value,
            entity.external_id,
            watermark,
        )

        for event in events:
            try:
                skip = self._filter.should_skip(entity, event)
            except ResolveError as exc:
                # Cannot tell whether the location is excluded; never risk leaking it.
                report.failed += 1
                self._logger.warning(
                    "Skipping %s #%d for entity #%d, region lookup for location #%d failed: %s",
                    category.value,
                    event.event_id,
                    entity.external_id,
                    event.location_id,
                    exc,
                )
                continue

            if skip:
                report.skipped += 1
                entity.advance(category, event.event_id)
                continue

            try:
                payload = self._composer.render(entity, event, category)
            except ResolveError as exc:
                report.failed += 1
                self._logger.warning(
                    "Skipping %s #%d for entity #%d, name lookup failed: %s",
                    category.value,
                    event.event_id,
                    entity.external_id,
                    exc,
                )
                continue

            try:
                self._dispatcher.send(payload)
            except DeliveryError as exc:
                # Later events wait for the next sweep so the watermark never
                # moves past an undelivered event.
                report.failed += 1
                self._logger.error(
                    "Failed to deliver %s #%d for entity #%d (status=%s): %s %s",
                    category.value,
                    event.event_id,
                    entity.external_id,
                    exc.status,
                    exc,
                    exc.body,
                )
                return

            report.delivered += 1
            entity.advance(category, event.event_id)
            self._logger.info(
                "Delivered %s #%d for entity #%d",
                category.value,
                event.event_id,
                entity.external_id,
            )
