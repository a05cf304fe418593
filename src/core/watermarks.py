"""Watermark helpers (core domain).

The watermark is the only dedup mechanism: anything at or below it has already
been delivered or deliberately skipped.
"""

from __future__ import annotations

from typing import Iterable

from core.models import CombatEvent


def sort_events(events: Iterable[CombatEvent]) -> list[CombatEvent]:
    """Return events ordered by ascending event id."""

    return sorted(events, key=lambda event: event.event_id)


def pending_events(events: Iterable[CombatEvent], watermark: int) -> list[CombatEvent]:
    """Return events newer than the watermark, ascending, without duplicates."""

    pending: list[CombatEvent] = []
    last_id = watermark
    for event in sort_events(events):
        # Upstream pages can overlap, so repeated ids are dropped here too.
        if event.event_id <= last_id:
            continue
        pending.append(event)
        last_id = event.event_id
    return pending
