"""Batch precompute — build the table of event occurrences over a long horizon.

For each event, search `next` from the start time, store the hit, advance a
short buffer past it, and repeat until the horizon or until nothing more is
found.  Each hit is persisted as soon as it is found, so a run can be
interrupted and resumed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from bodies.processing import BodySystem
from config import settings
from phenomena.catalog import CelestialEvent
from precompute.store import EventStore, PrecomputedEvent
from solver.engine import NEXT, CancelToken, EventSearch, SearchCancelled, SearchLimits

logger = logging.getLogger("almanac.precompute")

ProgressCallback = Callable[[dict], Awaitable[None]]


async def precompute_events(
    event_names: Iterable[str],
    events: dict[str, CelestialEvent],
    store: EventStore,
    system: BodySystem,
    start_hours: float = 0.0,
    max_years: float | None = None,
    resume: bool = True,
    cancel: CancelToken | None = None,
    limits: SearchLimits | None = None,
    on_progress: ProgressCallback | None = None,
) -> dict[str, int]:
    """Search each named event across the horizon.  Returns new finds per event.

    With `resume`, an event continues from its latest stored occurrence
    instead of `start_hours`.  Raises SearchCancelled if `cancel` is set
    mid-run; everything found up to that point is already persisted.
    """
    if max_years is None:
        max_years = settings.precompute_max_years
    hpd = system.hours_per_day
    max_hours = max_years * settings.days_per_year * hpd
    buffer_hours = settings.precompute_buffer_days * hpd

    store.load_all()
    found: dict[str, int] = {}

    names = list(event_names)
    logger.info("Starting %.0f-year search for %d events", max_years, len(names))

    for name in names:
        event = events.get(name)
        if event is None:
            logger.warning("Event '%s' not found in definitions; skipping", name)
            continue

        current = start_hours
        latest = store.latest(name) if resume else None
        if latest is not None and latest.hours + buffer_hours > current:
            current = latest.hours + buffer_hours
            logger.info("Resuming %s after stored occurrence at year %d", name, latest.year)

        found[name] = 0
        logger.info("Searching for %s from hours %.0f", name, current)

        while current < max_hours:
            search = EventSearch(
                current, event, system, NEXT,
                cancel=cancel, limits=limits, require_sun_clearance=True,
            )
            for progress in search.run():
                if on_progress is not None:
                    await on_progress(progress.to_dict())
                await asyncio.sleep(0)

            outcome = search.outcome
            if outcome.status == "cancelled":
                raise SearchCancelled(name, search.current_hours)

            result = outcome.result
            if result is None or result.found_hours >= max_hours:
                logger.info("No more occurrences of %s after hours %.0f", name, current)
                break

            record = PrecomputedEvent.from_result(name, result, hpd, settings.days_per_year)
            if store.append(record):
                found[name] += 1
                logger.info("Found %s at year %d, day %d", name, record.year, record.day)

            current = result.found_hours + buffer_hours

    logger.info("Precompute complete: %d new events, %d stored in %s",
                sum(found.values()), len(store), store.path)
    return found
