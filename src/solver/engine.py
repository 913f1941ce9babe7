"""Event search engine — locate the next/previous occurrence of a celestial event.

Phases of one search:

1. Escape  — if the event is already occurring at the start time, step out
             of it first so the current occurrence is not reported again.
2. Windows — scan, day by day, candidate windows centred on multiples of the
             event's recurrence period (pairwise synodic periods of its
             primary planets).
3. Broad   — linear day-by-day scan when no window produced a hit, or when
             the event has no usable recurrence period.

A hit only counts once the predicate stays met for a short stability window.

---------------------------------------------------------------------------
`EventSearch.run()` is a generator: it yields a SearchProgress every
`yield_every` iterations and once more when it finishes.  Hosts decide how
to schedule the steps (drain it, await between steps, run it in a worker)
and deliver cancellation through any object with `is_set()`, which is
polled at every yield point.
---------------------------------------------------------------------------
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import asdict, dataclass
from typing import Generator, Iterable, Protocol

from bodies.catalog import CelestialBody
from bodies.position_cache import PositionCache
from bodies.processing import BodySystem, preprocess
from config import settings
from mechanics.geometry import tilt_rotation
from phenomena.catalog import OCCULTATION, CelestialEvent
from solver.predicates import EventCheck, clears_suns, evaluate
from solver.recurrence import estimate_recurrence_days

logger = logging.getLogger("almanac.search")

NEXT = "next"
PREVIOUS = "previous"
FIRST = "first"
DIRECTIONS = (NEXT, PREVIOUS, FIRST)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class SearchCancelled(Exception):
    """Raised by the search drivers when cancellation was observed."""

    def __init__(self, event_name: str, hours: float):
        self.event_name = event_name
        self.hours = hours
        super().__init__(f"Search for '{event_name}' cancelled at hours {hours:.0f}")


@dataclass
class SearchLimits:
    """Numeric knobs of one search."""
    escape_step_days: float
    escape_budget_years: float
    window_min_half_days: float
    window_max_iterations: int
    lookahead_years: float
    broad_scan_years: float
    broad_max_iterations: int
    stable_days: int
    yield_every: int = 500
    cache_size: int = 50

    @classmethod
    def for_event(cls, event: CelestialEvent) -> SearchLimits:
        occ = event.type == OCCULTATION
        tight = occ or event.longitude_tolerance < settings.tight_tolerance_deg
        return cls(
            escape_step_days=settings.occultation_escape_step_days if occ else settings.escape_step_days,
            escape_budget_years=settings.occultation_escape_budget_years if occ else settings.escape_budget_years,
            window_min_half_days=settings.window_min_half_days,
            window_max_iterations=settings.window_max_iterations,
            lookahead_years=settings.occultation_lookahead_years if occ else settings.lookahead_years,
            broad_scan_years=settings.occultation_broad_scan_years if occ else settings.broad_scan_years,
            broad_max_iterations=(
                settings.occultation_broad_max_iterations if occ else settings.broad_max_iterations
            ),
            stable_days=settings.tight_stable_days if tight else settings.stable_days,
            yield_every=settings.yield_every,
            cache_size=settings.position_cache_size,
        )


@dataclass(frozen=True)
class EventSearchResult:
    found_hours: float
    viewing_latitude: float
    viewing_longitude: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SearchProgress:
    """Yielded by EventSearch.run() at every yield point."""
    event_name: str
    direction: str
    phase: str  # "init" | "escape" | "window" | "broad" | "done"
    iterations: int
    current_hours: float
    window_index: int = 0
    window_count: int = 0
    status: str = "running"  # "running" | "found" | "not_found" | "cancelled"
    result: EventSearchResult | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["result"] = self.result.to_dict() if self.result else None
        return d


class EventSearch:
    """One search invocation.  Owns its position cache; not shared."""

    def __init__(
        self,
        start_hours: float,
        event: CelestialEvent,
        system: BodySystem,
        direction: str = NEXT,
        cancel: CancelToken | None = None,
        limits: SearchLimits | None = None,
        require_sun_clearance: bool = False,
    ) -> None:
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {', '.join(DIRECTIONS)}, got '{direction}'")

        self.start_hours = float(start_hours)
        self.event = event
        self.system = system
        self.direction = direction
        self.limits = limits or SearchLimits.for_event(event)
        self.require_sun_clearance = require_sun_clearance
        self._cancel = cancel

        self.hours_per_day = system.hours_per_day
        self.hours_per_year = float(system.hours_per_day * settings.days_per_year)
        self._sign = -1 if direction == PREVIOUS else 1
        self._step = self.hours_per_day * self._sign

        self._cache = PositionCache(system, self.hours_per_day, self.limits.cache_size)
        observer = system.observer
        self._rotation = tilt_rotation(observer.axial_tilt) if observer is not None else None

        self.iterations = 0
        self.phase = "init"
        self.current_hours = self.start_hours
        self.window_index = 0
        self.window_count = 0
        self.outcome: SearchProgress | None = None

    @property
    def cache(self) -> PositionCache:
        return self._cache

    # ----- Predicate ----- #

    def check(self, hours: float) -> EventCheck:
        """Evaluate the event at `hours` (day-rounded via the cache)."""
        snapshot = self._cache.get(hours)
        result = evaluate(self.event, snapshot, self.system, self._rotation)
        if result.met and self.require_sun_clearance:
            if not clears_suns(
                self.event, snapshot, self.system, self._rotation,
                result.viewing_latitude, result.viewing_longitude,
            ):
                return EventCheck(False, result.viewing_latitude, result.viewing_longitude)
        return result

    # ----- Step function ----- #

    def run(self) -> Generator[SearchProgress, None, None]:
        """Run the search, yielding progress at every yield point."""
        try:
            result = yield from self._search()
        except SearchCancelled:
            logger.info("Search for %s cancelled at hours %.0f after %d iterations",
                        self.event.name, self.current_hours, self.iterations)
            self.outcome = self._progress("cancelled")
            yield self.outcome
            return

        self.phase = "done"
        if result is not None:
            logger.info("Found %s at hours %.0f (year %d) after %d iterations",
                        self.event.name, result.found_hours,
                        math.floor(result.found_hours / self.hours_per_year), self.iterations)
            self.outcome = self._progress("found", result)
        else:
            logger.info("No %s occurrence of %s within the search horizon (%d iterations)",
                        self.direction, self.event.name, self.iterations)
            self.outcome = self._progress("not_found")
        yield self.outcome

    def _progress(self, status: str = "running", result: EventSearchResult | None = None) -> SearchProgress:
        return SearchProgress(
            event_name=self.event.name,
            direction=self.direction,
            phase=self.phase,
            iterations=self.iterations,
            current_hours=self.current_hours,
            window_index=self.window_index,
            window_count=self.window_count,
            status=status,
            result=result,
        )

    def _tick(self, hours: float):
        """Count one iteration; every `yield_every` yield and poll cancellation."""
        self.iterations += 1
        self.current_hours = hours
        if self.iterations % self.limits.yield_every == 0:
            yield self._progress()
            if self._cancel is not None and self._cancel.is_set():
                raise SearchCancelled(self.event.name, hours)

    def _search(self):
        if self.system.observer is None:
            logger.warning("No observer body in catalog; cannot search for %s", self.event.name)
            return None

        current = 0.0 if self.direction == FIRST else self.start_hours
        if self.direction != FIRST:
            current = yield from self._escape(current)
            if current < 0:
                return None

        recurrence = estimate_recurrence_days(self.event, self.system.bodies)
        if recurrence is not None:
            hit = yield from self._scan_windows(current, recurrence)
            if hit is not None:
                return hit
            logger.debug("Candidate windows exhausted for %s; falling back to broad scan",
                         self.event.name)
        else:
            logger.debug("No recurrence period for %s; broad scan", self.event.name)

        return (yield from self._scan_broad(current))

    # ----- Phases ----- #

    def _escape(self, current: float):
        """Step out of an occurrence active at `current`."""
        self.phase = "escape"
        yield from self._tick(current)
        if not self.check(current).met:
            return current

        step = self.limits.escape_step_days * self.hours_per_day * self._sign
        budget = self.limits.escape_budget_years * self.hours_per_year
        start = current
        while True:
            current += step
            if current < 0:
                # Stepped back past hour 0
                break
            yield from self._tick(current)
            if abs(current - start) > budget:
                logger.warning("Could not escape current occurrence of %s within %.0f years",
                               self.event.name, self.limits.escape_budget_years)
                break
            if not self.check(current).met:
                break
        logger.debug("Escaped active %s occurrence: %.0f -> %.0f", self.event.name, start, current)
        return current

    def _scan_windows(self, start: float, recurrence_days: float):
        """Scan windows centred on multiples of the recurrence period."""
        self.phase = "window"
        limits = self.limits
        period = recurrence_days * self.hours_per_day
        half_days = max(
            limits.window_min_half_days,
            0.5 * (self.event.longitude_tolerance / 360.0) * recurrence_days,
        )
        half = half_days * self.hours_per_day
        lookahead = limits.lookahead_years * self.hours_per_year
        self.window_count = int(lookahead // period) + 1

        # First multiple whose window still reaches the search position
        if self._sign > 0:
            k = math.ceil((start - half) / period)
        else:
            k = math.floor((start + half) / period)
        first_k = k

        # Next hour not yet sampled; overlapping windows resume from here
        frontier = start
        self.window_index = 0
        while True:
            center = k * period
            if abs(center - start) > lookahead:
                break
            lo, hi = center - half, center + half
            if self._sign > 0:
                begin, end = max(lo, frontier), hi
            else:
                if hi < 0:
                    break
                begin, end = min(hi, frontier), max(lo, 0.0)

            self.window_index = abs(k - first_k) + 1
            hit = yield from self._scan_range(begin, end, limits.window_max_iterations)
            if hit is not None:
                return hit

            frontier = begin + math.floor((end - begin) / self._step) * self._step + self._step
            # Jump straight to the first window that still covers the frontier
            if self._sign > 0:
                k = max(k + 1, math.ceil((frontier - half) / period))
            else:
                if frontier < 0:
                    break
                k = min(k - 1, math.floor((frontier + half) / period))
        return None

    def _scan_broad(self, start: float):
        self.phase = "broad"
        horizon = self.limits.broad_scan_years * self.hours_per_year
        if self._sign > 0:
            end = start + horizon
        else:
            end = max(start - horizon, 0.0)
        return (yield from self._scan_range(start, end, self.limits.broad_max_iterations))

    def _scan_range(self, begin: float, end: float, max_iterations: int):
        """Day-resolution scan from `begin` towards `end` (inclusive)."""
        hours = begin
        count = 0
        while (hours <= end) if self._sign > 0 else (hours >= end):
            if count >= max_iterations:
                logger.debug("Iteration cap %d reached for %s in [%.0f, %.0f]; abandoning",
                             max_iterations, self.event.name, begin, end)
                return None
            count += 1
            yield from self._tick(hours)

            check = self.check(hours)
            if not check.met:
                hours += self._step
                continue

            stable, probe, used = yield from self._confirm(hours)
            count += used
            if stable:
                return EventSearchResult(
                    found_hours=hours,
                    viewing_latitude=check.viewing_latitude,
                    viewing_longitude=check.viewing_longitude,
                )
            # Resume past the point where stability broke
            hours = probe + self._step
        return None

    def _confirm(self, hours: float):
        """Require `stable_days` consecutive daily samples, the hit included."""
        probe = hours
        used = 0
        for _ in range(self.limits.stable_days - 1):
            probe += self._step
            used += 1
            yield from self._tick(probe)
            if not self.check(probe).met:
                return False, probe, used
        return True, probe, used


# --------------------------------------------------------------------------- #
#  Drivers
# --------------------------------------------------------------------------- #
def _unwrap(search: EventSearch) -> EventSearchResult | None:
    outcome = search.outcome
    if outcome is None or outcome.status == "cancelled":
        raise SearchCancelled(search.event.name, search.current_hours)
    return outcome.result


def find_event(
    start_hours: float,
    event: CelestialEvent,
    system: BodySystem,
    direction: str = NEXT,
    cancel: CancelToken | None = None,
    limits: SearchLimits | None = None,
    require_sun_clearance: bool = False,
) -> EventSearchResult | None:
    """Run a search to completion.  None means not found; raises SearchCancelled."""
    search = EventSearch(start_hours, event, system, direction, cancel, limits, require_sun_clearance)
    for _ in search.run():
        pass
    return _unwrap(search)


async def find_event_async(
    start_hours: float,
    event: CelestialEvent,
    system: BodySystem,
    direction: str = NEXT,
    cancel: CancelToken | None = None,
    limits: SearchLimits | None = None,
    require_sun_clearance: bool = False,
) -> EventSearchResult | None:
    """Like find_event, but hands control back to the event loop at every yield point."""
    search = EventSearch(start_hours, event, system, direction, cancel, limits, require_sun_clearance)
    for _ in search.run():
        await asyncio.sleep(0)
    return _unwrap(search)


def find_next_event(
    start_hours: float,
    event: CelestialEvent,
    stars: Iterable[CelestialBody],
    planets: Iterable[CelestialBody],
    direction: str = NEXT,
    cancel: CancelToken | None = None,
    limits: SearchLimits | None = None,
) -> EventSearchResult | None:
    """Search straight from catalog records (preprocessed and memoized here)."""
    system = preprocess(tuple(stars), tuple(planets), settings.hours_per_day)
    return find_event(start_hours, event, system, direction, cancel, limits)
