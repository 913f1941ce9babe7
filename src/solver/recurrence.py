"""Recurrence estimate for an event from its bodies' orbital periods.

The whole configuration cannot repeat faster than its slowest pairwise
realignment, so the recurrence is the largest finite synodic period among
the primary planets.  Used by the search engine to place candidate windows.
"""

from __future__ import annotations

import math
from itertools import combinations
from typing import Iterable

from bodies.catalog import STAR
from phenomena.catalog import CelestialEvent


def synodic_period(p1: float, p2: float) -> float:
    """Synodic period of two orbital periods (same unit); inf if undefined."""
    if p1 <= 0 or p2 <= 0 or p1 == p2:
        return math.inf
    return abs(1.0 / (1.0 / p1 - 1.0 / p2))


def estimate_recurrence_days(event: CelestialEvent, planets: Iterable) -> float | None:
    """Estimated recurrence period (days) of `event`, or None.

    `planets` is any iterable of catalog entries exposing `name`, `kind` and
    `orbit_period_days` (CelestialBody or ProcessedBody).  None means no
    orbital pruning is possible and the caller must scan broadly.
    """
    by_name = {p.name: p for p in planets if p.kind != STAR}

    periods = []
    for name in event.primary_bodies:
        body = by_name.get(name)
        if body is None:
            continue
        period = body.orbit_period_days
        if period is None or not math.isfinite(period) or period <= 0:
            continue
        periods.append(period)

    if len(periods) < 2:
        return None

    finite = [s for s in (synodic_period(a, b) for a, b in combinations(periods, 2)) if math.isfinite(s)]
    if not finite:
        return None

    recurrence = max(finite)
    if recurrence == 0 or not math.isfinite(recurrence):
        return None
    return recurrence
