"""Per-search position cache — bounded, recency-ordered snapshots keyed by day.

Each search owns its own cache; nothing here is shared between searches.
Times are rounded to the nearest whole day and the snapshot is computed at
the rounded time, so every probe inside one day sees identical positions.
"""

from __future__ import annotations

import math
from collections import OrderedDict

import numpy as np

from bodies.processing import BodySystem
from mechanics.orbits import positions_at


class PositionCache:
    """Small LRU of position snapshots.

    Eviction is least-recently-used rather than oldest-inserted: a hit moves
    the entry to the young end, and a miss over capacity drops the entry that
    went longest without a lookup.  Day-by-day scans and stability probes
    revisit recent days, so the two policies differ only on those revisits.
    """

    def __init__(self, system: BodySystem, hours_per_day: int, max_size: int = 50) -> None:
        self._system = system
        self._hours_per_day = hours_per_day
        self._max_size = max_size
        self._entries: OrderedDict[float, dict[str, np.ndarray]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, hours: float) -> bool:
        return self.key(hours) in self._entries

    def key(self, hours: float) -> float:
        """Hours rounded half-up to the nearest whole day."""
        hpd = self._hours_per_day
        return float(math.floor(hours / hpd + 0.5) * hpd)

    def get(self, hours: float) -> dict[str, np.ndarray]:
        key = self.key(hours)
        snapshot = self._entries.get(key)
        if snapshot is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return snapshot

        self.misses += 1
        snapshot = positions_at(key, self._system)
        self._entries[key] = snapshot
        if len(self._entries) > self._max_size:
            self._entries.popitem(last=False)
        return snapshot

    def clear(self) -> None:
        self._entries.clear()
