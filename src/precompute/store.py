"""Persisted event store — found occurrences, sorted by hours, one per (name, hours).

Backed by a JSON file.  Every append rewrites the file through a temporary
file and an atomic rename, so an interrupted batch run never leaves a
half-written store behind.
"""

from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

from solver.engine import NEXT, PREVIOUS, EventSearchResult

logger = logging.getLogger("almanac.store")


@dataclass(frozen=True)
class PrecomputedEvent:
    name: str
    hours: float
    year: int
    day: int  # 1-based day of year
    latitude: float
    longitude: float

    @property
    def key(self) -> tuple[str, float]:
        return self.name, self.hours

    @classmethod
    def from_result(
        cls,
        name: str,
        result: EventSearchResult,
        hours_per_day: int,
        days_per_year: int,
    ) -> PrecomputedEvent:
        hours = result.found_hours
        return cls(
            name=name,
            hours=hours,
            year=math.floor(hours / (days_per_year * hours_per_day)),
            day=math.floor((hours / hours_per_day) % days_per_year) + 1,
            latitude=result.viewing_latitude,
            longitude=result.viewing_longitude,
        )


def _parse_record(raw: dict) -> PrecomputedEvent:
    if not isinstance(raw, dict):
        raise TypeError(f"expected a record object, got {type(raw).__name__}")
    record = PrecomputedEvent(**raw)
    numeric = (record.hours, record.year, record.day, record.latitude, record.longitude)
    if not isinstance(record.name, str) or any(
        isinstance(v, bool) or not isinstance(v, (int, float)) for v in numeric
    ):
        raise TypeError(f"malformed record {raw!r}")
    return record


class EventStore:
    """Load-all / append-one / overwrite-all store of precomputed events."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._records: list[PrecomputedEvent] = []
        self._keys: set[tuple[str, float]] = set()
        self._signature: tuple[int, int, int] | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    @property
    def records(self) -> list[PrecomputedEvent]:
        return list(self._records)

    def load_all(self) -> list[PrecomputedEvent]:
        """Read the store from disk.  Unreadable data yields an empty store."""
        self._records = []
        self._keys = set()
        self._signature = self._disk_signature()
        if self._signature is None:
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, list):
                raise TypeError(f"expected a list of records, got {type(raw).__name__}")
            records = sorted((_parse_record(r) for r in raw), key=lambda r: r.hours)
        except (OSError, ValueError, TypeError, KeyError) as e:
            # ValueError covers both JSONDecodeError and UnicodeDecodeError
            logger.warning("Could not parse event store %s (%s); starting empty", self.path, e)
            return []

        for r in records:
            if r.key not in self._keys:
                self._keys.add(r.key)
                self._records.append(r)
        logger.info("Loaded %d precomputed events from %s", len(self._records), self.path)
        return self.records

    def append(self, record: PrecomputedEvent) -> bool:
        """Add one record and persist immediately.  False if it was a duplicate."""
        if record.key in self._keys:
            return False
        self._keys.add(record.key)
        self._records.append(record)
        self._records.sort(key=lambda r: r.hours)
        self._save()
        return True

    def overwrite_all(self, records: list[PrecomputedEvent]) -> None:
        self._records = []
        self._keys = set()
        for r in sorted(records, key=lambda r: r.hours):
            if r.key not in self._keys:
                self._keys.add(r.key)
                self._records.append(r)
        self._save()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".events-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([asdict(r) for r in self._records], f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise
        self._signature = self._disk_signature()

    def _disk_signature(self) -> tuple[int, int, int] | None:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size, st.st_ino

    def refresh(self) -> bool:
        """Reload if another process rewrote the file since our last load or save."""
        if self._disk_signature() == self._signature:
            return False
        self.load_all()
        return True

    # ----- Queries ----- #

    def for_event(self, name: str) -> list[PrecomputedEvent]:
        return [r for r in self._records if r.name == name]

    def latest(self, name: str) -> PrecomputedEvent | None:
        matches = self.for_event(name)
        return matches[-1] if matches else None

    def nearest(self, name: str, hours: float, direction: str = NEXT) -> PrecomputedEvent | None:
        """Closest stored occurrence strictly after (next) or before (previous) `hours`."""
        matches = self.for_event(name)
        if direction == PREVIOUS:
            earlier = [r for r in matches if r.hours < hours]
            return earlier[-1] if earlier else None
        later = [r for r in matches if r.hours > hours]
        return later[0] if later else None
