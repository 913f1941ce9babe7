#!/usr/bin/env python3
"""Precompute occurrences of the priority celestial events.

Finds every occurrence over a long horizon and writes them to the event
store, so the API can answer searches without scanning.  Each find is
persisted immediately; an interrupted run resumes from the latest stored
occurrence of each event.

Usage:
    python scripts/precompute_events.py
    python scripts/precompute_events.py --events "Great Conjunction" --max-years 5000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, "src")

from bodies.catalog import catalog_from_settings
from bodies.processing import preprocess
from config import settings
from phenomena.catalog import events_from_settings
from precompute.driver import precompute_events
from precompute.store import EventStore


async def main(
    event_names: list[str],
    start_hours: float,
    max_years: float,
    output: Path,
    resume: bool,
) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logger = logging.getLogger("precompute_events")

    stars, planets = catalog_from_settings()
    system = preprocess(stars, planets, settings.hours_per_day)
    events = events_from_settings()
    store = EventStore(output)

    logger.info("Precomputing %d events over %.0f years -> %s", len(event_names), max_years, output)

    t0 = time.time()
    found = await precompute_events(
        event_names, events, store, system,
        start_hours=start_hours, max_years=max_years, resume=resume,
    )
    elapsed = time.time() - t0

    for name, count in found.items():
        logger.info("  %-32s %d new", name, count)
    logger.info("Done. %d events stored in %.1f seconds.", len(store), elapsed)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Precompute celestial event occurrences")
    parser.add_argument("--events", nargs="+", default=list(settings.priority_events),
                        help="Event names to search (default: priority events)")
    parser.add_argument("--start-hours", type=float, default=0.0, help="Search start, hours since epoch")
    parser.add_argument("--max-years", type=float, default=settings.precompute_max_years,
                        help="Search horizon in years")
    parser.add_argument("--output", type=Path, default=settings.precomputed_events_path,
                        help="Event store JSON file")
    parser.add_argument("--no-resume", action="store_true",
                        help="Ignore stored occurrences and start from --start-hours")
    args = parser.parse_args()

    asyncio.run(main(args.events, args.start_hours, args.max_years, args.output, not args.no_resume))
