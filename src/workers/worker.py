"""ARQ worker — runs event searches and precompute batches in the background.

This worker process is started separately (via `arq workers.worker.WorkerSettings`)
and picks up jobs from the Redis queue.
"""

from __future__ import annotations

import asyncio
import json
import logging

from bodies.catalog import catalog_from_settings
from bodies.processing import preprocess
from config import settings
from jobs.dispatcher import (
    CHANNEL_PREFIX,
    JOB_PREFIX,
    _redis_settings,
    get_redis,
    is_cancel_requested,
    publish_progress,
)
from phenomena.catalog import events_from_settings
from precompute.driver import precompute_events
from precompute.store import EventStore
from solver.engine import NEXT, EventSearch, SearchCancelled

logger = logging.getLogger("almanac.worker")


async def startup(ctx: dict) -> None:
    """Called once when the worker starts. Loads catalogs and the event store."""
    stars, planets = catalog_from_settings()
    ctx["system"] = preprocess(stars, planets, settings.hours_per_day)
    ctx["events"] = events_from_settings()
    ctx["store"] = EventStore(settings.precomputed_events_path)
    logger.info("Worker ready — %d bodies, %d events",
                len(ctx["system"]), len(ctx["events"]))


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""
    logger.info("Worker shutting down")


async def _mark_running(job_id: str) -> None:
    r = await get_redis()
    try:
        await r.hset(f"{JOB_PREFIX}{job_id}", "status", "running")
    finally:
        await r.close()


async def _publish_failure(job_id: str, kind: str, error: str) -> dict:
    r = await get_redis()
    try:
        await r.hset(f"{JOB_PREFIX}{job_id}", "status", "failed")
        payload = json.dumps({"status": "failed", "job_id": job_id, "type": kind, "error": error})
        await r.publish(f"{CHANNEL_PREFIX}{job_id}", payload)
    finally:
        await r.close()
    return {"status": "failed", "job_id": job_id, "error": error}


async def run_event_search(ctx: dict, job_id: str, request_data: dict) -> dict:
    """Execute one event search and stream progress via Redis pub/sub.

    This is the ARQ task function registered with the worker.
    """
    name = request_data["event"]
    event = ctx["events"].get(name)
    if event is None:
        return await _publish_failure(job_id, "search", f"Unknown event '{name}'")

    cancel = asyncio.Event()
    try:
        search = EventSearch(
            request_data.get("start_hours", 0.0),
            event,
            ctx["system"],
            request_data.get("direction", NEXT),
            cancel=cancel,
        )
    except (TypeError, ValueError) as e:
        logger.error("Search job %s rejected: %s", job_id, e)
        return await _publish_failure(job_id, "search", str(e))
    logger.info("Starting search job %s: %s (%s from hours %.0f)",
                job_id, name, search.direction, search.start_hours)

    await _mark_running(job_id)
    r = await get_redis()
    try:
        for progress in search.run():
            if progress.status == "running":
                await publish_progress(r, job_id, progress.to_dict())
                # Picked up by the engine when the generator resumes
                if await is_cancel_requested(r, job_id):
                    cancel.set()
            await asyncio.sleep(0)

        outcome = search.outcome
        status = "cancelled" if outcome.status == "cancelled" else "complete"
        await publish_progress(r, job_id, outcome.to_dict(), status=status)
        logger.info("Search job %s %s — %s", job_id, status, outcome.status)
        return {"status": status, "job_id": job_id, "result": outcome.to_dict()}

    except Exception as e:
        logger.error("Search job %s failed: %s", job_id, e)
        return await _publish_failure(job_id, "search", str(e))
    finally:
        await r.close()


async def run_precompute(ctx: dict, job_id: str, request_data: dict) -> dict:
    """Execute a batch precompute job, persisting every find as it happens."""
    names = request_data.get("events") or list(settings.priority_events)
    logger.info("Starting precompute job %s: %s", job_id, ", ".join(names))

    await _mark_running(job_id)
    cancel = asyncio.Event()
    r = await get_redis()

    async def on_progress(payload: dict) -> None:
        if payload["status"] != "running":
            return
        await publish_progress(r, job_id, payload)
        if await is_cancel_requested(r, job_id):
            cancel.set()

    try:
        found = await precompute_events(
            names,
            ctx["events"],
            ctx["store"],
            ctx["system"],
            start_hours=request_data.get("start_hours", 0.0),
            max_years=request_data.get("max_years"),
            resume=request_data.get("resume", True),
            cancel=cancel,
            on_progress=on_progress,
        )
    except SearchCancelled as e:
        logger.info("Precompute job %s cancelled during %s", job_id, e.event_name)
        await publish_progress(r, job_id, {"event_name": e.event_name, "current_hours": e.hours},
                               status="cancelled")
        await r.close()
        return {"status": "cancelled", "job_id": job_id}
    except Exception as e:
        logger.error("Precompute job %s failed: %s", job_id, e)
        await r.close()
        return await _publish_failure(job_id, "precompute", str(e))

    await publish_progress(r, job_id, {"found": found, "stored": len(ctx["store"])}, status="complete")
    await r.close()
    logger.info("Precompute job %s complete — %d new events", job_id, sum(found.values()))
    return {"status": "complete", "job_id": job_id, "found": found}


class WorkerSettings:
    """ARQ worker settings class."""
    functions = [run_event_search, run_precompute]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 4
    job_timeout = 3600  # precompute batches run long
