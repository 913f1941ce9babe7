"""HTTP REST endpoints for the almanac API.

- /health                          — Health check
- /bodies                          — Body catalog
- /events                          — Event catalog
- /positions                       — Position snapshot at a time
- /events/{name}/check             — Is the event occurring at a time?
- /events/{name}/recurrence        — Estimated recurrence period
- /search                          — In-process event search
- /search/jobs                     — Submit a background search job
- /search/jobs/{id}/status|cancel  — Poll / cancel a job
- /precompute                      — Submit a batch precompute job
- /precomputed                     — Stored occurrences
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator
from redis.exceptions import RedisError

from bodies.catalog import CelestialBody
from bodies.processing import BodySystem
from config import settings
from jobs.dispatcher import cancel_job, get_job_status, submit_precompute, submit_search
from mechanics.geometry import tilt_rotation
from mechanics.orbits import positions_at, snapshot_to_dict
from phenomena.catalog import CelestialEvent
from precompute.store import EventStore
from solver.engine import DIRECTIONS, FIRST, NEXT, find_event_async
from solver.predicates import evaluate
from solver.recurrence import estimate_recurrence_days

logger = logging.getLogger("almanac.api")
router = APIRouter()


# --------------------------------------------------------------------------- #
#  Pydantic models for request/response
# --------------------------------------------------------------------------- #

class BodyOut(BaseModel):
    name: str
    kind: str
    size: float
    orbit_radius: float | None = None
    orbit_period_days: float | None = None
    initial_phase: float
    eccentricity: float
    axial_tilt: float
    color: str
    orbit_center: str | None = None
    observer: bool = False


class EventOut(BaseModel):
    name: str
    description: str
    type: str
    primary_bodies: list[str]
    secondary_bodies: list[str]
    longitude_tolerance: float
    visibility_condition: str | None = None


class SearchRequest(BaseModel):
    event: str = Field(description="Event name, e.g. 'Great Conjunction'")
    start_hours: float = Field(default=0.0, ge=0, description="Hours since epoch 0")
    direction: str = Field(default=NEXT, description="'next', 'previous' or 'first'")
    use_precomputed: bool = Field(default=False, description="Answer from the event store when possible")

    @field_validator("direction")
    @classmethod
    def check_direction(cls, v: str) -> str:
        if v not in DIRECTIONS:
            raise ValueError(f"direction must be one of {', '.join(DIRECTIONS)}, got '{v}'")
        return v


class PrecomputeRequest(BaseModel):
    events: list[str] | None = Field(default=None, description="Event names; default = priority events")
    start_hours: float = Field(default=0.0, ge=0)
    max_years: float | None = Field(default=None, gt=0)
    resume: bool = True


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def _get_system(request: Request) -> BodySystem:
    system: BodySystem = request.app.state.system
    return system


def _get_store(request: Request) -> EventStore:
    # precompute workers write the same file from another process
    store: EventStore = request.app.state.store
    if store.refresh():
        logger.info("Event store changed on disk; reloaded %d records", len(store))
    return store


def _resolve_event(request: Request, name: str) -> CelestialEvent:
    """Resolve an event by exact name, then case-insensitively."""
    events: dict[str, CelestialEvent] = request.app.state.events
    if name in events:
        return events[name]
    lowered = name.lower().strip()
    for event in events.values():
        if event.name.lower() == lowered:
            return event
    raise HTTPException(status_code=404, detail=f"Unknown event: {name}")


def _calendar(hours: float) -> dict:
    hpd = settings.hours_per_day
    return {
        "year": int(hours // settings.hours_per_year),
        "day": int((hours / hpd) % settings.days_per_year) + 1,
    }


def _job_error(action: str, e: Exception) -> HTTPException:
    logger.error("Could not %s: %s", action, e)
    return HTTPException(status_code=503, detail=f"Job queue unavailable: {e}")


# --------------------------------------------------------------------------- #
#  Endpoints
# --------------------------------------------------------------------------- #

@router.get("/health")
async def health():
    return {"status": "ok", "service": "almanac"}


@router.get("/bodies", response_model=list[BodyOut])
async def list_bodies(request: Request):
    """List the bodies of the loaded catalog."""
    catalog: tuple[CelestialBody, ...] = request.app.state.catalog
    return [
        BodyOut(
            name=b.name,
            kind=b.kind,
            size=b.size,
            orbit_radius=b.orbit_radius,
            orbit_period_days=b.orbit_period_days,
            initial_phase=b.initial_phase,
            eccentricity=b.eccentricity if b.eccentric else 0.0,
            axial_tilt=b.axial_tilt,
            color=b.color,
            orbit_center=b.orbit_center,
            observer=b.observer,
        )
        for b in catalog
    ]


@router.get("/events", response_model=list[EventOut])
async def list_events(request: Request):
    """List the loaded celestial events."""
    events: dict[str, CelestialEvent] = request.app.state.events
    return [
        EventOut(
            name=e.name,
            description=e.description,
            type=e.type,
            primary_bodies=list(e.primary_bodies),
            secondary_bodies=list(e.secondary_bodies),
            longitude_tolerance=e.longitude_tolerance,
            visibility_condition=e.visibility_condition,
        )
        for e in events.values()
    ]


@router.get("/positions")
async def get_positions(request: Request, hours: float = Query(default=0.0, ge=0)):
    """Position snapshot of every body at `hours`."""
    system = _get_system(request)
    snapshot = positions_at(hours, system)
    return {"hours": hours, **_calendar(hours), "positions": snapshot_to_dict(snapshot)}


@router.get("/events/{name}/check")
async def check_event(name: str, request: Request, hours: float = Query(default=0.0, ge=0)):
    """Evaluate an event's predicate at an exact time."""
    event = _resolve_event(request, name)
    system = _get_system(request)
    if system.observer is None:
        raise HTTPException(status_code=422, detail="Catalog has no observer body")

    rotation = tilt_rotation(system.observer.axial_tilt)
    result = evaluate(event, positions_at(hours, system), system, rotation)
    return {
        "event": event.name,
        "hours": hours,
        "met": result.met,
        "viewing_latitude": result.viewing_latitude,
        "viewing_longitude": result.viewing_longitude,
    }


@router.get("/events/{name}/recurrence")
async def event_recurrence(name: str, request: Request):
    """Estimated recurrence period of an event in days (null if none)."""
    event = _resolve_event(request, name)
    days = estimate_recurrence_days(event, _get_system(request).bodies)
    return {"event": event.name, "recurrence_days": days}


@router.post("/search")
async def search_event(req: SearchRequest, request: Request):
    """Find the next / previous / first occurrence of an event.

    Runs in-process, handing control back to the event loop at every
    yield point.  Long searches should go through /search/jobs instead.
    """
    event = _resolve_event(request, req.event)
    system = _get_system(request)

    if req.use_precomputed and req.direction != FIRST:
        stored = _get_store(request).nearest(event.name, req.start_hours, req.direction)
        if stored is not None:
            return {
                "status": "found",
                "source": "precomputed",
                "event": event.name,
                "direction": req.direction,
                "found_hours": stored.hours,
                "year": stored.year,
                "day": stored.day,
                "viewing_latitude": stored.latitude,
                "viewing_longitude": stored.longitude,
            }

    result = await find_event_async(req.start_hours, event, system, req.direction)
    if result is None:
        return {"status": "not_found", "event": event.name, "direction": req.direction}

    return {
        "status": "found",
        "source": "search",
        "event": event.name,
        "direction": req.direction,
        **result.to_dict(),
        **_calendar(result.found_hours),
    }


@router.post("/search/jobs")
async def start_search_job(req: SearchRequest, request: Request):
    """Submit a background search. Returns a job_id for tracking."""
    event = _resolve_event(request, req.event)
    try:
        job_id = await submit_search({
            "event": event.name,
            "start_hours": req.start_hours,
            "direction": req.direction,
        })
    except (RedisError, OSError) as e:
        raise _job_error("submit search", e)

    return {
        "job_id": job_id,
        "status": "queued",
        "event": event.name,
        "message": f"Search job submitted. Connect to WS /ws/search/{job_id} for live updates.",
    }


@router.get("/search/jobs/{job_id}/status")
async def search_job_status(job_id: str):
    """Poll the current status of a search or precompute job."""
    result = await get_job_status(job_id)
    if result["status"] == "not_found":
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return result


@router.post("/search/jobs/{job_id}/cancel")
async def cancel_search_job(job_id: str):
    """Request cancellation; the worker stops at its next yield point."""
    if not await cancel_job(job_id):
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found or already finished")
    return {"job_id": job_id, "status": "cancelling"}


@router.post("/precompute")
async def start_precompute(req: PrecomputeRequest, request: Request):
    """Submit a batch precompute job over the requested events."""
    names = req.events or list(settings.priority_events)
    resolved = [_resolve_event(request, n).name for n in names]
    try:
        job_id = await submit_precompute({
            "events": resolved,
            "start_hours": req.start_hours,
            "max_years": req.max_years,
            "resume": req.resume,
        })
    except (RedisError, OSError) as e:
        raise _job_error("submit precompute", e)

    return {"job_id": job_id, "status": "queued", "events": resolved}


@router.get("/precomputed")
async def list_precomputed(request: Request, name: str | None = None):
    """Stored occurrences, optionally for a single event."""
    store = _get_store(request)
    records = store.for_event(name) if name else store.records
    return {
        "count": len(records),
        "events": [
            {
                "name": r.name,
                "hours": r.hours,
                "year": r.year,
                "day": r.day,
                "latitude": r.latitude,
                "longitude": r.longitude,
            }
            for r in records
        ],
    }
