"""Search job dispatcher — submits jobs to ARQ and streams progress.

Bridges the API layer with the background search workers.
Uses Redis pub/sub to stream intermediate progress back to WebSocket clients
and a Redis flag per job to request cancellation.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import AsyncGenerator

import redis.asyncio as aioredis
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings

from config import settings

logger = logging.getLogger("almanac.dispatcher")

# Redis key prefixes
JOB_PREFIX = "almanac:job:"
CHANNEL_PREFIX = "almanac:progress:"
CANCEL_PREFIX = "almanac:cancel:"

TERMINAL_STATES = ("complete", "failed", "cancelled")


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(settings.redis_url)


async def get_arq_pool() -> ArqRedis:
    """Create and return an ARQ Redis connection pool."""
    return await create_pool(_redis_settings())


async def get_redis() -> aioredis.Redis:
    """Create a raw async Redis client."""
    return aioredis.from_url(settings.redis_url, decode_responses=True)


async def _submit(task: str, kind: str, request_data: dict) -> str:
    job_id = str(uuid.uuid4())

    r = await get_redis()
    try:
        await r.hset(f"{JOB_PREFIX}{job_id}", mapping={
            "status": "queued",
            "type": kind,
            "request": json.dumps(request_data),
            "result": "",
        })
    finally:
        await r.close()

    pool = await get_arq_pool()
    try:
        await pool.enqueue_job(task, job_id=job_id, request_data=request_data, _job_id=job_id)
    finally:
        await pool.close()

    logger.info("Submitted %s job %s", kind, job_id)
    return job_id


async def submit_search(request_data: dict) -> str:
    """Submit an event search job.  Returns the job id.

    request_data: {"event": name, "start_hours": float, "direction": str}
    """
    return await _submit("run_event_search", "search", request_data)


async def submit_precompute(request_data: dict) -> str:
    """Submit a batch precompute job.  Returns the job id.

    request_data: {"events": [names], "start_hours": float, "max_years": float, "resume": bool}
    """
    return await _submit("run_precompute", "precompute", request_data)


async def get_job_status(job_id: str) -> dict:
    """Get the current status of a job."""
    r = await get_redis()
    try:
        data = await r.hgetall(f"{JOB_PREFIX}{job_id}")
    finally:
        await r.close()

    if not data:
        return {"status": "not_found", "job_id": job_id}

    result = {
        "job_id": job_id,
        "type": data.get("type", "search"),
        "status": data.get("status", "unknown"),
    }

    result_str = data.get("result", "")
    if result_str:
        try:
            result["result"] = json.loads(result_str)
        except json.JSONDecodeError:
            pass

    return result


async def cancel_job(job_id: str) -> bool:
    """Flag a job for cancellation.  False if the job is unknown or finished."""
    r = await get_redis()
    try:
        status = await r.hget(f"{JOB_PREFIX}{job_id}", "status")
        if status is None or status in TERMINAL_STATES:
            return False
        await r.set(f"{CANCEL_PREFIX}{job_id}", "1", ex=3600)
    finally:
        await r.close()

    logger.info("Cancellation requested for job %s", job_id)
    return True


async def is_cancel_requested(r: aioredis.Redis, job_id: str) -> bool:
    return bool(await r.exists(f"{CANCEL_PREFIX}{job_id}"))


async def stream_progress(job_id: str) -> AsyncGenerator[dict, None]:
    """Subscribe to job progress via Redis pub/sub.

    Yields progress dicts as they arrive. Terminates when the job
    publishes a terminal status.
    """
    r = await get_redis()
    pubsub = r.pubsub()
    channel = f"{CHANNEL_PREFIX}{job_id}"

    await pubsub.subscribe(channel)
    logger.info("Subscribed to progress channel: %s", channel)

    try:
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue

            try:
                data = json.loads(message["data"])
            except (json.JSONDecodeError, TypeError):
                continue

            yield data

            if data.get("status", "") in TERMINAL_STATES:
                break
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.close()
        await r.close()


async def publish_progress(
    r: aioredis.Redis,
    job_id: str,
    payload: dict,
    status: str = "running",
) -> None:
    """Publish job progress to the Redis channel and update the stored job state.

    Called by the worker during a search.
    """
    message = {"status": status, "job_id": job_id, **payload}
    await r.publish(f"{CHANNEL_PREFIX}{job_id}", json.dumps(message))
    await r.hset(f"{JOB_PREFIX}{job_id}", mapping={
        "status": status,
        "result": json.dumps(payload),
    })
