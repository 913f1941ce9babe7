"""WebSocket endpoints for real-time streaming.

- /ws/search/{job_id}    — Stream search / precompute job progress
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from jobs.dispatcher import TERMINAL_STATES, stream_progress

logger = logging.getLogger("almanac.ws")
router = APIRouter()


@router.websocket("/ws/search/{job_id}")
async def ws_search_stream(websocket: WebSocket, job_id: str):
    """Stream progress for a search or precompute job.

    The client connects after submitting a POST /search/jobs (or
    /precompute) request.  Messages are JSON dicts with the search phase,
    iteration count and current hours.

    When the job finishes, a final message with a terminal status
    (complete, cancelled or failed) is sent and the connection is closed.
    """
    await websocket.accept()
    logger.info("WebSocket connected for job %s", job_id)

    try:
        async for progress in stream_progress(job_id):
            await websocket.send_json(progress)

            if progress.get("status") in TERMINAL_STATES:
                break

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for job %s", job_id)
    except Exception as e:
        logger.error("WebSocket error for job %s: %s", job_id, e)
        try:
            await websocket.send_json({"status": "error", "message": str(e)})
        except Exception:
            pass
    finally:
        try:
            await websocket.close()
        except Exception:
            pass

