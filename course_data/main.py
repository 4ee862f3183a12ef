"""FastAPI entry point for the course data service.

Subscribes to a navigation delta feed over ZMQ, computes course values to
the active destination, and serves them over HTTP and WebSocket together
with arrival / perpendicular-passage notifications.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import Body, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from course_data.config import get_settings
from course_data.message_parser import get_parser_counters, parse_delta, parse_delta_obj
from course_data.models import DeltaUpdate
from course_data.provider import CourseProvider
from course_data.ws_manager import WSConnectionManager
from course_data.zmq_subscriber import FeedSubscriber

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

settings = get_settings()
ws_manager = WSConnectionManager()

# Feed subscriber and event loop (initialized on startup)
feed_sub: FeedSubscriber | None = None
_loop: asyncio.AbstractEventLoop | None = None

_start_time = time.time()
_deltas_published = 0

COURSE_CALCS_PATH = f"{settings.api_path}/vessels/self/navigation/course/calcValues"


# ---------------------------------------------------------------------------
# Publishing (may be called from the worker thread)
# ---------------------------------------------------------------------------

def _publish(delta: DeltaUpdate) -> None:
    """Broadcast a delta to WS clients from any thread."""
    global _deltas_published

    text = delta.to_json_str()
    _deltas_published += 1
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None

    if running is not None:
        running.create_task(ws_manager.broadcast_text(text))
    elif _loop is not None and not _loop.is_closed():
        asyncio.run_coroutine_threadsafe(ws_manager.broadcast_text(text), _loop)
    else:
        logger.debug("No event loop, delta not broadcast")


provider = CourseProvider(settings, _publish)


# ---------------------------------------------------------------------------
# Feed callback
# ---------------------------------------------------------------------------

async def _on_feed_message(topic: str, payload: str) -> None:
    """Process a navigation delta from the ZMQ feed."""
    values = parse_delta(payload)
    if values is None:
        return
    provider.handle_delta(values)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Startup and shutdown logic for the FastAPI app."""
    global feed_sub, _loop

    logger.info("Course data service starting...")
    logger.info(
        "Applied config: method=%s autopilot=%s sound=%s max_stale=%d",
        settings.calc_method.value,
        settings.autopilot,
        settings.notification_sound,
        settings.max_stale_count,
    )

    _loop = asyncio.get_running_loop()
    provider.start_worker()

    feed_sub = FeedSubscriber(
        endpoint=settings.zmq_feed_endpoint,
        topic=settings.zmq_feed_topic,
        name="nav-feed-sub",
        reconnect_min_s=settings.zmq_reconnect_min_s,
        reconnect_max_s=settings.zmq_reconnect_max_s,
    )
    feed_sub.start(_on_feed_message, loop=_loop)

    logger.info("Course data service ready on %s:%d", settings.host, settings.port)
    yield

    logger.info("Course data service shutting down...")
    if feed_sub:
        feed_sub.stop()
    provider.stop_worker()
    _loop = None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Course Data Provider",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------

@app.websocket(settings.ws_path)
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream of calc-value and notification deltas."""
    await ws_manager.connect(websocket)
    try:
        # Outbound only; inbound frames are read to detect the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket)


# ---------------------------------------------------------------------------
# HTTP endpoints
# ---------------------------------------------------------------------------

@app.get(COURSE_CALCS_PATH, response_model=None)
async def get_calc_values():
    """Course values for the active destination (configured method)."""
    logger.debug("GET %s", COURSE_CALCS_PATH)
    calcs = provider.current()
    if calcs is None:
        return JSONResponse(
            status_code=400,
            content={
                "state": "FAILED",
                "statusCode": 400,
                "message": "No active destination!",
            },
        )
    return calcs.to_json_dict()


@app.post("/api/deltas", response_model=None)
async def post_delta(delta: Any = Body(...)):
    """Apply a navigation delta, as if received from the feed."""
    values = parse_delta_obj(delta)
    if values is None:
        return JSONResponse(
            status_code=400,
            content={"error": "Expected a delta with 'updates' or a 'path'/'value' pair"},
        )
    provider.handle_delta(values)
    return {"status": "accepted", "values": len(values)}


@app.get("/api/health")
async def health() -> dict:
    """Service health and diagnostics."""
    worker = provider.worker
    return {
        "status": "healthy",
        "uptime_s": int(time.time() - _start_time),
        "feed_connected": feed_sub.connected if feed_sub else False,
        "feed_messages": feed_sub.messages_received if feed_sub else 0,
        "ws_clients": ws_manager.client_count,
        "parser_counters": get_parser_counters(),
        "computations": worker.computations if worker else 0,
        "results_applied": provider.results_applied,
        "results_superseded": provider.results_superseded,
        "deltas_published": _deltas_published,
        "active_destination": provider.current() is not None,
        "calc_method": settings.calc_method.value,
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "course_data.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )
