"""Server-Sent Events framing and the shared follow loop."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

from fastapi.responses import StreamingResponse

from src.core.log_tail import (
    KEEPALIVE_SECONDS,
    PATH_WAIT_ATTEMPTS,
    PATH_WAIT_INTERVAL_SECONDS,
    LogFollower,
    wait_for_path,
)
from src.utils import epoch_ms

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def format_sse_event(event: str, data: str | dict) -> str:
    """Format one SSE frame; dict payloads are JSON-encoded."""
    payload = json.dumps(data) if isinstance(data, dict) else data
    return f"event: {event}\ndata: {payload}\n\n"


def ready_event() -> str:
    return format_sse_event("ready", str(epoch_ms()))


def ping_event() -> str:
    return format_sse_event("ping", str(epoch_ms()))


def sse_response(events: AsyncGenerator[str, None]) -> StreamingResponse:
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


async def follow_lines(
    path: Path,
    line_event: Callable[[str], str],
    error_event: str,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    """Translate a LogFollower into SSE frames until it ends or is closed."""
    follower = LogFollower(path, keepalive_interval=keepalive)
    async for event in follower.events():
        if event.type == "line":
            yield line_event(event.data)
        elif event.type == "ping":
            yield ping_event()
        else:
            yield format_sse_event(error_event, {"message": event.data})
            if event.terminal:
                return


async def await_path_with_pings(
    resolve: Callable[[], Path],
    keepalive: float = KEEPALIVE_SECONDS,
    attempts: int = PATH_WAIT_ATTEMPTS,
    interval: float = PATH_WAIT_INTERVAL_SECONDS,
) -> AsyncGenerator[str | Path, None]:
    """Wait for ``resolve`` to find a file, yielding pings while waiting.

    The resolved path is the final item yielded. Raises FileNotFoundError
    once the wait is exhausted.
    """
    waiter = asyncio.create_task(wait_for_path(resolve, attempts, interval))
    try:
        while True:
            done, _ = await asyncio.wait({waiter}, timeout=keepalive)
            if done:
                break
            yield ping_event()
        yield waiter.result()
    finally:
        if not waiter.done():
            waiter.cancel()
