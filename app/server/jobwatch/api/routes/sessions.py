"""
Sessions API routes

Raw views of the two correlation sources: the audit log (recent events and
a live stream) and the agent process table.
"""

import logging
from collections.abc import AsyncGenerator, Callable
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.core.audit import AuditLogReader
from src.core.processes import ProcessSnapshot
from src.core.runtime import RuntimePaths

from .. import sse
from ..deps import get_audit_reader, get_paths, get_process_lister

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/actions/recent")
def recent_actions(
    limit: Optional[str] = Query(None),
    reader: AuditLogReader = Depends(get_audit_reader),
) -> dict:
    return {"events": reader.recent(limit)}


@router.get("/sessions/active")
def active_sessions(
    process_lister: Callable[[], ProcessSnapshot] = Depends(get_process_lister),
) -> dict:
    return {"processes": process_lister().to_dict()}


@router.get("/stream/actions")
async def stream_actions(paths: RuntimePaths = Depends(get_paths)):
    """SSE stream of audit log lines as they are appended.

    Each ``action`` event carries one raw NDJSON line; ``tail -F`` keeps
    retrying if the log does not exist yet or is rotated.
    """

    async def event_generator() -> AsyncGenerator[str, None]:
        yield sse.ready_event()
        async for frame in sse.follow_lines(
            paths.actions_log,
            line_event=lambda line: sse.format_sse_event("action", line),
            error_event="error",
            keepalive=sse.KEEPALIVE_SECONDS,
        ):
            yield frame

    return sse.sse_response(event_generator())
