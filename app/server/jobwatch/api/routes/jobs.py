"""
Jobs API routes

Active and recent jobs, per-job audit events, per-job output logs (recent
tail, live stream, reconstructed timeline) and the gateway log.
"""

import logging
from collections.abc import AsyncGenerator
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from src.core.audit import AuditLogReader
from src.core.jobs import JobCorrelator
from src.core.output_logs import (
    MAX_OUTPUT_TAIL_LINES,
    MIN_TAIL_LINES,
    GatewayLogResolver,
    OutputLogResolver,
)
from src.core.runtime import clamp
from src.core.timeline import reconstruct, summarize, visible_items

from .. import sse
from ..deps import (
    get_audit_reader,
    get_correlator,
    get_gateway_resolver,
    get_output_resolver,
)

router = APIRouter()
logger = logging.getLogger(__name__)

TIMELINE_TAIL_LINES = 1200


@router.get("/jobs/active")
def active_jobs(correlator: JobCorrelator = Depends(get_correlator)) -> dict:
    """Jobs with a live process. A failed process listing yields a warning, not an error."""
    return correlator.list_active_jobs().to_dict()


@router.get("/jobs/recent")
def recent_jobs(
    limit: Optional[str] = Query(None),
    correlator: JobCorrelator = Depends(get_correlator),
) -> dict:
    jobs = correlator.list_recent_jobs(limit)
    return {"jobs": [job.to_dict() for job in jobs]}


@router.get("/jobs/gateway-log/recent")
def gateway_log_recent(
    tail: Optional[str] = Query(None),
    resolver: GatewayLogResolver = Depends(get_gateway_resolver),
) -> dict:
    try:
        return {"lines": resolver.read_recent(tail)}
    except OSError as exc:
        return {"lines": [], "warning": str(exc)}


@router.get("/jobs/gateway-log/stream")
async def gateway_log_stream(resolver: GatewayLogResolver = Depends(get_gateway_resolver)):
    async def event_generator() -> AsyncGenerator[str, None]:
        yield sse.ready_event()
        try:
            path = resolver.resolve()
        except FileNotFoundError as exc:
            yield sse.format_sse_event("error", {"message": str(exc)})
            return

        async for frame in sse.follow_lines(
            path,
            line_event=lambda line: sse.format_sse_event("log", {"line": line}),
            error_event="error",
            keepalive=sse.KEEPALIVE_SECONDS,
        ):
            yield frame

    return sse.sse_response(event_generator())


@router.get("/jobs/{message_id}/actions")
def job_actions(
    message_id: str,
    limit: Optional[str] = Query(None),
    reader: AuditLogReader = Depends(get_audit_reader),
) -> dict:
    return {"events": reader.events_for_job(message_id, limit)}


@router.get("/jobs/{message_id}/output/recent")
def job_output_recent(
    message_id: str,
    tail: Optional[str] = Query(None),
    resolver: OutputLogResolver = Depends(get_output_resolver),
) -> dict:
    # Missing output is expected for jobs that have not written anything yet.
    try:
        path, lines = resolver.read_recent(message_id, tail)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"path": str(path), "lines": lines}


@router.get("/jobs/{message_id}/timeline")
def job_timeline(
    message_id: str,
    tail: Optional[str] = Query(None),
    include_reasoning: bool = Query(False, alias="includeReasoning"),
    resolver: OutputLogResolver = Depends(get_output_resolver),
) -> dict:
    """Structured timeline of a job's output log, reconstructed from its recent tail."""
    try:
        path, lines = resolver.read_recent(
            message_id, clamp(tail, MIN_TAIL_LINES, MAX_OUTPUT_TAIL_LINES, TIMELINE_TAIL_LINES)
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    timeline = reconstruct(lines)
    return {
        "path": str(path),
        "items": [item.to_dict() for item in visible_items(timeline.items, include_reasoning)],
        "turn": timeline.turn.to_dict(),
        "summary": summarize(timeline, include_reasoning).to_dict(),
    }


@router.get("/jobs/{message_id}/output/stream")
async def job_output_stream(
    message_id: str,
    resolver: OutputLogResolver = Depends(get_output_resolver),
):
    """SSE stream of lines appended to the job's output log.

    Event types:
    - ready: connection established (epoch ms)
    - ping: keepalive (epoch ms)
    - path: the resolved log file, sent once
    - log: one appended line
    - server_error: follower error; terminal when resolution gave up
    """

    async def event_generator() -> AsyncGenerator[str, None]:
        yield sse.ready_event()

        path = None
        try:
            async for item in sse.await_path_with_pings(
                partial(resolver.resolve, message_id),
                keepalive=sse.KEEPALIVE_SECONDS,
                attempts=sse.PATH_WAIT_ATTEMPTS,
                interval=sse.PATH_WAIT_INTERVAL_SECONDS,
            ):
                if isinstance(item, str):
                    yield item
                else:
                    path = item
        except FileNotFoundError as exc:
            yield sse.format_sse_event("server_error", {"message": str(exc)})
            return

        yield sse.format_sse_event("path", {"path": str(path)})

        async for frame in sse.follow_lines(
            path,
            line_event=lambda line: sse.format_sse_event("log", {"line": line}),
            error_event="server_error",
            keepalive=sse.KEEPALIVE_SECONDS,
        ):
            yield frame

    return sse.sse_response(event_generator())
