"""
Codex status API routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.core.agent_status import AgentStatus, AgentStatusProbe, LimitStatus
from src.core.runtime import RuntimePaths

from ..deps import get_paths

router = APIRouter()
logger = logging.getLogger(__name__)

STATUS_TIMEOUT_SECONDS = 20.0


class LimitResponse(BaseModel):
    leftPercent: int
    resets: Optional[str] = None


class CodexStatusResponse(BaseModel):
    model: Optional[str] = None
    account: Optional[str] = None
    fiveHour: Optional[LimitResponse] = None
    weekly: Optional[LimitResponse] = None


def _limit(limit: LimitStatus | None) -> LimitResponse | None:
    if limit is None:
        return None
    return LimitResponse(leftPercent=limit.left_percent, resets=limit.resets)


def _to_response(status: AgentStatus) -> CodexStatusResponse:
    return CodexStatusResponse(
        model=status.model,
        account=status.account,
        fiveHour=_limit(status.five_hour),
        weekly=_limit(status.weekly),
    )


def get_status_probe(paths: RuntimePaths = Depends(get_paths)) -> AgentStatusProbe:
    return AgentStatusProbe(paths.status_command)


@router.get("/codex/status")
def codex_status(probe: AgentStatusProbe = Depends(get_status_probe)) -> CodexStatusResponse:
    """Account limits as reported by the agent CLI's ``/status`` screen."""
    try:
        status = probe.run(timeout=STATUS_TIMEOUT_SECONDS)
    except (TimeoutError, RuntimeError) as exc:
        logger.warning("Codex status probe failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return _to_response(status)
