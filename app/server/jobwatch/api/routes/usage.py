"""
Usage API routes
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.core.usage import UsageAggregator

from ..deps import get_usage_aggregator

router = APIRouter()


class UsageWindowResponse(BaseModel):
    since: str
    until: str
    runs: int
    inputTokens: int
    cachedInputTokens: int
    outputTokens: int
    totalTokens: int


class UsageResponse(BaseModel):
    last5h: UsageWindowResponse
    last7d: UsageWindowResponse
    scannedFiles: int
    newestLogAt: Optional[str] = None
    warning: Optional[str] = None


@router.get("/usage/codex", response_model_exclude_none=True)
def codex_usage(aggregator: UsageAggregator = Depends(get_usage_aggregator)) -> UsageResponse:
    """Token totals for the last 5 hours and 7 days, with scan metadata."""
    return UsageResponse(**aggregator.summarize().to_dict())
