"""
Usage API Routes

- GET /api/usage/stats - request counts since process start
"""

from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api/usage", tags=["usage"])


class UsageStatsResponse(BaseModel):
    """Response model for stats endpoint"""
    total: int
    by_key: Dict[str, int]
    started_at: str


@router.get("/stats", response_model=UsageStatsResponse)
async def get_usage_stats(request: Request):
    """Get request counts per network and image class."""
    snapshot = request.app.state.counter.snapshot()
    return UsageStatsResponse(**snapshot.to_dict())
