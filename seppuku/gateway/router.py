"""
Retirement router - operations endpoints for the retirement controller.

Provides:
- GET  /retirement  current state snapshot
- POST /retirement  retire this process on demand (same as ``host.retire()``)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel

from seppuku.controller import RetirementController


# =============================================================================
# Response Models
# =============================================================================

class RetirementStatusResponse(BaseModel):
    state: str
    request_count: float
    max_requests: int
    retirement_in_flight: bool
    pending: bool
    deferral_ms: Optional[float] = None
    exit_code: int


def create_retirement_router(
    controller: RetirementController,
    path: str = "/retirement",
) -> APIRouter:
    """Build a router bound to ``controller``."""
    router = APIRouter(tags=["retirement"])

    @router.get(path, response_model=RetirementStatusResponse)
    async def get_retirement_status() -> RetirementStatusResponse:
        return RetirementStatusResponse(**controller.snapshot())

    @router.post(
        path,
        response_model=RetirementStatusResponse,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def retire() -> RetirementStatusResponse:
        controller.server.retire()
        return RetirementStatusResponse(**controller.snapshot())

    return router
