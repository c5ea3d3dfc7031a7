from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from governor.api.dependencies import get_request_governor
from governor.services.governor import RequestGovernor, get_governor_registry

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    governor: Annotated[RequestGovernor, Depends(get_request_governor)],
) -> dict[str, Any]:
    """Liveness check with governor bookkeeping counters.

    Returns:
        dict: ``status``, the caller's cache, de-duplication and rate limit
        stats, and how many per-client governors are held.
    """

    return {
        "status": "ok",
        "governor": governor.stats(),
        "clients": get_governor_registry().stats(),
    }
