"""
Health check endpoint.

Reports liveness of the persistent store and the cache store.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from database.async_engine import check_database_connection

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])


# =============================================================================
# Response Models
# =============================================================================

class DependencyStatus(BaseModel):
    """Status of a dependency"""
    name: str
    status: str  # "up", "down"
    response_time_ms: Optional[float] = None


class HealthResponse(BaseModel):
    """Overall health status"""
    status: str  # "healthy", "unhealthy"
    timestamp: str
    version: str
    dependencies: List[DependencyStatus]


# =============================================================================
# Health Check Logic
# =============================================================================

async def check_database(request: Request) -> DependencyStatus:
    start = time.perf_counter()
    ok = await check_database_connection(request.app.state.engine)
    return DependencyStatus(
        name="database",
        status="up" if ok else "down",
        response_time_ms=round((time.perf_counter() - start) * 1000, 2),
    )


async def check_cache(request: Request) -> DependencyStatus:
    start = time.perf_counter()
    ok = await request.app.state.cache.ping()
    if not ok:
        logger.warning("Cache health check failed")
    return DependencyStatus(
        name="cache",
        status="up" if ok else "down",
        response_time_ms=round((time.perf_counter() - start) * 1000, 2),
    )


def calculate_overall_status(dependencies: List[DependencyStatus]) -> str:
    if any(dep.status == "down" for dep in dependencies):
        return "unhealthy"
    return "healthy"


# =============================================================================
# Health Check Endpoints
# =============================================================================

@router.get("", response_model=HealthResponse)
async def health(request: Request):
    dependencies = [await check_database(request), await check_cache(request)]
    return HealthResponse(
        status=calculate_overall_status(dependencies),
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=request.app.version,
        dependencies=dependencies,
    )
