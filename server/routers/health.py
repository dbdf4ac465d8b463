"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app reach PostgreSQL and Redis?)
- /metrics - Table counts for monitoring
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from models.hand_state import CribbagePhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_hand_store = None
_state_cache = None
_table_manager = None


def set_health_dependencies(
    hand_store=None,
    state_cache=None,
    table_manager=None,
):
    """Set dependencies for health checks."""
    global _hand_store, _state_cache, _table_manager
    _hand_store = hand_store
    _state_cache = state_cache
    _table_manager = table_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    This endpoint should always return 200 if the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app handle requests?

    Returns 503 if a configured backing service is unreachable. Services
    that are not configured do not count against readiness.
    """
    checks = {}
    overall_healthy = True

    if _hand_store is not None:
        try:
            async with _hand_store.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            checks["database"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            checks["database"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["database"] = {"status": "not_configured"}

    if _state_cache is not None:
        try:
            await _state_cache.redis.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}

    return JSONResponse(
        content={
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        status_code=200 if overall_healthy else 503,
    )


@router.get("/metrics")
async def metrics():
    """Live table counts from this server's table manager."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _table_manager is not None:
        tables = list(_table_manager.tables.values())
        metrics_data.update({
            "active_tables": len(tables),
            "hands_in_progress": sum(
                1 for t in tables
                if t.state is not None and t.state.phase != CribbagePhase.COMPLETE
            ),
            "matches_won": sum(1 for t in tables if t.settlement is not None),
        })

    return metrics_data
