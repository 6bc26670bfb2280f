"""Health check endpoints for the Keepli API.

- /health - service status, version, remote backend, save counters
- /health/db - SQLite connection pool health
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from keepli.config import APP_VERSION, ENV, REMOTE_BACKEND
from keepli.observability.telemetry import get_counters, get_latency_stats

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": "Keepli API",
        "version": APP_VERSION,
        "environment": ENV,
        "remote_backend": REMOTE_BACKEND,
        "timestamp": datetime.now(UTC).isoformat(),
        "saves": get_counters("save."),
        "save_latency_ms": get_latency_stats("save.total"),
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    """
    Database health check endpoint.

    Reports degraded when more than 80% of pooled connections are in use.
    """
    from keepli.infrastructure.database import get_pool_stats

    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
