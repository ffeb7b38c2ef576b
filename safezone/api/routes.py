"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from safezone.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format and database state
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    pool = getattr(request.app.state, "db_pool", None)
    if pool is None:
        health_status["database"] = "unavailable"
    else:
        db_healthy = await db_health_check(pool)
        health_status["database"] = "healthy" if db_healthy else "unhealthy"

    return health_status
