"""Health check endpoints."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check including the catalog database and Ollama."""
    db = getattr(request.app.state, "db", None)
    gateway = getattr(request.app.state, "gateway", None)

    database = "healthy" if db is not None and await db.health_check() else "unhealthy"
    ollama = "healthy" if gateway is not None and await gateway.health_check() else "unreachable"

    return {
        "status": "ready" if database == "healthy" else "not_ready",
        "services": {
            "database": database,
            "ollama": ollama,
        },
    }
