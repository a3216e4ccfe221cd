"""Health and readiness check endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_context
from storage.context import AppContext

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check: 200 while the process is up."""
    return {"status": "ok"}


@router.get("/ready")
def ready(context: AppContext = Depends(get_context)):
    """Readiness check against Redis and the database."""
    redis_ok = context.redis.ping()
    db_ok = context.db.healthcheck()
    body = {
        "status": "ready" if redis_ok and db_ok else "not_ready",
        "redis": "connected" if redis_ok else "unreachable",
        "database": "connected" if db_ok else "unreachable",
        "circuit_breaker": context.redis.circuit_state,
    }
    if not (redis_ok and db_ok):
        return JSONResponse(status_code=503, content=body)
    return body
