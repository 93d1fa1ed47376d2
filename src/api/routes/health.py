"""Health check endpoints."""

import asyncio
import time
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.api.deps import get_chat_store
from src.core.datetime_utils import utc_now
from src.core.logging import get_logger
from src.services.chat_store import ChatStore, Transaction

logger = get_logger(__name__)

router = APIRouter()


async def check_database(store: ChatStore) -> dict[str, Any]:
    """Check database connectivity and response time.

    Returns:
        dict with status, latency_ms, and optional error
    """

    async def _ping(tx: Transaction) -> None:
        await tx.session.execute(text("SELECT 1"))

    start = time.perf_counter()
    try:
        await asyncio.wait_for(store.with_transaction(_ping), timeout=5.0)
        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    except TimeoutError:
        return {
            "status": "unhealthy",
            "error": "Database connection timeout (>5s)",
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": "Database connection failed",
        }


@router.get("/health")
async def health_check(store: ChatStore = Depends(get_chat_store)) -> JSONResponse:
    """Report service health; 503 when the database is unreachable."""
    start = time.perf_counter()
    database = await check_database(store)
    healthy = database["status"] == "healthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": utc_now().isoformat(),
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
            "checks": {"database": database},
        },
    )


@router.get("/ping")
async def ping() -> dict[str, str]:
    """Liveness probe that touches no dependencies."""
    return {"status": "ok"}
