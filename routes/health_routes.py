"""
Health check endpoint.

GET /health reports the account store (MongoDB) and the OTP ledger (Redis).

MongoDB unreachable gives "unhealthy" (503): no account can be read or
written. Redis unreachable gives "degraded" (200); codes cannot be issued or
checked until it recovers. A backend that is not configured also gives
"degraded", since the in-memory fallback loses state on restart.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])

OK = "ok"
ERROR = "error"
NOT_CONFIGURED = "not_configured"


async def _probe(
    name: str, backend: Optional[Any], ping: Callable[[Any], Awaitable[Any]]
) -> str:
    if backend is None:
        return NOT_CONFIGURED
    try:
        await ping(backend)
    except Exception as e:
        log.warning("health_probe_failed", backend=name, error=str(e))
        return ERROR
    return OK


async def _ping_mongo(db: Any) -> Any:
    return await db.client.admin.command("ping")


async def _ping_redis(client: Any) -> Any:
    return await client.ping()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    state = request.app.state
    checks = {
        "mongodb": await _probe("mongodb", getattr(state, "db", None), _ping_mongo),
        "redis": await _probe("redis", getattr(state, "redis", None), _ping_redis),
    }

    if checks["mongodb"] == ERROR:
        overall = "unhealthy"
    elif all(result == OK for result in checks.values()):
        overall = "healthy"
    else:
        overall = "degraded"

    body = HealthResponse(status=overall, checks=checks)
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content=body.model_dump(),
    )
