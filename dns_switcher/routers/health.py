"""Health and readiness endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dns_switcher.adapters.channel import execute
from dns_switcher.dependencies import get_device_session, get_settings
from dns_switcher.exceptions import AppError
from dns_switcher.models.health import HealthResponse, ReadyResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    session=Depends(get_device_session),
    settings=Depends(get_settings),
) -> HealthResponse:
    from dns_switcher.main import get_uptime

    return HealthResponse(
        status="degraded" if session.last_error else "ok",
        version=request.app.state.version,
        uptime=get_uptime(),
        device=settings.mikrotik_host,
        lastDeviceSuccess=session.last_success_at,
        lastDeviceError=session.last_error,
    )


@router.get("/ready")
async def ready(session=Depends(get_device_session)) -> JSONResponse:
    try:
        async with session.transaction("ready") as tx:
            result = await execute(tx.channel, "/system/identity/print")
    except AppError as exc:
        body = ReadyResponse(ready=False, reason=exc.message)
        return JSONResponse(status_code=503, content=body.model_dump())

    identity = next((r.get("name") for r in result.replies if r.get("name")), None)
    return JSONResponse(
        status_code=200, content=ReadyResponse(ready=True, identity=identity).model_dump()
    )
