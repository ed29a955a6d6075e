# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Health check endpoints for liveness and readiness probes."""
from datetime import UTC, datetime
from typing import Literal

import psutil
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from botyard import __version__
from botyard.server.dependencies import get_controller
from botyard.server.orchestrator.controller import LifecycleController
from botyard.server.routes.websocket import connection_manager


router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe."""

    status: Literal["alive"] = "alive"


class ReadinessResponse(BaseModel):
    """Response model for readiness probe."""

    status: Literal["ready", "not_ready"]


class HealthResponse(BaseModel):
    """Response model for detailed health check."""

    status: Literal["healthy", "degraded"]
    version: str
    uptime_seconds: float
    tracked_bots: int
    running_bots: int
    websocket_connections: int
    memory_mb: float
    cpu_percent: float


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Minimal liveness check - is the server responding?

    Returns:
        Simple alive status.
    """
    return LivenessResponse()


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse | JSONResponse:
    """Readiness check - is the server ready to accept requests?

    Returns:
        Ready status or 503 if shutting down.
    """
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is not None and lifecycle.is_shutting_down:
        return JSONResponse(status_code=503, content={"status": "not_ready"})
    return ReadinessResponse(status="ready")


@router.get("", response_model=HealthResponse)
async def health(
    request: Request,
    controller: LifecycleController = Depends(get_controller),
) -> HealthResponse:
    """Detailed health check with server metrics.

    Returns:
        Server status, version, uptime, bot counts, WebSocket connection
        count and process resource usage.
    """
    process = psutil.Process()
    start_time: datetime = getattr(request.app.state, "start_time", datetime.now(UTC))
    uptime = (datetime.now(UTC) - start_time).total_seconds()

    # cpu_percent(interval=None) is non-blocking - returns cached value from previous call
    cpu_percent = process.cpu_percent(interval=None)

    return HealthResponse(
        status="healthy",
        version=__version__,
        uptime_seconds=uptime,
        tracked_bots=len(controller.registry),
        running_bots=controller.registry.running_count(),
        websocket_connections=connection_manager.active_connections,
        memory_mb=round(process.memory_info().rss / 1024 / 1024, 2),
        cpu_percent=cpu_percent,
    )
