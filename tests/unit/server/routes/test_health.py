"""Tests for health check endpoints."""
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

from fastapi import FastAPI
from httpx import AsyncClient

from botyard import __version__
from botyard.server.orchestrator.controller import LifecycleController


class TestHealthEndpoints:
    """Tests for /api/health routes."""

    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/api/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_readiness(self, client: AsyncClient) -> None:
        response = await client.get("/api/health/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    async def test_readiness_during_shutdown(self, app: FastAPI, client: AsyncClient) -> None:
        app.state.lifecycle = MagicMock(is_shutting_down=True)

        response = await client.get("/api/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready"}

    async def test_health_reports_bot_counts(
        self,
        client: AsyncClient,
        controller: LifecycleController,
        make_bundle: Callable[..., Path],
    ) -> None:
        make_bundle("b1")
        make_bundle("b2")
        await controller.start("b1")
        controller.subscribe_logs("b2")

        response = await client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["tracked_bots"] == 2
        assert body["running_bots"] == 1
        assert body["memory_mb"] > 0
