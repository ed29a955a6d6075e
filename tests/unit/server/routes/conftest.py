"""Shared fixtures for route tests."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from botyard.server.config import ServerConfig
from botyard.server.dependencies import get_bundle_store, get_config, get_controller
from botyard.server.orchestrator.controller import LifecycleController
from botyard.server.routes import bots_router, files_router, health_router
from botyard.server.routes.bots import configure_exception_handlers


@pytest.fixture
def app(controller: LifecycleController, server_config: ServerConfig) -> FastAPI:
    """Create a test FastAPI app backed by the fake-runtime controller."""
    test_app = FastAPI()
    configure_exception_handlers(test_app)
    test_app.include_router(health_router, prefix="/api")
    test_app.include_router(bots_router, prefix="/api")
    test_app.include_router(files_router, prefix="/api")

    test_app.dependency_overrides[get_controller] = lambda: controller
    test_app.dependency_overrides[get_config] = lambda: server_config
    test_app.dependency_overrides[get_bundle_store] = lambda: controller.bundles

    return test_app


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    """Create an async test client."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
