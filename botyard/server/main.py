"""FastAPI application setup and configuration."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from botyard import __version__
from botyard.logging import configure_logging, log_server_startup
from botyard.sandbox.docker import DockerRuntime
from botyard.server.bundles import BundleStore
from botyard.server.config import ServerConfig
from botyard.server.dependencies import (
    clear_config,
    clear_controller,
    set_config,
    set_controller,
)
from botyard.server.lifecycle.server import ServerLifecycle
from botyard.server.orchestrator.controller import LifecycleController
from botyard.server.routes import (
    bots_router,
    files_router,
    health_router,
    websocket_router,
)
from botyard.server.routes.bots import configure_exception_handlers
from botyard.server.routes.websocket import connection_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan events.

    Initializes configuration, bundle storage, the sandbox runtime and the
    lifecycle controller on startup; stops bots and closes log streams on
    shutdown.
    """
    config = ServerConfig()
    configure_logging(config.log_level)
    set_config(config)

    bundles = BundleStore(config.bundles_dir)
    runtime = DockerRuntime(
        docker_binary=config.docker_binary,
        name_prefix=config.container_prefix,
    )
    controller = LifecycleController(runtime=runtime, bundles=bundles, config=config)
    set_controller(controller)

    lifecycle = ServerLifecycle(
        controller=controller,
        runtime=runtime,
        reconcile_orphans=config.reconcile_orphans,
    )
    await lifecycle.startup()

    log_server_startup(
        host=config.host,
        port=config.port,
        bundles_dir=str(bundles.root),
        image=config.sandbox_image,
        version=__version__,
    )

    app.state.start_time = datetime.now(UTC)
    app.state.lifecycle = lifecycle
    yield

    # Shutdown - close WebSocket connections first, then stop bots
    await connection_manager.close_all(code=1001, reason="Server shutting down")
    await lifecycle.shutdown()
    clear_controller()
    clear_config()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="botyard API",
        description="Upload, run and observe sandboxed code bundles",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=ServerConfig().cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure exception handlers
    configure_exception_handlers(application)

    # Mount routes
    application.include_router(health_router, prefix="/api")
    application.include_router(bots_router, prefix="/api")
    application.include_router(files_router, prefix="/api")
    application.include_router(websocket_router)  # No prefix - route is /ws/logs

    return application


# Create app instance
app = create_app()
