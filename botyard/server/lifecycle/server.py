"""Server lifecycle management for startup and shutdown."""

from typing import TYPE_CHECKING

from loguru import logger

from botyard.sandbox.teardown import remove_orphaned_sandboxes


if TYPE_CHECKING:
    from botyard.sandbox.provider import SandboxRuntime
    from botyard.server.orchestrator.controller import LifecycleController


class ServerLifecycle:
    """Manages server startup and graceful shutdown.

    Coordinates:
    - Orphaned sandbox cleanup on startup
    - Stopping running bots on shutdown
    - Ending live log subscriptions
    """

    def __init__(
        self,
        controller: "LifecycleController",
        runtime: "SandboxRuntime",
        reconcile_orphans: bool = True,
    ) -> None:
        """Initialize lifecycle manager.

        Args:
            controller: Lifecycle controller instance.
            runtime: Runtime used to find containers left by a previous run.
            reconcile_orphans: Remove those containers on startup.
        """
        self._controller = controller
        self._runtime = runtime
        self._reconcile_orphans = reconcile_orphans
        self._shutting_down = False

    @property
    def is_shutting_down(self) -> bool:
        """Check if server is shutting down.

        Returns:
            True if shutdown has been initiated.
        """
        return self._shutting_down

    async def startup(self) -> None:
        """Execute startup sequence.

        The registry always starts empty; containers from a previous run are
        unmanaged and removed here unless reconciliation is disabled.
        """
        logger.info("Server starting up...")
        if self._reconcile_orphans:
            removed = await remove_orphaned_sandboxes(self._runtime)
            if removed:
                logger.info("Orphaned sandboxes removed", count=removed)
        else:
            logger.info("Orphan reconciliation disabled; leftover containers stay unmanaged")
        logger.info("Server startup complete")

    async def shutdown(self) -> None:
        """Execute graceful shutdown sequence.

        Steps:
        1. Set shutting_down flag (readiness probe reports not_ready)
        2. Stop running bots (or detach from them, per config)
        3. End log subscriptions
        4. Close connections (handled by caller)
        """
        self._shutting_down = True
        logger.info("Server shutting down...")
        await self._controller.shutdown()
        logger.info("Server shutdown complete")
