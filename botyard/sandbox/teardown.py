"""Sandbox container reconciliation utilities.

The registry is rebuilt empty on every process start, so containers left
behind by a previous run are unmanaged. These helpers find them by naming
convention and remove them.
"""
import asyncio

from loguru import logger

from botyard.core.exceptions import SandboxRuntimeError
from botyard.sandbox.provider import SandboxHandle, SandboxRuntime


_TEARDOWN_TIMEOUT = 5.0


async def remove_orphaned_sandboxes(runtime: SandboxRuntime) -> int:
    """Force-remove every container matching the runtime's naming convention.

    Handles cases where Docker is unavailable or no containers exist.

    Args:
        runtime: Runtime whose managed containers should be removed.

    Returns:
        Number of containers a removal was attempted for.
    """
    try:
        container_ids = await asyncio.wait_for(
            runtime.list_managed(), timeout=_TEARDOWN_TIMEOUT,
        )
    except TimeoutError:
        logger.warning("Timed out listing sandbox containers")
        return 0
    except SandboxRuntimeError as exc:
        logger.warning("Failed to list sandbox containers", error=str(exc))
        return 0

    if not container_ids:
        logger.debug("No orphaned sandbox containers")
        return 0

    logger.info("Removing orphaned sandbox containers", count=len(container_ids))
    await asyncio.gather(
        *(
            runtime.remove(SandboxHandle(container_id=cid, name=cid))
            for cid in container_ids
        )
    )
    return len(container_ids)
