# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Bot bundle upload, listing and lifecycle endpoints."""
import asyncio
import os

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger

from botyard.core.exceptions import (
    BundleNotFoundError,
    InvalidArchiveError,
    NoEntryPointError,
    PathRejectedError,
    SandboxRuntimeError,
)
from botyard.server.config import ServerConfig
from botyard.server.dependencies import get_config, get_controller
from botyard.server.exceptions import FileOperationError
from botyard.server.models.responses import (
    ActionResponse,
    BotStatusResponse,
    BotSummary,
    ErrorResponse,
    StartInfo,
    UploadResponse,
)
from botyard.server.orchestrator.controller import LifecycleController


router = APIRouter(tags=["bots"])


@router.post("/upload", response_model=UploadResponse)
async def upload_bundle(
    file: UploadFile = File(..., description="Zip archive of the bot bundle"),
    controller: LifecycleController = Depends(get_controller),
    config: ServerConfig = Depends(get_config),
) -> UploadResponse:
    """Extract an uploaded zip archive into a new bundle.

    Args:
        file: Uploaded zip archive.
        controller: Lifecycle controller (owns the bundle store).
        config: Server configuration for the upload size limit.

    Returns:
        The new bundle id.

    Raises:
        InvalidArchiveError: If the upload is too large or not a safe zip.
    """
    size = file.file.seek(0, os.SEEK_END)
    file.file.seek(0)
    if size > config.max_upload_bytes:
        raise InvalidArchiveError(
            f"Upload of {size} bytes exceeds limit of {config.max_upload_bytes} bytes"
        )

    bundle_id = await asyncio.to_thread(controller.bundles.create_from_archive, file.file)
    logger.info("Bundle uploaded", bot_id=bundle_id, filename=file.filename, size=size)
    return UploadResponse(id=bundle_id)


@router.get("/bots", response_model=list[BotSummary])
async def list_bots(
    controller: LifecycleController = Depends(get_controller),
) -> list[BotSummary]:
    """List all bundles with their running flag."""
    store = controller.bundles
    bundle_ids = await asyncio.to_thread(store.list_ids)
    return [
        BotSummary(
            id=bundle_id,
            path=str(store.path_for(bundle_id)),
            running=controller.is_running(bundle_id),
        )
        for bundle_id in bundle_ids
    ]


@router.delete("/bots/{bot_id}", response_model=ActionResponse)
async def delete_bot(
    bot_id: str,
    controller: LifecycleController = Depends(get_controller),
) -> ActionResponse:
    """Stop a bot if running, then remove its bundle."""
    await controller.delete(bot_id)
    return ActionResponse()


@router.post("/bots/{bot_id}/start", response_model=ActionResponse)
async def start_bot(
    bot_id: str,
    controller: LifecycleController = Depends(get_controller),
) -> ActionResponse:
    """Start a bot's sandbox. Idempotent while running."""
    result = await controller.start(bot_id)
    return ActionResponse(result=StartInfo(**result.model_dump()))


@router.post("/bots/{bot_id}/stop", response_model=ActionResponse)
async def stop_bot(
    bot_id: str,
    controller: LifecycleController = Depends(get_controller),
) -> ActionResponse:
    """Stop a bot's sandbox. No-op if not running."""
    await controller.stop(bot_id)
    return ActionResponse()


@router.post("/bots/{bot_id}/restart", response_model=ActionResponse)
async def restart_bot(
    bot_id: str,
    controller: LifecycleController = Depends(get_controller),
) -> ActionResponse:
    """Stop then start a bot's sandbox."""
    result = await controller.restart(bot_id)
    return ActionResponse(result=StartInfo(**result.model_dump()))


@router.get("/bots/{bot_id}/status", response_model=BotStatusResponse)
async def bot_status(
    bot_id: str,
    controller: LifecycleController = Depends(get_controller),
) -> BotStatusResponse:
    """Report whether a bot is running and its container id."""
    status = controller.status(bot_id)
    return BotStatusResponse(
        running=status.running,
        container_id=status.container_id,
        state=status.state,
    )


def _error(status_code: int, code: str, exc: Exception, **details: object) -> JSONResponse:
    error = ErrorResponse(code=code, error=str(exc), details=details or None)
    return JSONResponse(status_code=status_code, content=error.model_dump())


def configure_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers for the FastAPI application.

    Registers handlers for all domain exceptions to return appropriate
    HTTP status codes and error responses.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(BundleNotFoundError)
    async def bundle_not_found_handler(
        request: Request, exc: BundleNotFoundError
    ) -> JSONResponse:
        """Handle BundleNotFoundError with 404 Not Found."""
        return _error(404, "NOT_FOUND", exc, bot_id=exc.bundle_id)

    @app.exception_handler(NoEntryPointError)
    async def no_entry_point_handler(
        request: Request, exc: NoEntryPointError
    ) -> JSONResponse:
        """Handle NoEntryPointError with 422 Unprocessable Entity."""
        logger.warning("No entry point", bot_id=exc.bundle_id, reason=exc.reason)
        return _error(422, "NO_ENTRY_POINT", exc, bot_id=exc.bundle_id)

    @app.exception_handler(SandboxRuntimeError)
    async def runtime_failure_handler(
        request: Request, exc: SandboxRuntimeError
    ) -> JSONResponse:
        """Handle SandboxRuntimeError with 502 Bad Gateway."""
        logger.warning("Sandbox runtime failure", bot_id=exc.bundle_id, error=str(exc))
        return _error(502, "RUNTIME_FAILURE", exc, bot_id=exc.bundle_id)

    @app.exception_handler(PathRejectedError)
    async def path_rejected_handler(
        request: Request, exc: PathRejectedError
    ) -> JSONResponse:
        """Handle PathRejectedError with 400 Bad Request."""
        logger.warning("Path rejected", requested=exc.requested, reason=exc.reason)
        return _error(400, "PATH_REJECTED", exc, path=exc.requested)

    @app.exception_handler(InvalidArchiveError)
    async def invalid_archive_handler(
        request: Request, exc: InvalidArchiveError
    ) -> JSONResponse:
        """Handle InvalidArchiveError with 400 Bad Request."""
        return _error(400, "INVALID_ARCHIVE", exc)

    @app.exception_handler(FileOperationError)
    async def file_operation_handler(
        request: Request, exc: FileOperationError
    ) -> JSONResponse:
        """Handle FileOperationError with its own status code."""
        return _error(exc.status_code, exc.code, exc)
