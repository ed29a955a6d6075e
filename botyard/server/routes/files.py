"""File browser and editor endpoints for bot bundles."""
import asyncio

from fastapi import APIRouter, Depends, Query
from loguru import logger

from botyard.server.bundles import BundleStore
from botyard.server.dependencies import get_bundle_store
from botyard.server.models.requests import WriteFileRequest
from botyard.server.models.responses import (
    ActionResponse,
    FileContentResponse,
    FileEntry,
)


router = APIRouter(prefix="/bots/{bot_id}", tags=["files"])


@router.get("/files", response_model=list[FileEntry])
async def list_files(
    bot_id: str,
    store: BundleStore = Depends(get_bundle_store),
) -> list[FileEntry]:
    """List every file in a bundle.

    Args:
        bot_id: Bundle identifier.
        store: Bundle store.

    Returns:
        Files with paths relative to the bundle root.

    Raises:
        BundleNotFoundError: If the bundle does not exist.
    """
    files = await asyncio.to_thread(store.list_files, bot_id)
    return [FileEntry(path=f.path, size=f.size) for f in files]


@router.get("/file", response_model=FileContentResponse)
async def read_file(
    bot_id: str,
    path: str = Query(..., min_length=1, description="File path relative to the bundle root"),
    store: BundleStore = Depends(get_bundle_store),
) -> FileContentResponse:
    """Read a text file from a bundle.

    Args:
        bot_id: Bundle identifier.
        path: File path relative to the bundle root.
        store: Bundle store.

    Returns:
        File content and guessed MIME type.

    Raises:
        BundleNotFoundError: If the bundle does not exist.
        PathRejectedError: If the path escapes the bundle.
        FileOperationError: If the file is missing or unreadable.
    """
    # Read content (use thread pool to avoid blocking event loop)
    content, mime = await asyncio.to_thread(store.read_file, bot_id, path)
    return FileContentResponse(content=content, mime=mime)


@router.put("/file", response_model=ActionResponse)
async def write_file(
    bot_id: str,
    request: WriteFileRequest,
    store: BundleStore = Depends(get_bundle_store),
) -> ActionResponse:
    """Create or overwrite a text file in a bundle.

    Edits apply to a running bot immediately since its sandbox bind-mounts
    the bundle directory.

    Raises:
        BundleNotFoundError: If the bundle does not exist.
        PathRejectedError: If the path escapes the bundle.
        FileOperationError: If the file cannot be written.
    """
    written = await asyncio.to_thread(store.write_file, bot_id, request.path, request.content)
    logger.info("Bundle file written", bot_id=bot_id, path=str(written))
    return ActionResponse()
