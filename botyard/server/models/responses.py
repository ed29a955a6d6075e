"""Response schemas for REST API endpoints."""

from typing import Annotated, Any

from pydantic import BaseModel, Field

from botyard.core.types import InstanceState


class UploadResponse(BaseModel):
    """Response from uploading a new bundle.

    Attributes:
        id: Identifier of the new bundle
    """

    id: Annotated[str, Field(description="Identifier of the new bundle")]


class BotSummary(BaseModel):
    """Summary of a bundle for list views.

    Attributes:
        id: Bundle identifier
        path: Bundle directory on the host
        running: Whether a sandbox is live for the bundle
    """

    id: Annotated[str, Field(description="Bundle identifier")]
    path: Annotated[str, Field(description="Bundle directory on the host")]
    running: Annotated[bool, Field(description="Whether a sandbox is live")]


class StartInfo(BaseModel):
    """Details of a start or restart."""

    container_id: Annotated[str, Field(description="Sandbox container id")]
    already_running: Annotated[
        bool, Field(description="True if the bot was already running")
    ] = False


class ActionResponse(BaseModel):
    """Generic response for lifecycle and file actions.

    Attributes:
        ok: Always true on success
        result: Start details for start/restart
    """

    ok: Annotated[bool, Field(description="Action succeeded")] = True
    result: Annotated[
        StartInfo | None,
        Field(default=None, description="Start details for start/restart"),
    ] = None


class BotStatusResponse(BaseModel):
    """Current lifecycle status of a bundle.

    Attributes:
        running: Whether a sandbox is live
        container_id: Sandbox container id while running
        state: Lifecycle state
    """

    running: Annotated[bool, Field(description="Whether a sandbox is live")]
    container_id: Annotated[
        str | None, Field(default=None, description="Sandbox container id")
    ] = None
    state: Annotated[InstanceState, Field(description="Lifecycle state")]


class FileEntry(BaseModel):
    """A file inside a bundle."""

    path: Annotated[str, Field(description="Path relative to the bundle root")]
    size: Annotated[int, Field(description="File size in bytes")]


class FileContentResponse(BaseModel):
    """Content of a bundle file."""

    content: Annotated[str, Field(description="File content as text")]
    mime: Annotated[str, Field(description="Guessed MIME type")]


class ErrorResponse(BaseModel):
    """Error response for failed requests.

    Attributes:
        error: Human-readable error message
        code: Machine-readable error code
        details: Optional additional error details
    """

    error: Annotated[str, Field(description="Human-readable error message")]
    code: Annotated[str, Field(description="Machine-readable error code")]
    details: Annotated[
        dict[str, Any] | None,
        Field(default=None, description="Optional additional error details"),
    ] = None
