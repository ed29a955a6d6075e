"""Request schemas for REST API endpoints."""

from typing import Annotated

from pydantic import BaseModel, Field


class WriteFileRequest(BaseModel):
    """Request to create or overwrite a file inside a bot bundle.

    Attributes:
        path: File path relative to the bundle root
        content: New file content (UTF-8 text)
    """

    path: Annotated[str, Field(min_length=1, description="File path relative to the bundle root")]
    content: Annotated[str, Field(description="New file content")]
