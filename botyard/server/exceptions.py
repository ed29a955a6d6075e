"""Custom exception classes for server API error handling."""


class FileOperationError(Exception):
    """Raised when a bundle file endpoint cannot complete its operation.

    HTTP Status: 400 Bad Request unless overridden (404 for missing files).
    """

    def __init__(self, message: str, code: str, status_code: int = 400):
        """Initialize FileOperationError.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status to respond with.
        """
        self.code = code
        self.status_code = status_code
        super().__init__(message)
