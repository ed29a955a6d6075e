"""Filesystem helpers shared by the engine and the file endpoints."""
from botyard.tools.safe_file import SafeFileWriter, is_within, resolve_within


__all__ = ["SafeFileWriter", "is_within", "resolve_within"]
