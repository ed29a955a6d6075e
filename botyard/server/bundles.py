# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""On-disk storage for uploaded bundles.

One directory per bundle id under the bundles root. Every path derived from
user input goes through the bundle-root guard.
"""
import mimetypes
import os
import shutil
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from loguru import logger

from botyard.core.exceptions import (
    BundleNotFoundError,
    InvalidArchiveError,
    PathRejectedError,
)
from botyard.core.types import is_valid_bundle_id
from botyard.server.exceptions import FileOperationError
from botyard.tools.safe_file import SafeFileWriter, resolve_within


@dataclass(frozen=True)
class BundleFile:
    """A regular file inside a bundle."""

    path: str
    size: int


class BundleStore:
    """Creates, lists, edits and removes bundle directories.

    All methods are synchronous filesystem operations; async callers should
    run them with ``asyncio.to_thread``.

    Args:
        root: Directory holding all bundle directories. Created if missing.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, bundle_id: str) -> Path:
        """Return a bundle's directory path without checking it exists.

        Raises:
            BundleNotFoundError: If the id is not a valid bundle id.
        """
        if not is_valid_bundle_id(bundle_id):
            raise BundleNotFoundError(bundle_id)
        return self.root / bundle_id

    def exists(self, bundle_id: str) -> bool:
        if not is_valid_bundle_id(bundle_id):
            return False
        return (self.root / bundle_id).is_dir()

    def require(self, bundle_id: str) -> Path:
        """Return an existing bundle's directory.

        Raises:
            BundleNotFoundError: If the bundle directory does not exist.
        """
        path = self.path_for(bundle_id)
        if not path.is_dir():
            raise BundleNotFoundError(bundle_id)
        return path

    def list_ids(self) -> list[str]:
        """List bundle ids, sorted."""
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and is_valid_bundle_id(entry.name)
        )

    def _new_id(self) -> str:
        while True:
            bundle_id = uuid.uuid4().hex[:12]
            if not (self.root / bundle_id).exists():
                return bundle_id

    def create_from_archive(self, archive: BinaryIO | Path | str) -> str:
        """Extract a zip archive into a new bundle directory.

        Entries that would land outside the bundle directory are rejected and
        the whole upload is discarded.

        Args:
            archive: Zip file path or seekable binary file object.

        Returns:
            The new bundle id.

        Raises:
            InvalidArchiveError: If the archive is unreadable or unsafe.
        """
        bundle_id = self._new_id()
        dest = self.root / bundle_id
        dest.mkdir(parents=True)
        try:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.infolist():
                    target = resolve_within(dest, member.filename)
                    if member.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(member) as src, target.open("wb") as out:
                        shutil.copyfileobj(src, out)
        except PathRejectedError as e:
            shutil.rmtree(dest, ignore_errors=True)
            raise InvalidArchiveError(f"Archive entry escapes bundle: {e.requested!r}") from e
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
            shutil.rmtree(dest, ignore_errors=True)
            raise InvalidArchiveError(f"Invalid zip archive: {e}") from e

        logger.info("Bundle extracted", bot_id=bundle_id, path=str(dest))
        return bundle_id

    def remove(self, bundle_id: str) -> None:
        """Delete a bundle directory and everything under it."""
        path = self.path_for(bundle_id)
        if path.is_dir():
            shutil.rmtree(path)
            logger.info("Bundle removed", bot_id=bundle_id)

    def resolve_safe_path(self, bundle_id: str, requested: str) -> Path:
        """Resolve a file path confined to an existing bundle.

        Raises:
            BundleNotFoundError: If the bundle does not exist.
            PathRejectedError: If the path escapes the bundle root.
        """
        return resolve_within(self.require(bundle_id), requested)

    def list_files(self, bundle_id: str) -> list[BundleFile]:
        """Recursively list regular files in a bundle, sorted by path."""
        base = self.require(bundle_id)
        files: list[BundleFile] = []
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames.sort()
            for name in sorted(filenames):
                full = Path(dirpath) / name
                if full.is_symlink() or not full.is_file():
                    continue
                files.append(
                    BundleFile(
                        path=full.relative_to(base).as_posix(),
                        size=full.stat().st_size,
                    )
                )
        return files

    def read_file(self, bundle_id: str, requested: str) -> tuple[str, str]:
        """Read a text file from a bundle.

        Returns:
            Tuple of (content, mime type).

        Raises:
            FileOperationError: If the file is missing, not a file, or not text.
        """
        path = self.resolve_safe_path(bundle_id, requested)
        if not path.exists():
            raise FileOperationError("File not found", "FILE_NOT_FOUND", status_code=404)
        if not path.is_file():
            raise FileOperationError("Path is not a file", "NOT_A_FILE")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileOperationError(f"Failed to read file: {e}", "READ_ERROR") from e

        mime, _ = mimetypes.guess_type(path.name)
        return content, mime or "text/plain"

    def write_file(self, bundle_id: str, requested: str, content: str) -> Path:
        """Write a text file into a bundle, creating parent directories.

        Raises:
            FileOperationError: If the file cannot be written.
        """
        base = self.require(bundle_id)
        try:
            return SafeFileWriter.write(base, requested, content)
        except IsADirectoryError as e:
            raise FileOperationError("Path is a directory", "NOT_A_FILE") from e
        except OSError as e:
            raise FileOperationError(f"Failed to write file: {e}", "WRITE_ERROR") from e
