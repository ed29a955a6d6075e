# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# botyard/tools/safe_file.py
"""Bundle-root path confinement for file reads, writes and extraction."""

import os
from pathlib import Path

from botyard.core.exceptions import PathRejectedError


def is_within(path: Path, root: Path) -> bool:
    """Check if a resolved path equals or is nested under a resolved root.

    Args:
        path: Fully resolved absolute path to check.
        root: Fully resolved root directory.

    Returns:
        True if path is the root or inside it.
    """
    try:
        common = os.path.commonpath([str(path), str(root)])
    except ValueError:
        # Mixed absolute/relative or different drives
        return False
    return common == str(root)


def resolve_within(root: Path | str, requested: str) -> Path:
    """Resolve a requested path against a bundle root, confined to that root.

    Relative paths are joined onto the root; an absolute path replaces it and
    is only accepted if it still lands inside the root. Symlinks that exist
    are followed before the containment check, so a link pointing outside
    the root is rejected. Nothing is created or modified.

    Args:
        root: Bundle root directory.
        requested: User-supplied path, relative or absolute.

    Returns:
        Canonical absolute path inside the root.

    Raises:
        PathRejectedError: If the path escapes the root or is malformed.
    """
    if "\x00" in requested:
        raise PathRejectedError(requested, "contains NUL byte")

    root_resolved = Path(root).resolve()
    try:
        resolved = (root_resolved / requested).resolve()
    except (OSError, RuntimeError) as e:
        raise PathRejectedError(requested, f"cannot resolve: {e}") from e

    if not is_within(resolved, root_resolved):
        raise PathRejectedError(requested)
    return resolved


class SafeFileWriter:
    """
    Writes bundle files with path confinement.

    Security features:
    - Path resolution and validation against the bundle root
    - Symlink escape blocking (links are resolved before the check)
    - Parent directory creation (within the root only)
    """

    @classmethod
    def write(cls, root: Path | str, requested: str, content: str) -> Path:
        """
        Write text content to a file inside a bundle root.

        Args:
            root: Bundle root directory.
            requested: Path to write to (relative or absolute).
            content: Text to write as UTF-8.

        Returns:
            The resolved path that was written.

        Raises:
            PathRejectedError: If the path is empty or escapes the root.
            OSError: If the file cannot be written.
        """
        if not requested or not requested.strip():
            raise PathRejectedError(requested, "empty path")

        resolved_path = resolve_within(root, requested)
        if resolved_path == Path(root).resolve():
            raise PathRejectedError(requested, "is the bundle root")

        resolved_path.parent.mkdir(parents=True, exist_ok=True)
        resolved_path.write_text(content, encoding="utf-8")
        return resolved_path
