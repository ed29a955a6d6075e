# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Entry-point discovery for uploaded bundles."""

import json
from pathlib import Path

from loguru import logger

from botyard.core.exceptions import NoEntryPointError, PathRejectedError
from botyard.tools.safe_file import resolve_within


ENTRY_CANDIDATES: tuple[str, ...] = ("index.js", "app.js", "server.js")
MANIFEST_NAME = "package.json"


def resolve_entry_point(bundle_root: Path) -> str:
    """Determine which file to execute for a bundle.

    Checks the conventional entry filenames in priority order, then falls
    back to the ``main`` field of the bundle's ``package.json``.

    Args:
        bundle_root: Root directory of the extracted bundle.

    Returns:
        Entry path relative to the bundle root.

    Raises:
        NoEntryPointError: If no candidate exists and the manifest does not
            declare a usable ``main``.
    """
    bundle_id = bundle_root.name

    for candidate in ENTRY_CANDIDATES:
        if (bundle_root / candidate).is_file():
            return candidate

    manifest_path = bundle_root / MANIFEST_NAME
    if not manifest_path.is_file():
        raise NoEntryPointError(bundle_id)

    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Unreadable package manifest", bundle_id=bundle_id, error=str(e))
        raise NoEntryPointError(bundle_id, f"unreadable {MANIFEST_NAME}: {e}") from e

    main = manifest.get("main") if isinstance(manifest, dict) else None
    if not isinstance(main, str) or not main.strip():
        raise NoEntryPointError(bundle_id)

    try:
        resolved = resolve_within(bundle_root, main.strip())
    except PathRejectedError as e:
        raise NoEntryPointError(bundle_id, f"main escapes bundle root: {main!r}") from e

    return resolved.relative_to(bundle_root.resolve()).as_posix()
