# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared type definitions for the botyard sandbox engine.

Contains the instance state machine enum and the immutable snapshot models
handed out by the lifecycle controller.
"""
import re
from enum import StrEnum

from pydantic import BaseModel


BUNDLE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_bundle_id(bundle_id: str) -> bool:
    """Check that a bundle id is URL-safe and cannot address another directory."""
    return bool(BUNDLE_ID_PATTERN.match(bundle_id))


class InstanceState(StrEnum):
    """Lifecycle states of a bundle's sandbox instance.

    Transitions: stopped -> starting -> running -> stopping -> stopped, plus
    running -> stopped when the sandbox exits on its own.

    Attributes:
        STOPPED: No sandbox exists for the bundle.
        STARTING: Sandbox creation is in progress.
        RUNNING: Sandbox is live and its output is being captured.
        STOPPING: Graceful termination has been requested.
    """
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class BotStatus(BaseModel, frozen=True):
    """Consistent point-in-time view of one bundle's instance.

    Attributes:
        bundle_id: Bundle identifier.
        state: Current lifecycle state.
        container_id: External sandbox identity while a handle is held.
    """
    bundle_id: str
    state: InstanceState = InstanceState.STOPPED
    container_id: str | None = None

    @property
    def running(self) -> bool:
        return self.container_id is not None and self.state in (
            InstanceState.STARTING,
            InstanceState.RUNNING,
        )


class StartResult(BaseModel, frozen=True):
    """Outcome of a start request.

    Attributes:
        container_id: Identity of the live sandbox.
        already_running: True when start was a no-op on a live instance.
    """
    container_id: str
    already_running: bool = False
