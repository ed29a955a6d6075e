# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Docker-based sandbox runtime for isolated bundle execution.

One container per running bundle. All docker interactions use
asyncio.create_subprocess_exec, without the Docker SDK.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from loguru import logger

from botyard.core.exceptions import SandboxRuntimeError
from botyard.sandbox.provider import (
    SandboxExit,
    SandboxHandle,
    SandboxRuntime,
    SandboxSpec,
)


# Extra time on top of the grace period before falling back to docker kill.
_STOP_SLACK_SECONDS = 10.0
_REMOVE_TIMEOUT = 15.0
# docker logs output is read in blocks and split into lines of bounded size.
_READ_CHUNK_BYTES = 64 * 1024
_MAX_LINE_BYTES = 64 * 1024


async def _split_lines(stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
    """Yield newline-terminated lines from a stream of raw blocks.

    Lines over ``_MAX_LINE_BYTES`` are split into pieces of at most that
    size. A trailing partial line is yielded at EOF.
    """
    pending = bytearray()
    while True:
        block = await stream.read(_READ_CHUNK_BYTES)
        if not block:
            break
        pending.extend(block)
        while True:
            newline = pending.find(b"\n")
            if newline == -1 or newline >= _MAX_LINE_BYTES:
                if len(pending) < _MAX_LINE_BYTES:
                    break
                piece = bytes(pending[:_MAX_LINE_BYTES])
                del pending[:_MAX_LINE_BYTES]
            else:
                piece = bytes(pending[: newline + 1])
                del pending[: newline + 1]
            yield piece
    if pending:
        yield bytes(pending)


class DockerRuntime(SandboxRuntime):
    """Runs each bundle in its own ``docker run -d`` container.

    Args:
        docker_binary: Docker CLI executable.
        name_prefix: Prefix shared by every container this runtime creates.
    """

    def __init__(
        self,
        docker_binary: str = "docker",
        name_prefix: str = "botyard-bot-",
    ) -> None:
        self.docker_binary = docker_binary
        self.name_prefix = name_prefix

    def build_run_command(self, spec: SandboxSpec) -> list[str]:
        """Build the ``docker run`` argument list for a sandbox spec."""
        cmd = [
            self.docker_binary, "run", "-d",
            "--name", spec.name,
            "--memory", str(spec.limits.memory_bytes),
            "--pids-limit", str(spec.limits.max_processes),
            "-v", spec.bind.as_volume_arg(),
            "-w", spec.working_dir,
        ]
        if spec.network_disabled:
            cmd.extend(["--network", "none"])
        for key, value in spec.labels.items():
            cmd.extend(["--label", f"{key}={value}"])
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run a docker CLI command to completion.

        Returns:
            Tuple of (returncode, stdout, stderr).

        Raises:
            SandboxRuntimeError: If the docker binary cannot be executed.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.docker_binary, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, OSError) as exc:
            raise SandboxRuntimeError(f"Docker not available: {exc}") from exc
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise
        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode().strip(),
            stderr.decode().strip(),
        )

    async def create_and_start(self, spec: SandboxSpec) -> SandboxHandle:
        """Create and start a detached container.

        Raises:
            SandboxRuntimeError: If docker rejects the run. Any container
                left behind under the spec's name is force-removed
                before raising.
        """
        cmd = self.build_run_command(spec)
        returncode, stdout, stderr = await self._run(*cmd[1:])
        if returncode != 0:
            # docker run can create the container and then fail to start it
            await self._force_remove(spec.name)
            raise SandboxRuntimeError(
                f"Failed to start container {spec.name}: {stderr or 'unknown error'}"
            )

        container_id = stdout.splitlines()[-1] if stdout else spec.name
        logger.info(
            "Container started",
            container=spec.name,
            container_id=container_id[:12],
            image=spec.image,
        )
        return SandboxHandle(container_id=container_id, name=spec.name)

    async def stream_output(self, handle: SandboxHandle) -> AsyncIterator[bytes]:
        """Follow container logs with stdout and stderr merged.

        Yields:
            Raw output lines, newline included. Overlong lines arrive in
            several pieces.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.docker_binary, "logs", "--follow", handle.container_id,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except (FileNotFoundError, OSError) as exc:
            raise SandboxRuntimeError(f"Docker not available: {exc}") from exc

        if proc.stdout is None:
            raise SandboxRuntimeError("Failed to capture output from docker logs")

        try:
            async for line in _split_lines(proc.stdout):
                yield line
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()
            await proc.wait()

    async def stop(self, handle: SandboxHandle, grace_seconds: float) -> None:
        """Stop the container, letting docker SIGKILL it after the grace period.

        Falls back to ``docker kill`` if ``docker stop`` itself hangs.

        Raises:
            SandboxRuntimeError: If docker rejects both stop and kill.
        """
        grace = max(0, int(round(grace_seconds)))
        try:
            returncode, _, stderr = await asyncio.wait_for(
                self._run("stop", "-t", str(grace), handle.container_id),
                timeout=grace_seconds + _STOP_SLACK_SECONDS,
            )
        except TimeoutError:
            logger.warning(
                "docker stop timed out, killing container",
                container=handle.name,
            )
            returncode, _, stderr = await self._run("kill", handle.container_id)

        if returncode != 0:
            raise SandboxRuntimeError(
                f"Failed to stop container {handle.name}: {stderr or 'unknown error'}"
            )
        logger.info("Container stopped", container=handle.name)

    async def wait(self, handle: SandboxHandle) -> SandboxExit:
        """Block until the container exits.

        Returns:
            SandboxExit with the exit code, or the error text if docker wait
            failed.
        """
        try:
            returncode, stdout, stderr = await self._run("wait", handle.container_id)
        except SandboxRuntimeError as exc:
            return SandboxExit(status_code=None, error=str(exc))
        if returncode != 0:
            return SandboxExit(status_code=None, error=stderr or "docker wait failed")
        try:
            return SandboxExit(status_code=int(stdout.splitlines()[-1]))
        except (ValueError, IndexError):
            return SandboxExit(status_code=None, error=f"unexpected wait output: {stdout!r}")

    async def remove(self, handle: SandboxHandle) -> None:
        """Force-remove the container. Failures are logged, not raised."""
        await self._force_remove(handle.container_id)

    async def _force_remove(self, ref: str) -> None:
        try:
            returncode, _, stderr = await asyncio.wait_for(
                self._run("rm", "-f", ref), timeout=_REMOVE_TIMEOUT,
            )
        except (SandboxRuntimeError, TimeoutError) as exc:
            logger.warning("Failed to remove container", container=ref, error=str(exc))
            return
        if returncode != 0 and "No such container" not in stderr:
            logger.warning("Failed to remove container", container=ref, error=stderr)
        else:
            logger.debug("Container removed", container=ref)

    async def list_managed(self) -> list[str]:
        """List ids of all containers (running or not) named with our prefix.

        Raises:
            SandboxRuntimeError: If docker cannot be queried.
        """
        returncode, stdout, stderr = await self._run(
            "ps", "-a", "-q", "--filter", f"name={self.name_prefix}",
        )
        if returncode != 0:
            raise SandboxRuntimeError(f"Failed to list containers: {stderr}")
        return [cid for cid in stdout.split("\n") if cid]
