"""Tests for DockerRuntime."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from botyard.core.exceptions import SandboxRuntimeError
from botyard.sandbox.docker import DockerRuntime
from botyard.sandbox.provider import (
    BindMount,
    ResourceLimits,
    SandboxHandle,
    SandboxRuntime,
    SandboxSpec,
)


def _reader(*blocks: bytes) -> asyncio.StreamReader:
    """Build a finished stream reader holding the given output."""
    reader = asyncio.StreamReader()
    for block in blocks:
        reader.feed_data(block)
    reader.feed_eof()
    return reader


def _proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> AsyncMock:
    proc = AsyncMock()
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    return proc


@pytest.fixture
def runtime() -> DockerRuntime:
    return DockerRuntime()


@pytest.fixture
def spec() -> SandboxSpec:
    return SandboxSpec(
        name="botyard-bot-abc",
        image="node:20-slim",
        command=["node", "index.js"],
        working_dir="/bot",
        bind=BindMount(host_path="/data/bots/abc", container_path="/bot"),
        limits=ResourceLimits(memory_bytes=256 * 1024 * 1024, max_processes=100),
        labels={"botyard.bundle": "abc"},
    )


@pytest.fixture
def handle() -> SandboxHandle:
    return SandboxHandle(container_id="c0ffee123456", name="botyard-bot-abc")


class TestDockerRuntimeProtocol:
    """DockerRuntime satisfies SandboxRuntime protocol."""

    def test_satisfies_protocol(self, runtime: DockerRuntime) -> None:
        assert isinstance(runtime, SandboxRuntime)

    def test_defaults(self, runtime: DockerRuntime) -> None:
        assert runtime.docker_binary == "docker"
        assert runtime.name_prefix == "botyard-bot-"


class TestBuildRunCommand:
    """Tests for the docker run argument list."""

    def test_applies_isolation_flags(self, runtime: DockerRuntime, spec: SandboxSpec) -> None:
        cmd = runtime.build_run_command(spec)

        assert cmd[:3] == ["docker", "run", "-d"]
        assert cmd[cmd.index("--name") + 1] == "botyard-bot-abc"
        assert cmd[cmd.index("--memory") + 1] == str(256 * 1024 * 1024)
        assert cmd[cmd.index("--pids-limit") + 1] == "100"
        assert cmd[cmd.index("-v") + 1] == "/data/bots/abc:/bot:rw"
        assert cmd[cmd.index("-w") + 1] == "/bot"
        assert cmd[cmd.index("--network") + 1] == "none"
        assert cmd[cmd.index("--label") + 1] == "botyard.bundle=abc"

    def test_image_precedes_command(self, runtime: DockerRuntime, spec: SandboxSpec) -> None:
        cmd = runtime.build_run_command(spec)
        assert cmd[-3:] == ["node:20-slim", "node", "index.js"]

    def test_network_enabled_omits_flag(self, runtime: DockerRuntime, spec: SandboxSpec) -> None:
        open_spec = SandboxSpec(
            name=spec.name,
            image=spec.image,
            command=spec.command,
            working_dir=spec.working_dir,
            bind=spec.bind,
            limits=spec.limits,
            network_disabled=False,
        )
        assert "--network" not in runtime.build_run_command(open_spec)


class TestCreateAndStart:
    """Tests for create_and_start()."""

    async def test_returns_handle_with_container_id(
        self, runtime: DockerRuntime, spec: SandboxSpec
    ) -> None:
        with patch(
            "asyncio.create_subprocess_exec", return_value=_proc(b"abc123def456\n")
        ) as mock_exec:
            handle = await runtime.create_and_start(spec)

        assert handle.container_id == "abc123def456"
        assert handle.name == "botyard-bot-abc"
        args = mock_exec.call_args[0]
        assert args[0] == "docker"
        assert args[1] == "run"

    async def test_failure_removes_leftover_and_raises(
        self, runtime: DockerRuntime, spec: SandboxSpec
    ) -> None:
        failed = _proc(stderr=b"Conflict. The container name is already in use", returncode=125)
        removed = _proc()

        with patch(
            "asyncio.create_subprocess_exec", side_effect=[failed, removed]
        ) as mock_exec:
            with pytest.raises(SandboxRuntimeError, match="already in use"):
                await runtime.create_and_start(spec)

        rm_args = mock_exec.call_args_list[1][0]
        assert rm_args[1:] == ("rm", "-f", "botyard-bot-abc")

    async def test_docker_missing_raises(self, runtime: DockerRuntime, spec: SandboxSpec) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("docker")):
            with pytest.raises(SandboxRuntimeError, match="Docker not available"):
                await runtime.create_and_start(spec)


class TestStreamOutput:
    """Tests for stream_output()."""

    async def test_yields_merged_output(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        mock_proc = AsyncMock()
        mock_proc.stdout = _reader(b"hello\n", b"error: oops\n")
        mock_proc.returncode = 0

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc) as mock_exec:
            chunks = [chunk async for chunk in runtime.stream_output(handle)]

        assert chunks == [b"hello\n", b"error: oops\n"]
        args = mock_exec.call_args[0]
        assert args[1:] == ("logs", "--follow", "c0ffee123456")
        assert mock_exec.call_args.kwargs["stderr"] == asyncio.subprocess.STDOUT

    async def test_terminates_follower_when_consumer_stops(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        mock_proc = AsyncMock()
        mock_proc.stdout = _reader(b"one\n", b"two\n")
        mock_proc.returncode = None
        mock_proc.terminate = MagicMock()

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            stream = runtime.stream_output(handle)
            assert await anext(stream) == b"one\n"
            await stream.aclose()

        mock_proc.terminate.assert_called_once()
        mock_proc.wait.assert_awaited()

    async def test_line_longer_than_reader_limit_keeps_streaming(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        long_line = b"x" * 100_000
        mock_proc = AsyncMock()
        mock_proc.stdout = _reader(long_line + b"\n", b"after long line\n")
        mock_proc.returncode = 0

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            chunks = [chunk async for chunk in runtime.stream_output(handle)]

        assert chunks[-1] == b"after long line\n"
        assert b"".join(chunks[:-1]) == long_line + b"\n"
        assert all(len(chunk) <= 64 * 1024 for chunk in chunks)

    async def test_line_split_across_reads(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        mock_proc = AsyncMock()
        mock_proc.stdout = _reader(b"hel", b"lo\nwor", b"ld")
        mock_proc.returncode = 0

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            chunks = [chunk async for chunk in runtime.stream_output(handle)]

        assert chunks == [b"hello\n", b"world"]


class TestStop:
    """Tests for stop()."""

    async def test_stop_passes_grace_period(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            await runtime.stop(handle, grace_seconds=5)

        args = mock_exec.call_args[0]
        assert args[1:] == ("stop", "-t", "5", "c0ffee123456")

    async def test_stop_failure_raises(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            return_value=_proc(stderr=b"daemon unreachable", returncode=1),
        ):
            with pytest.raises(SandboxRuntimeError, match="daemon unreachable"):
                await runtime.stop(handle, grace_seconds=5)

    async def test_hung_stop_falls_back_to_kill(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        calls: list[tuple[str, ...]] = []

        async def fake_run(*args: str) -> tuple[int, str, str]:
            calls.append(args)
            if args[0] == "stop":
                await asyncio.sleep(10)
            return 0, "", ""

        with (
            patch("botyard.sandbox.docker._STOP_SLACK_SECONDS", 0.01),
            patch.object(runtime, "_run", side_effect=fake_run),
        ):
            await runtime.stop(handle, grace_seconds=0)

        assert [c[0] for c in calls] == ["stop", "kill"]

    async def test_hung_stop_process_is_killed_and_reaped(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        async def hang() -> tuple[bytes, bytes]:
            await asyncio.sleep(10)
            return b"", b""

        hung = AsyncMock()
        hung.communicate = AsyncMock(side_effect=hang)
        hung.kill = MagicMock()
        hung.returncode = None
        killed = _proc()

        with (
            patch("botyard.sandbox.docker._STOP_SLACK_SECONDS", 0.01),
            patch("asyncio.create_subprocess_exec", side_effect=[hung, killed]) as mock_exec,
        ):
            await runtime.stop(handle, grace_seconds=0)

        hung.kill.assert_called_once()
        hung.wait.assert_awaited()
        assert mock_exec.call_args_list[1][0][1:] == ("kill", "c0ffee123456")


class TestWait:
    """Tests for wait()."""

    async def test_returns_exit_code(self, runtime: DockerRuntime, handle: SandboxHandle) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(b"137\n")):
            result = await runtime.wait(handle)

        assert result.status_code == 137
        assert result.error is None
        assert result.describe() == '{"StatusCode": 137}'

    async def test_wait_failure_is_reported_not_raised(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            return_value=_proc(stderr=b"No such container", returncode=1),
        ):
            result = await runtime.wait(handle)

        assert result.status_code is None
        assert result.error == "No such container"

    async def test_unparseable_output(self, runtime: DockerRuntime, handle: SandboxHandle) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(b"not-a-number\n")):
            result = await runtime.wait(handle)

        assert result.status_code is None
        assert "unexpected wait output" in (result.error or "")

    async def test_docker_missing(self, runtime: DockerRuntime, handle: SandboxHandle) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("docker")):
            result = await runtime.wait(handle)

        assert result.status_code is None
        assert "Docker not available" in (result.error or "")


class TestRemove:
    """Tests for remove(): best effort, never raises."""

    async def test_force_removes_container(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            await runtime.remove(handle)

        assert mock_exec.call_args[0][1:] == ("rm", "-f", "c0ffee123456")

    async def test_missing_container_is_ignored(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            return_value=_proc(stderr=b"Error: No such container: c0ffee123456", returncode=1),
        ):
            await runtime.remove(handle)

    async def test_docker_missing_is_ignored(
        self, runtime: DockerRuntime, handle: SandboxHandle
    ) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=OSError("exec format error")):
            await runtime.remove(handle)


class TestListManaged:
    """Tests for list_managed()."""

    async def test_filters_by_name_prefix(self, runtime: DockerRuntime) -> None:
        with patch(
            "asyncio.create_subprocess_exec", return_value=_proc(b"aaa111\nbbb222\n")
        ) as mock_exec:
            ids = await runtime.list_managed()

        assert ids == ["aaa111", "bbb222"]
        args = mock_exec.call_args[0]
        assert "ps" in args
        assert "-a" in args
        assert "name=botyard-bot-" in args

    async def test_empty_output(self, runtime: DockerRuntime) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(b"")):
            assert await runtime.list_managed() == []

    async def test_failure_raises(self, runtime: DockerRuntime) -> None:
        with patch(
            "asyncio.create_subprocess_exec",
            return_value=_proc(stderr=b"permission denied", returncode=1),
        ):
            with pytest.raises(SandboxRuntimeError, match="permission denied"):
                await runtime.list_managed()
