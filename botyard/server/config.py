"""Server configuration with environment variable support."""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Server configuration with environment variable support.

    All settings can be overridden via environment variables with BOTYARD_ prefix.
    Example: BOTYARD_PORT=9000 overrides the port setting.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOTYARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server binding
    host: str = Field(
        default="127.0.0.1",
        description="Host to bind the server to",
    )
    port: int = Field(
        default=4000,
        ge=1,
        le=65535,
        description="Port to bind the server to",
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level for server logs",
    )

    # Storage
    bundles_dir: Path = Field(
        default_factory=lambda: Path("data") / "bots",
        description="Directory holding one subdirectory per uploaded bundle",
    )
    max_upload_bytes: int = Field(
        default=200 * 1024 * 1024,
        ge=1,
        description="Maximum accepted upload size",
    )

    # Sandbox
    docker_binary: str = Field(
        default="docker",
        description="Docker CLI executable",
    )
    sandbox_image: str = Field(
        default="node:20-slim",
        description="Image every bundle runs in",
    )
    entry_command: list[str] = Field(
        default_factory=lambda: ["node"],
        min_length=1,
        description="Command prefix; the resolved entry file is appended",
    )
    container_prefix: str = Field(
        default="botyard-bot-",
        min_length=1,
        description="Name prefix for managed containers",
    )
    container_workdir: str = Field(
        default="/bot",
        description="Mount point and working directory inside the sandbox",
    )
    memory_limit_bytes: int = Field(
        default=256 * 1024 * 1024,
        ge=6 * 1024 * 1024,
        description="Memory ceiling per sandbox",
    )
    pids_limit: int = Field(
        default=100,
        ge=1,
        description="Process-count ceiling per sandbox",
    )
    stop_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Grace period before a stopping sandbox is killed",
    )
    reader_drain_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Time allowed for trailing output to arrive after exit",
    )
    reconcile_orphans: bool = Field(
        default=True,
        description="Remove containers left behind by a previous run on startup",
    )
    stop_on_shutdown: bool = Field(
        default=True,
        description="Stop running sandboxes when the server shuts down",
    )

    # Logs
    log_buffer_capacity: int = Field(
        default=2000,
        ge=1,
        description="Lines retained per bundle",
    )
    log_replay_lines: int = Field(
        default=200,
        ge=0,
        description="Lines replayed to a new log subscriber",
    )
    websocket_heartbeat_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Interval between WebSocket pings",
    )

    # HTTP
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API from a browser",
    )
