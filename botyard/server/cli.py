"""CLI commands for the botyard server."""
import asyncio
from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from botyard.sandbox.docker import DockerRuntime
from botyard.sandbox.teardown import remove_orphaned_sandboxes
from botyard.server.banner import print_banner
from botyard.server.config import ServerConfig


console = Console()

server_app = typer.Typer(
    name="server",
    help="botyard API server commands.",
)


@server_app.callback(invoke_without_command=True)
def server(
    ctx: typer.Context,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port to listen on (default: from config/env)"),
    ] = None,
    bind_all: Annotated[
        bool,
        typer.Option(
            "--bind-all",
            help="Bind to all interfaces (0.0.0.0). WARNING: Exposes server to network.",
        ),
    ] = False,
    reload: Annotated[
        bool,
        typer.Option("--reload", help="Enable auto-reload for development"),
    ] = False,
) -> None:
    """Start the botyard API server.

    By default, binds to localhost (127.0.0.1) only.
    Use --bind-all to expose to the network (not recommended without auth).

    Port and host can be configured via BOTYARD_PORT and BOTYARD_HOST env vars.
    """
    # Skip if subcommand is invoked
    if ctx.invoked_subcommand is not None:
        return

    config = ServerConfig()

    # CLI flags override config
    effective_port = port if port is not None else config.port
    effective_host = "0.0.0.0" if bind_all else config.host

    print_banner(console, effective_host, effective_port)

    if bind_all:
        console.print(
            "[yellow]Warning:[/yellow] Server accessible to all network clients. "
            "Anyone who can reach it can upload and run code.",
            style="bold yellow",
        )

    console.print(f"Starting botyard server on http://{effective_host}:{effective_port}")
    console.print(f"API docs: http://{effective_host}:{effective_port}/api/docs")

    try:
        uvicorn.run(
            "botyard.server.main:app",
            host=effective_host,
            port=effective_port,
            reload=reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        console.print("\nServer stopped.")


@server_app.command("cleanup")
def cleanup() -> None:
    """Remove sandbox containers left behind by a previous server run.

    Useful if the server was killed without graceful shutdown and
    BOTYARD_RECONCILE_ORPHANS is disabled. Do not run while a server is up:
    its live containers match the same naming convention.
    """
    config = ServerConfig()
    runtime = DockerRuntime(
        docker_binary=config.docker_binary,
        name_prefix=config.container_prefix,
    )
    removed = asyncio.run(remove_orphaned_sandboxes(runtime))
    console.print(f"Removed {removed} container(s) matching '{config.container_prefix}*'")
