import typer

from botyard import __version__
from botyard.logging import configure_logging
from botyard.server.cli import server_app


app = typer.Typer(help="botyard sandboxed bot runner CLI")
app.add_typer(server_app, name="server")


@app.callback()
def main_callback() -> None:
    """
    botyard: run uploaded code bundles in isolated sandboxes.
    """
    configure_logging()


@app.command()
def version() -> None:
    """Print the botyard version."""
    typer.echo(f"botyard {__version__}")


if __name__ == "__main__":
    app()
