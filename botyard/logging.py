"""Logging configuration with the botyard console palette.

All modules log through loguru with structured keyword fields; this module
installs the single stderr handler that renders them.
"""

import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


COLORS = {
    "amber": "#FFC857",  # Warnings, accents
    "green": "#5B8A72",  # Success
    "muted": "#88A896",  # Secondary text, debug
    "faint": "#4A5C54",  # Separators, trace
    "cream": "#EFF8E2",  # Primary text
    "red": "#A33D2E",  # Errors
    "blue": "#5B9BD5",  # Info, identifiers
}

RESET = "\033[0m"


def _log_format(record: "Record") -> str:
    """Generate the loguru format string for one record.

    Applies a color per level and appends structured extra fields as
    ``key=value`` pairs.

    Args:
        record: Loguru record containing log metadata, message, and level.

    Returns:
        Formatted string with Loguru color tags for the log message.
    """
    level = record["level"].name

    level_colors = {
        "TRACE": f"<fg {COLORS['faint']}>",
        "DEBUG": f"<fg {COLORS['muted']}>",
        "INFO": f"<fg {COLORS['blue']}>",
        "SUCCESS": f"<fg {COLORS['green']}>",
        "WARNING": f"<fg {COLORS['amber']}>",
        "ERROR": f"<fg {COLORS['red']}>",
        "CRITICAL": f"<fg {COLORS['red']}><bold>",
    }

    color = level_colors.get(level, f"<fg {COLORS['cream']}>")

    # Loguru uses </> to close any open color tag
    close = "</>"

    fmt = (
        f"<fg {COLORS['muted']}>{{time:HH:mm:ss}}{close}"
        f" <fg {COLORS['faint']}>│{close} "
        f"{color}{{level: <8}}{close}"
        f"<fg {COLORS['faint']}>│{close} "
        f"<fg {COLORS['muted']}>{{name}}{close}"
        f"<fg {COLORS['faint']}>:{close}"
        f"<fg {COLORS['cream']}>{{message}}{close}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent Loguru format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}")
        # Escape color tags that may appear in values
        extra_str = extra_str.replace("<", r"\<")
        fmt += f" <fg {COLORS['muted']}>│ {extra_str}{close}"

    fmt += "\n"

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru with the botyard console format.

    Removes the default handler and adds a colorized stderr handler with
    structured field support.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=_log_format,
        colorize=True,
    )


def log_server_startup(host: str, port: int, bundles_dir: str, image: str, version: str) -> None:
    """Print the server configuration block at startup.

    Args:
        host: Server bind host address.
        port: Server bind port number.
        bundles_dir: Directory holding uploaded bundles.
        image: Sandbox image bundles run in.
        version: Application version string.
    """
    amber = "\033[38;2;255;200;87m"
    green = "\033[38;2;91;138;114m"
    blue = "\033[38;2;91;155;213m"
    muted = "\033[38;2;136;168;150m"

    config_lines = [
        f"  {muted}Version:{RESET}  {amber}v{version}{RESET}",
        f"  {muted}Server:{RESET}   {blue}http://{host}:{port}{RESET}",
        f"  {muted}Bundles:{RESET}  {green}{bundles_dir}{RESET}",
        f"  {muted}Image:{RESET}    {green}{image}{RESET}",
        "",
    ]
    sys.stderr.write("\n".join(config_lines) + "\n")
    sys.stderr.flush()
