"""ASCII banner with gradient colors for server startup."""
from rich.console import Console
from rich.style import Style
from rich.text import Text


# --- Color Palette ---
SLATE = "#1f332e"
TEAL = "#5b8a72"
GOLD = "#ffc857"
CREAM = "#eff8e2"
MOSS = "#88976b"

BANNER_ART = """\
 ██████╗  ██████╗ ████████╗██╗   ██╗ █████╗ ██████╗ ██████╗
 ██╔══██╗██╔═══██╗╚══██╔══╝╚██╗ ██╔╝██╔══██╗██╔══██╗██╔══██╗
 ██████╔╝██║   ██║   ██║    ╚████╔╝ ███████║██████╔╝██║  ██║
 ██╔══██╗██║   ██║   ██║     ╚██╔╝  ██╔══██║██╔══██╗██║  ██║
 ██████╔╝╚██████╔╝   ██║      ██║   ██║  ██║██║  ██║██████╔╝
 ╚═════╝  ╚═════╝    ╚═╝      ╚═╝   ╚═╝  ╚═╝╚═╝  ╚═╝╚═════╝"""


def _interpolate_color(color1: str, color2: str, factor: float) -> str:
    """Interpolate between two hex colors using linear interpolation.

    Args:
        color1: Starting hex color.
        color2: Ending hex color.
        factor: Interpolation factor (0.0 = color1, 1.0 = color2).

    Returns:
        Interpolated hex color string.
    """
    r1, g1, b1 = (int(color1[i:i + 2], 16) for i in (1, 3, 5))
    r2, g2, b2 = (int(color2[i:i + 2], 16) for i in (1, 3, 5))

    r = int(r1 + (r2 - r1) * factor)
    g = int(g1 + (g2 - g1) * factor)
    b = int(b1 + (b2 - b1) * factor)

    return f"#{r:02x}{g:02x}{b:02x}"


def get_gradient_banner(start_color: str, end_color: str) -> Text:
    """Generate ASCII banner with horizontal gradient from left to right.

    Args:
        start_color: The hex code for the left side of the gradient.
        end_color: The hex code for the right side of the gradient.

    Returns:
        Rich Text object with gradient-colored ASCII art.
    """
    lines = BANNER_ART.split("\n")
    text = Text()
    max_len = max(len(line) for line in lines)

    for i, line in enumerate(lines):
        for j, char in enumerate(line):
            if char.strip():  # Only color non-whitespace
                factor = j / max_len if max_len > 0 else 0
                color = _interpolate_color(start_color, end_color, factor)
                text.append(char, style=Style(color=color))
            else:
                text.append(char)
        if i < len(lines) - 1:
            text.append("\n")

    return text


def get_service_urls_display(api_host: str, api_port: int) -> Text:
    """Generate styled display of the API and log stream URLs.

    Args:
        api_host: Host the API is bound to.
        api_port: Port the API is bound to.

    Returns:
        Rich Text object with styled service URLs.
    """
    # Use localhost for display if bound to 0.0.0.0
    display_host = "localhost" if api_host == "0.0.0.0" else api_host

    text = Text()
    text.append("    ➜ ", style=MOSS)
    text.append("API:  ", style=CREAM)
    text.append(f"http://{display_host}:{api_port}/api", style=f"bold {GOLD}")
    text.append("\n")
    text.append("    ➜ ", style=MOSS)
    text.append("Logs: ", style=CREAM)
    text.append(f"ws://{display_host}:{api_port}/ws/logs?botId=<id>", style=f"bold {CREAM}")
    return text


def print_banner(console: Console, api_host: str, api_port: int) -> None:
    """Print the gradient ASCII banner and service URLs to console.

    Args:
        console: Rich Console instance to print to.
        api_host: Host the API is bound to.
        api_port: Port the API is bound to.
    """
    console.print()
    console.print(get_gradient_banner(start_color=TEAL, end_color=GOLD))
    console.print()
    console.print(get_service_urls_display(api_host, api_port))
    console.print()
