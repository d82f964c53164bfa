"""Console factory.

This module provides a singleton Console instance with the fileshift styles
applied.
"""

from typing import Optional

from rich.console import Console
from rich.theme import Theme

STYLES = {
    "primary": "cyan",
    "success": "green",
    "error": "red",
    "warning": "yellow",
    "info": "blue",
    "muted": "dim",
    "path": "cyan",
    "format": "bold magenta",
    "engine": "bold blue",
}

_console_instance: Optional[Console] = None


def get_console() -> Console:
    """Get the singleton Console instance."""
    global _console_instance
    if _console_instance is None:
        _console_instance = create_console()
    return _console_instance


def create_console(**kwargs) -> Console:
    """Create a Console with the fileshift styles (kwargs go to Console)."""
    return Console(theme=Theme(STYLES), **kwargs)


def reset_console() -> None:
    """Reset the console instance."""
    global _console_instance
    _console_instance = None
