"""Display module for fileshift.

This module provides console output, prompts and the rich conversion view.
"""

from fileshift.display.console import create_console, get_console, reset_console
from fileshift.display.prompts import PromptCancelled, is_interactive, q_select
from fileshift.display.view import RichConversionView, format_size

__all__ = [
    "PromptCancelled",
    "RichConversionView",
    "create_console",
    "format_size",
    "get_console",
    "is_interactive",
    "q_select",
    "reset_console",
]
