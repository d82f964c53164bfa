"""Terminal prompts with a non-TTY fallback.

questionary drives interactive terminals (through its asyncio API, since
prompts run inside the conversion event loop). When stdin/stdout are not a TTY
(pipes, CI) a plain numbered menu read with input() is used instead.
"""

import asyncio
import sys
from typing import Optional, Sequence

import questionary

from .console import get_console


class PromptCancelled(Exception):
    """Raised when the user cancels a prompt (e.g., Ctrl+C)."""


def is_interactive() -> bool:
    """Check if stdin/stdout support interactive prompts.

    Returns:
        True if running in an interactive terminal, False otherwise.
    """
    return (
        hasattr(sys.stdin, "isatty")
        and sys.stdin.isatty()
        and hasattr(sys.stdout, "isatty")
        and sys.stdout.isatty()
    )


def safe_prompt(prompt: str, default: str = "", allow_cancel: bool = False) -> str:
    """
    Input prompt using plain input().

    Args:
        prompt: The prompt text to display
        default: Default value if user presses Enter
        allow_cancel: If True, raise PromptCancelled on Ctrl+C/EOF instead of
                      returning the default value

    Returns:
        User input or default value
    """
    full_prompt = f"{prompt} ({default}): " if default else f"{prompt}: "
    try:
        result = input(full_prompt).strip()
    except (EOFError, KeyboardInterrupt):
        print()  # Newline after interrupt
        if allow_cancel:
            raise PromptCancelled()
        return default
    return result if result else default


def _fallback_select(
    message: str,
    choices: Sequence[str],
    default: Optional[str] = None,
    allow_cancel: bool = False,
) -> Optional[str]:
    """Numbered menu selection for non-interactive mode.

    Returns:
        Selected value, or the default on invalid input.
    """
    console = get_console()
    console.print(f"\n[bold]{message}[/bold]")

    default_index = 1
    for i, choice in enumerate(choices, 1):
        if choice == default:
            default_index = i
            break

    for i, choice in enumerate(choices, 1):
        marker = " [default]" if choice == default else ""
        console.print(f"  [{i}] {choice}{marker}", highlight=False)

    selection = safe_prompt("Enter number", default=str(default_index), allow_cancel=allow_cancel)
    try:
        idx = int(selection) - 1
    except ValueError:
        return default
    if 0 <= idx < len(choices):
        return choices[idx]
    return default


async def q_select(
    message: str,
    choices: Sequence[str],
    default: Optional[str] = None,
    allow_cancel: bool = False,
) -> Optional[str]:
    """Interactive select prompt with non-TTY fallback.

    Args:
        message: Prompt message
        choices: Values to choose from
        default: Default value to pre-select
        allow_cancel: If True, raise PromptCancelled on Ctrl+C

    Returns:
        Selected value or None if cancelled
    """
    if not choices:
        return None
    if not is_interactive():
        return await asyncio.to_thread(_fallback_select, message, choices, default, allow_cancel)

    try:
        result = await questionary.select(
            message, choices=list(choices), default=default
        ).ask_async()
    except KeyboardInterrupt:
        print()
        if allow_cancel:
            raise PromptCancelled()
        return None

    if result is None and allow_cancel:
        raise PromptCancelled()
    return result
