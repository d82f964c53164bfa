"""Conversion status types and formatting for fileshift."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class StatusPhase(Enum):
    """Phase of a conversion run."""

    WAITING_ENGINE = "waiting_engine"
    STARTING = "starting"
    CONVERTING = "converting"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversionStatus:
    """User-visible status: integer percentage plus a short message."""

    phase: StatusPhase
    percent: int
    message: str

    @classmethod
    def waiting_engine(cls, engine_name: str, percent: int = 0) -> "ConversionStatus":
        """Create a waiting-for-engine status."""
        name = sanitize_terminal_text(engine_name) or "engine"
        return cls(
            phase=StatusPhase.WAITING_ENGINE,
            percent=_clamp(percent),
            message=f"Waiting for {name} engine...",
        )

    @classmethod
    def starting(cls) -> "ConversionStatus":
        """Create a starting status."""
        return cls(phase=StatusPhase.STARTING, percent=0, message="Starting conversion...")

    @classmethod
    def converting(cls, fraction: float) -> "ConversionStatus":
        """Create an in-progress status from a completion fraction."""
        percent = _clamp(round(_fraction(fraction) * 100))
        return cls(
            phase=StatusPhase.CONVERTING,
            percent=percent,
            message=f"Converting... {percent}%",
        )

    @classmethod
    def complete(cls) -> "ConversionStatus":
        """Create the terminal success status."""
        return cls(phase=StatusPhase.COMPLETE, percent=100, message="Conversion complete")

    @classmethod
    def failed(cls, message: str, percent: int = 0) -> "ConversionStatus":
        """Create a failure status."""
        detail = sanitize_terminal_text(message).strip().rstrip(".") or "Conversion failed"
        return cls(
            phase=StatusPhase.FAILED,
            percent=_clamp(percent),
            message=f"Error: {detail}. Please try again.",
        )


StatusCallback = Callable[[ConversionStatus], None]
ProgressCallback = Callable[[float], None]


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_terminal_text(value: Any) -> str:
    """Convert text to a single safe line for terminal rendering."""
    if value is None:
        return ""

    text = value if isinstance(value, str) else str(value)
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    return _CONTROL_CHARS_RE.sub("", text)


def _fraction(value: Any) -> float:
    try:
        fraction = float(value)
    except (TypeError, ValueError):
        return 0.0
    if fraction != fraction:  # NaN
        return 0.0
    return min(max(fraction, 0.0), 1.0)


def _clamp(percent: Any) -> int:
    try:
        value = int(percent)
    except (TypeError, ValueError, OverflowError):
        return 0
    return min(max(value, 0), 100)
