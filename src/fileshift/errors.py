"""Exception types raised by fileshift."""

from typing import Optional


class FileShiftError(Exception):
    """Base class for all fileshift errors."""


class UnsupportedTypeError(FileShiftError):
    """No capability is registered for the selected file."""

    def __init__(self, filename: str, media_type: str = ""):
        self.filename = filename
        self.media_type = media_type
        super().__init__("Unsupported file type or the type could not be determined")


class UnknownEngineError(FileShiftError):
    """An engine name was used that the registry does not know."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown engine: {name}")


class EngineLoadError(FileShiftError):
    """An engine could not be acquired."""

    def __init__(self, engine: str, reason: Optional[str] = None):
        self.engine = engine
        self.reason = reason or "unknown error"
        super().__init__(f"{engine} engine failed to load: {self.reason}")


class ConversionError(FileShiftError):
    """A handler could not produce output for the requested format."""


class UnsupportedConversionError(ConversionError):
    """The requested direction is not implemented by a capability."""


class PreviewError(FileShiftError):
    """A handler could not render a preview."""


class InvalidStateError(FileShiftError):
    """An operation was requested in a state that does not allow it."""
