"""Base handler interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from fileshift.errors import UnsupportedConversionError
from fileshift.files import SourceFile
from fileshift.routing import Capability, CapabilityKind, normalize_format
from fileshift.status import ProgressCallback

if TYPE_CHECKING:
    from fileshift.config import Settings
    from fileshift.engines import EngineRegistry


OUTPUT_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "ico": "image/x-icon",
    "gif": "image/gif",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "txt": "text/plain",
    "html": "text/html",
    "pdf": "application/pdf",
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "zip": "application/zip",
    "tar.gz": "application/gzip",
    "ttf": "font/ttf",
    "otf": "font/otf",
    "woff": "font/woff",
    "woff2": "font/woff2",
}


def mime_type_for(output_format: str) -> str:
    return OUTPUT_MIME_TYPES.get(output_format, "application/octet-stream")


class RepresentationKind(Enum):
    """What a preview carries."""

    IMAGE = "image"  # encoded still image
    MEDIA = "media"  # playable original (audio/video)
    TEXT = "text"  # excerpt or placeholder


@dataclass(frozen=True)
class Representation:
    """Result of a preview: something to show, never an output file."""

    kind: RepresentationKind
    data: bytes = b""
    mime_type: str = ""
    text: str = ""
    caption: str = ""

    @classmethod
    def image(cls, data: bytes, mime_type: str = "image/png", caption: str = "") -> "Representation":
        return cls(kind=RepresentationKind.IMAGE, data=data, mime_type=mime_type, caption=caption)

    @classmethod
    def media(cls, data: bytes, mime_type: str, caption: str = "") -> "Representation":
        return cls(kind=RepresentationKind.MEDIA, data=data, mime_type=mime_type, caption=caption)

    @classmethod
    def placeholder(cls, text: str, excerpt: str = "") -> "Representation":
        """Text-only preview. *excerpt* is optional content below the message."""
        return cls(kind=RepresentationKind.TEXT, text=excerpt, caption=text)

    def __repr__(self) -> str:
        return (
            f"Representation(kind={self.kind.value}, mime_type={self.mime_type!r}, "
            f"bytes={len(self.data)}, caption={self.caption!r})"
        )


@dataclass(frozen=True)
class ConversionResult:
    """Output of a conversion, handed to delivery by the orchestrator."""

    data: bytes
    filename: str
    mime_type: str
    best_effort: bool = False
    notice: str = ""

    def __repr__(self) -> str:
        return (
            f"ConversionResult(filename={self.filename!r}, mime_type={self.mime_type!r}, "
            f"bytes={len(self.data)}, best_effort={self.best_effort})"
        )


def _ignore_progress(fraction: float) -> None:
    return None


class BaseHandler(ABC):
    """Abstract base class for capability handlers.

    Handlers are stateless: everything derived from a file lives in local
    variables of ``preview``/``convert`` and is released when they return.
    """

    # Subclasses declare which capability kinds they implement
    kinds: ClassVar[tuple[CapabilityKind, ...]] = ()

    def __init__(
        self,
        capability: Capability,
        engines: "EngineRegistry",
        settings: "Settings",
    ) -> None:
        if capability.kind not in self.kinds:
            raise TypeError(
                f"{type(self).__name__} cannot handle {capability.kind.value} capabilities"
            )
        self.capability = capability
        self.engines = engines
        self.settings = settings

    @abstractmethod
    async def preview(self, file: SourceFile) -> Representation:
        """
        Render a representation of a file without producing output.

        Args:
            file: Staged file.

        Returns:
            Image, playable media or text placeholder.

        Raises:
            PreviewError: When nothing meaningful can be shown.
        """

    async def convert(
        self,
        file: SourceFile,
        output_format: str,
        progress: Optional[ProgressCallback] = None,
    ) -> ConversionResult:
        """
        Convert a file to one of the capability's output formats.

        Args:
            file: Staged file.
            output_format: Target format token (``"png"``, ``"tar.gz"``...).
            progress: Called with a fraction in [0.0, 1.0] from the event loop.

        Returns:
            ConversionResult with bytes, suggested filename and MIME type.

        Raises:
            UnsupportedConversionError: If the format is not offered.
            ConversionError: If the conversion itself fails.
        """
        fmt = normalize_format(output_format)
        if not self.capability.supports(fmt):
            raise UnsupportedConversionError(
                f"{self.capability.display_name} files cannot be converted to {output_format}"
            )
        return await self._convert(file, fmt, progress or _ignore_progress)

    @abstractmethod
    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        """Convert after the format has been validated."""

    async def engine(self, name: Optional[str] = None) -> Any:
        """Acquire an engine handle (the capability's own engine by default)."""
        engine_name = name or self.capability.required_engine
        if engine_name is None:
            raise RuntimeError(f"{self.capability.display_name} has no engine")
        return await self.engines.acquire(engine_name)

    def result(
        self,
        data: bytes,
        filename: str,
        output_format: str,
        best_effort: bool = False,
        notice: str = "",
    ) -> ConversionResult:
        return ConversionResult(
            data=data,
            filename=filename,
            mime_type=mime_type_for(output_format),
            best_effort=best_effort,
            notice=notice,
        )
