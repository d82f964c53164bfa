"""Static catalog of conversion capabilities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fileshift.files import extension_of


class CapabilityKind(Enum):
    """Closed set of handler variants."""

    MEDIA = "media"
    VECTOR_IMAGE = "vector_image"
    HEIF_IMAGE = "heif_image"
    PSD_IMAGE = "psd_image"
    PDF_DOCUMENT = "pdf_document"
    WORD_DOCUMENT = "word_document"
    HTML_DOCUMENT = "html_document"
    SPREADSHEET = "spreadsheet"
    CSV_TABLE = "csv_table"
    JSON_RECORDS = "json_records"
    ZIP_ARCHIVE = "zip_archive"
    TARBALL = "tarball"
    FONT = "font"


# Spellings of the same format that must not be offered back to the user.
FORMAT_ALIASES = {
    "jpeg": "jpg",
    "tif": "tiff",
    "htm": "html",
    "tgz": "tar.gz",
}

COMPOUND_FORMATS = ("tar.gz",)


def normalize_format(value: str) -> str:
    """Lowercase a format token, strip a leading dot and fold aliases."""
    token = (value or "").strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(token, token)


def input_format_of(filename: str) -> str:
    """Return the normalized format of *filename*, honouring compound suffixes."""
    lowered = (filename or "").strip().lower()
    for compound in COMPOUND_FORMATS:
        if lowered.endswith(f".{compound}"):
            return compound
    return normalize_format(extension_of(lowered))


@dataclass(frozen=True)
class Capability:
    """A registered input-type -> handler binding."""

    key: str
    display_name: str
    kind: CapabilityKind
    output_formats: tuple[str, ...]
    required_engine: Optional[str] = None
    # Targets the handler can only approximate (re-serialisation, not conversion).
    best_effort_formats: frozenset[str] = field(default_factory=frozenset)
    # Extra engine needed by a single target, loaded after required_engine.
    format_engines: dict[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.output_formats:
            raise ValueError(f"Capability {self.key!r} declares no output formats")
        for fmt in self.output_formats:
            if fmt != fmt.lower() or fmt.startswith("."):
                raise ValueError(
                    f"Capability {self.key!r} has malformed output format {fmt!r}"
                )
        unknown = self.best_effort_formats - set(self.output_formats)
        if unknown:
            raise ValueError(
                f"Capability {self.key!r} flags formats it does not offer: {sorted(unknown)}"
            )
        unknown = set(self.format_engines) - set(self.output_formats)
        if unknown:
            raise ValueError(
                f"Capability {self.key!r} binds engines to formats it does not offer: "
                f"{sorted(unknown)}"
            )

    def supports(self, output_format: str) -> bool:
        return output_format in self.output_formats

    def engines_for(self, output_format: str) -> tuple[str, ...]:
        """Engines a conversion to *output_format* needs, in load order."""
        names = [self.required_engine] if self.required_engine else []
        extra = self.format_engines.get(output_format)
        if extra and extra not in names:
            names.append(extra)
        return tuple(names)

    @property
    def engine_names(self) -> tuple[str, ...]:
        """Every engine any of the capability's conversions may need."""
        names = [self.required_engine] if self.required_engine else []
        for name in self.format_engines.values():
            if name not in names:
                names.append(name)
        return tuple(names)

    def is_best_effort(self, output_format: str) -> bool:
        return output_format in self.best_effort_formats

    def offered_formats(self, filename: str) -> list[str]:
        """Output formats to present for *filename*, minus its own format."""
        own = input_format_of(filename)
        return [fmt for fmt in self.output_formats if normalize_format(fmt) != own]


MEDIA_TRANSCODER = "media-transcoder"

CATALOG: tuple[Capability, ...] = (
    # Media (ffmpeg)
    Capability(
        "image",
        "Image",
        CapabilityKind.MEDIA,
        ("png", "jpg", "webp", "bmp", "tiff", "ico"),
        required_engine=MEDIA_TRANSCODER,
    ),
    Capability(
        "video",
        "Video",
        CapabilityKind.MEDIA,
        ("mp4", "webm", "mkv", "mov", "avi", "gif"),
        required_engine=MEDIA_TRANSCODER,
    ),
    Capability(
        "audio",
        "Audio",
        CapabilityKind.MEDIA,
        ("mp3", "wav", "ogg", "flac", "aac"),
        required_engine=MEDIA_TRANSCODER,
    ),
    # Raster and vector images decoded outside ffmpeg
    Capability(
        "image/svg+xml",
        "Vector Image",
        CapabilityKind.VECTOR_IMAGE,
        ("png", "jpg"),
        required_engine="svg-rasterizer",
    ),
    Capability(
        "image/heic",
        "HEIC Image",
        CapabilityKind.HEIF_IMAGE,
        ("png", "jpg"),
        required_engine="heif-decoder",
    ),
    Capability(
        "image/heif",
        "HEIF Image",
        CapabilityKind.HEIF_IMAGE,
        ("png", "jpg"),
        required_engine="heif-decoder",
    ),
    Capability(
        "image/vnd.adobe.photoshop",
        "PSD Image",
        CapabilityKind.PSD_IMAGE,
        ("png",),
        required_engine="psd-reader",
    ),
    # Documents
    Capability(
        "application/pdf",
        "PDF Document",
        CapabilityKind.PDF_DOCUMENT,
        ("png", "jpg", "txt"),
        required_engine="pdf-renderer",
    ),
    Capability(
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "Word Document",
        CapabilityKind.WORD_DOCUMENT,
        ("html", "txt", "pdf"),
        required_engine="docx-parser",
        format_engines={"pdf": "pdf-writer"},
    ),
    Capability(
        "text/html",
        "HTML Document",
        CapabilityKind.HTML_DOCUMENT,
        ("pdf", "txt"),
        format_engines={"pdf": "pdf-writer"},
    ),
    Capability(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "Excel Document",
        CapabilityKind.SPREADSHEET,
        ("csv", "json"),
        required_engine="spreadsheet",
    ),
    Capability(
        "application/vnd.ms-excel",
        "Excel Document",
        CapabilityKind.SPREADSHEET,
        ("csv", "json"),
        required_engine="legacy-spreadsheet",
    ),
    Capability(
        "text/csv",
        "CSV Document",
        CapabilityKind.CSV_TABLE,
        ("xlsx", "json"),
        required_engine="spreadsheet",
    ),
    Capability(
        "application/json",
        "JSON Records",
        CapabilityKind.JSON_RECORDS,
        ("csv", "xlsx"),
        required_engine="spreadsheet",
    ),
    # Archives
    Capability(
        "application/zip",
        "ZIP Archive",
        CapabilityKind.ZIP_ARCHIVE,
        ("tar.gz",),
    ),
    Capability(
        "application/gzip",
        "Gzip Archive",
        CapabilityKind.TARBALL,
        ("zip",),
    ),
    # Fonts
    Capability(
        "font",
        "Font File",
        CapabilityKind.FONT,
        ("ttf", "otf", "woff", "woff2"),
        required_engine="font-tools",
        best_effort_formats=frozenset({"ttf", "otf"}),
    ),
)

CAPABILITIES: dict[str, Capability] = {capability.key: capability for capability in CATALOG}
