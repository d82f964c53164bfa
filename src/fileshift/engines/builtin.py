"""Built-in engine table."""

import asyncio
import importlib
import importlib.util
import logging
from types import ModuleType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from .ffmpeg import FfmpegEngine
from .registry import EngineRegistry, EngineSpec

if TYPE_CHECKING:
    from fileshift.config import Settings

logger = logging.getLogger(__name__)

MEDIA_TRANSCODER = "media-transcoder"
PDF_RENDERER = "pdf-renderer"
PDF_WRITER = "pdf-writer"
DOCX_PARSER = "docx-parser"
SVG_RASTERIZER = "svg-rasterizer"
HEIF_DECODER = "heif-decoder"
PSD_READER = "psd-reader"
SPREADSHEET = "spreadsheet"
LEGACY_SPREADSHEET = "legacy-spreadsheet"
FONT_TOOLS = "font-tools"

# engine name -> (import module, distribution name, display name, description)
LIBRARY_ENGINES: dict[str, tuple[str, str, str, str]] = {
    PDF_RENDERER: ("pdfplumber", "pdfplumber", "PDF", "Page text and page rasterisation"),
    PDF_WRITER: ("weasyprint", "weasyprint", "PDF writer", "HTML to PDF rendering"),
    DOCX_PARSER: ("mammoth", "mammoth", "DOCX", "Word documents to HTML"),
    SVG_RASTERIZER: ("cairosvg", "CairoSVG", "SVG", "SVG rasterisation"),
    HEIF_DECODER: ("pillow_heif", "pillow-heif", "HEIF", "HEIC/HEIF decoding"),
    PSD_READER: ("psd_tools", "psd-tools", "PSD", "Photoshop composites"),
    SPREADSHEET: ("openpyxl", "openpyxl", "Spreadsheet", "xlsx read/write"),
    LEGACY_SPREADSHEET: ("xlrd", "xlrd", "Legacy spreadsheet", "xls read"),
    FONT_TOOLS: ("fontTools.ttLib", "fonttools", "Font", "sfnt/woff/woff2 tables"),
}


def _after_heif(module: ModuleType) -> None:
    module.register_heif_opener()


POST_IMPORT: dict[str, Callable[[ModuleType], None]] = {
    HEIF_DECODER: _after_heif,
}


def module_loader(
    module_name: str,
    distribution: Optional[str] = None,
    after_import: Optional[Callable[[ModuleType], None]] = None,
) -> Callable[[], Awaitable[Any]]:
    """Build a loader that imports *module_name* in a worker thread."""

    async def load() -> ModuleType:
        root = module_name.split(".", 1)[0]
        if importlib.util.find_spec(root) is None:
            package = distribution or root
            raise RuntimeError(f"{package} is not installed. Install with: pip install {package}")
        module = await asyncio.to_thread(importlib.import_module, module_name)
        if after_import is not None:
            await asyncio.to_thread(after_import, module)
        return module

    return load


def default_engine_specs(settings: "Settings") -> list[EngineSpec]:
    """Engine specs for every built-in capability."""

    async def load_ffmpeg() -> FfmpegEngine:
        return await FfmpegEngine.locate(settings)

    specs = [
        EngineSpec(
            name=MEDIA_TRANSCODER,
            load=load_ffmpeg,
            display_name="Media",
            description="ffmpeg image, audio and video transcoding",
        )
    ]
    for name, (module_name, distribution, display_name, description) in LIBRARY_ENGINES.items():
        specs.append(
            EngineSpec(
                name=name,
                load=module_loader(module_name, distribution, POST_IMPORT.get(name)),
                display_name=display_name,
                description=description,
            )
        )
    return specs


def create_engine_registry(settings: Optional["Settings"] = None) -> EngineRegistry:
    """Create a registry holding the built-in engines."""
    if settings is None:
        from fileshift.config import get_settings

        settings = get_settings()
    return EngineRegistry(default_engine_specs(settings))
