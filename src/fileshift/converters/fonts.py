"""Font re-serialisation with fontTools."""

import asyncio
import importlib.util
import logging
from io import BytesIO
from typing import Any, Optional

from PIL import Image, ImageDraw, ImageFont

from fileshift.errors import ConversionError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation
from .raster import encode_image

logger = logging.getLogger(__name__)

SAMPLE_TEXT = "The quick brown fox jumps over the lazy dog."
CANVAS_SIZE = (600, 150)
BACKGROUND = "#1c1917"
FOREGROUND = "#e7e5e4"

WRAPPER_FLAVORS = {"woff": "woff", "woff2": "woff2"}
# Outline format each plain sfnt target implies
TARGET_OUTLINES = {"ttf": "glyf", "otf": "CFF"}
NAME_FULL = 4
NAME_FAMILY = 1


def outline_format(font: Any) -> str:
    return "CFF" if ("CFF " in font or "CFF2" in font) else "glyf"


def family_name(font: Any) -> Optional[str]:
    if "name" not in font:
        return None
    for name_id in (NAME_FULL, NAME_FAMILY):
        record = font["name"].getDebugName(name_id)
        if record:
            return record
    return None


def brotli_available() -> bool:
    return importlib.util.find_spec("brotli") is not None


def render_sample(data: bytes, title: str) -> bytes:
    """Draw the font's name and a pangram on a dark canvas."""
    canvas = Image.new("RGB", CANVAS_SIZE, BACKGROUND)
    draw = ImageDraw.Draw(canvas)
    draw.text((10, 30), title, fill=FOREGROUND, font=ImageFont.load_default(size=20), anchor="ls")
    sample_font = ImageFont.truetype(BytesIO(data), 36)
    draw.text((10, 100), SAMPLE_TEXT, fill=FOREGROUND, font=sample_font, anchor="ls")
    return encode_image(canvas, "png")


class FontHandler(BaseHandler):
    """ttf/otf/woff/woff2 by re-serialising the same tables.

    Wrapping (woff, woff2) is faithful. Switching between TrueType and CFF
    outlines is not something fontTools does, so such targets are emitted as
    a re-serialisation of the original outlines and flagged best-effort.
    """

    kinds = (CapabilityKind.FONT,)

    async def _load(self, file: SourceFile) -> Any:
        ttLib = await self.engine()
        try:
            return await asyncio.to_thread(ttLib.TTFont, BytesIO(file.data))
        except ImportError as e:
            raise ConversionError(f"Reading {file.name} needs an optional codec: {e}") from e
        except Exception as e:
            raise ConversionError(f"Could not parse {file.name} as a font: {e}") from e

    async def preview(self, file: SourceFile) -> Representation:
        font = await self._load(file)
        title = family_name(font) or file.name
        font.close()
        data = await asyncio.to_thread(render_sample, file.data, title)
        return Representation.image(data, "image/png", caption=title)

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        font = await self._load(file)
        progress(0.3)

        flavor = WRAPPER_FLAVORS.get(output_format)
        notices = []

        source_outlines = outline_format(font)
        target_outlines = TARGET_OUTLINES.get(output_format, source_outlines)
        if target_outlines != source_outlines:
            notices.append(
                f"{output_format} normally carries {target_outlines} outlines; "
                f"the original {source_outlines} outlines were kept"
            )

        if flavor == "woff2" and not brotli_available():
            notices.append("woff2 compression needs brotli; wrote an uncompressed sfnt instead")
            flavor = None

        font.flavor = flavor
        try:
            data = await asyncio.to_thread(self._save, font)
        except Exception as e:
            raise ConversionError(f"Could not write {output_format}: {e}") from e
        finally:
            font.close()
        progress(1.0)

        notice = "; ".join(notices)
        if notice:
            logger.info(f"Best-effort font conversion for {file.name}: {notice}")
        return self.result(
            data,
            file.with_extension(output_format),
            output_format,
            best_effort=bool(notices),
            notice=notice,
        )

    @staticmethod
    def _save(font: Any) -> bytes:
        buffer = BytesIO()
        font.save(buffer)
        return buffer.getvalue()
