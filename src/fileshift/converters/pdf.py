"""PDF text extraction and page rasterisation via pdfplumber."""

import asyncio
import logging
from io import BytesIO
from typing import Any

from PIL import Image

from fileshift.errors import ConversionError, PreviewError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation
from .raster import encode_image

logger = logging.getLogger(__name__)

# pdfplumber resolutions are in dpi; scale 1.0 is the PDF's native 72 dpi
POINTS_PER_INCH = 72


def render_page(page: Any, scale: float) -> Image.Image:
    """Rasterise one pdfplumber page at *scale*."""
    page_image = page.to_image(resolution=POINTS_PER_INCH * scale)
    return page_image.original


def page_words(page: Any) -> list[str]:
    """Text runs of a page in reading order."""
    return [word["text"] for word in page.extract_words()]


class PdfHandler(BaseHandler):
    """First-page previews, first-page image export and full text."""

    kinds = (CapabilityKind.PDF_DOCUMENT,)

    async def _open(self, file: SourceFile) -> Any:
        pdfplumber = await self.engine()
        try:
            pdf = await asyncio.to_thread(pdfplumber.open, BytesIO(file.data))
        except Exception as e:
            raise ConversionError(f"Could not open {file.name} as PDF: {e}") from e
        if not pdf.pages:
            pdf.close()
            raise ConversionError(f"{file.name} has no pages")
        return pdf

    async def preview(self, file: SourceFile) -> Representation:
        try:
            pdf = await self._open(file)
        except ConversionError as e:
            raise PreviewError(str(e)) from e
        pages = len(pdf.pages)
        try:
            image = await asyncio.to_thread(
                render_page, pdf.pages[0], self.settings.pdf_preview_scale
            )
            data = await asyncio.to_thread(encode_image, image, "png")
        finally:
            pdf.close()
        return Representation.image(
            data, "image/png", caption=f"{file.name}: page 1 of {pages}"
        )

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        pdf = await self._open(file)
        try:
            if output_format == "txt":
                data = await self._extract_text(pdf, progress)
            else:
                image = await asyncio.to_thread(
                    render_page, pdf.pages[0], self.settings.pdf_export_scale
                )
                progress(0.5)
                data = await asyncio.to_thread(encode_image, image, output_format)
        finally:
            pdf.close()

        progress(1.0)
        return self.result(data, file.appended(output_format), output_format)

    @staticmethod
    async def _extract_text(pdf: Any, progress: ProgressCallback) -> bytes:
        runs: list[str] = []
        total = len(pdf.pages)
        for index, page in enumerate(pdf.pages):
            runs.extend(await asyncio.to_thread(page_words, page))
            progress((index + 1) / total)
        logger.debug(f"Extracted {len(runs)} text runs from {total} pages")
        return " ".join(runs).encode("utf-8")
