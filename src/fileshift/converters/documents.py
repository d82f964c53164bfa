"""Word-processor and HTML documents."""

import asyncio
import logging
from abc import abstractmethod
from io import BytesIO
from typing import Any

from fileshift.errors import ConversionError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation
from .markup import excerpt, render_pdf, strip_tags

logger = logging.getLogger(__name__)


class _MarkupDocumentHandler(BaseHandler):
    """Parse once to HTML, then derive every output from that markup."""

    @abstractmethod
    async def to_markup(self, file: SourceFile) -> str:
        """The document as HTML."""

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        markup = await self.to_markup(file)
        progress(0.5)

        if output_format == "html":
            data = markup.encode("utf-8")
        elif output_format == "txt":
            data = strip_tags(markup).encode("utf-8")
        else:
            data = await render_pdf(self.engines, markup)

        progress(1.0)
        return self.result(data, file.appended(output_format), output_format)


def _docx_to_html(mammoth: Any, data: bytes) -> str:
    result = mammoth.convert_to_html(BytesIO(data))
    for message in result.messages:
        logger.debug(f"mammoth: {message}")
    return result.value


class DocxHandler(_MarkupDocumentHandler):
    """DOCX to HTML, plain text or PDF."""

    kinds = (CapabilityKind.WORD_DOCUMENT,)

    async def preview(self, file: SourceFile) -> Representation:
        return Representation.placeholder("DOCX preview not available. Ready to convert.")

    async def to_markup(self, file: SourceFile) -> str:
        mammoth = await self.engine()
        try:
            return await asyncio.to_thread(_docx_to_html, mammoth, file.data)
        except Exception as e:
            raise ConversionError(f"Could not read {file.name} as a Word document: {e}") from e


class HtmlHandler(_MarkupDocumentHandler):
    """HTML to PDF or plain text."""

    kinds = (CapabilityKind.HTML_DOCUMENT,)

    async def preview(self, file: SourceFile) -> Representation:
        text = strip_tags(await self.to_markup(file))
        return Representation.placeholder("HTML file loaded. Ready to convert.", excerpt(text))

    async def to_markup(self, file: SourceFile) -> str:
        return file.data.decode("utf-8", errors="replace")
