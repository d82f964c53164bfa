"""HTML-derived outputs shared by the document handlers."""

import asyncio
import html
import re
from typing import TYPE_CHECKING

from fileshift.engines.builtin import PDF_WRITER
from fileshift.errors import ConversionError

if TYPE_CHECKING:
    from fileshift.engines import EngineRegistry

_TAG_RE = re.compile(r"<[^>]+>")

DOCUMENT_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
{body}
</body>
</html>
"""


def strip_tags(markup: str) -> str:
    """Remove every tag and decode entities; whitespace is left as written."""
    return html.unescape(_TAG_RE.sub("", markup))


def wrap_document(body: str) -> str:
    """Make an HTML fragment a standalone UTF-8 document."""
    if re.search(r"<html[\s>]", body, re.IGNORECASE):
        return body
    return DOCUMENT_TEMPLATE.format(body=body)


def _write_pdf(weasyprint, markup: str) -> bytes:
    return weasyprint.HTML(string=markup).write_pdf()


async def render_pdf(engines: "EngineRegistry", markup: str) -> bytes:
    """Render HTML to PDF with the pdf-writer engine, acquired on demand."""
    weasyprint = await engines.acquire(PDF_WRITER)
    try:
        return await asyncio.to_thread(_write_pdf, weasyprint, wrap_document(markup))
    except Exception as e:
        raise ConversionError(f"PDF rendering failed: {e}") from e


def excerpt(text: str, limit: int = 600) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."
