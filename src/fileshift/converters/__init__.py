"""Capability handlers.

Every CapabilityKind maps to exactly one handler class; a kind without a
handler is a programming error caught at import time.
"""

from typing import TYPE_CHECKING

from fileshift.routing import Capability, CapabilityKind

from .archives import TarballHandler, ZipArchiveHandler
from .base import BaseHandler, ConversionResult, Representation, RepresentationKind
from .documents import DocxHandler, HtmlHandler
from .fonts import FontHandler
from .images import HeifHandler, PsdHandler, SvgHandler
from .media import MediaHandler
from .pdf import PdfHandler
from .tabular import CsvHandler, JsonRecordsHandler, SpreadsheetHandler

if TYPE_CHECKING:
    from fileshift.config import Settings
    from fileshift.engines import EngineRegistry

HANDLER_CLASSES: tuple[type[BaseHandler], ...] = (
    MediaHandler,
    SvgHandler,
    HeifHandler,
    PsdHandler,
    PdfHandler,
    DocxHandler,
    HtmlHandler,
    SpreadsheetHandler,
    CsvHandler,
    JsonRecordsHandler,
    ZipArchiveHandler,
    TarballHandler,
    FontHandler,
)


def _build_handler_table() -> dict[CapabilityKind, type[BaseHandler]]:
    table: dict[CapabilityKind, type[BaseHandler]] = {}
    for handler_class in HANDLER_CLASSES:
        for kind in handler_class.kinds:
            if kind in table:
                raise RuntimeError(
                    f"{kind.value} is handled by both {table[kind].__name__} "
                    f"and {handler_class.__name__}"
                )
            table[kind] = handler_class
    missing = [kind.value for kind in CapabilityKind if kind not in table]
    if missing:
        raise RuntimeError(f"No handler for capability kinds: {', '.join(missing)}")
    return table


HANDLERS = _build_handler_table()


def create_handler(
    capability: Capability, engines: "EngineRegistry", settings: "Settings"
) -> BaseHandler:
    """Instantiate the handler for a capability."""
    return HANDLERS[capability.kind](capability, engines, settings)


__all__ = [
    "HANDLERS",
    "BaseHandler",
    "ConversionResult",
    "Representation",
    "RepresentationKind",
    "create_handler",
]
