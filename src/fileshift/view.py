"""Interface of the visual surface driven by the orchestrator."""

from typing import TYPE_CHECKING, Optional, Sequence

from fileshift.status import ConversionStatus

if TYPE_CHECKING:
    from fileshift.converters import ConversionResult, Representation
    from fileshift.orchestrator import SelectionSession

INFO = "info"
WARNING = "warning"
ERROR = "error"


class ConversionView:
    """No-op view. Subclasses override the hooks they can display.

    Hooks are called from the event loop and must not block.
    """

    def show_file(self, session: "SelectionSession") -> None:
        """A file was staged."""

    def render_preview(self, session: "SelectionSession", preview: "Representation") -> None:
        """The staged file's preview (or placeholder) is ready."""

    def show_formats(self, session: "SelectionSession", formats: Sequence[str]) -> None:
        """Offer output formats for the staged file."""

    def hide_formats(self) -> None:
        """A conversion started; format choice is closed."""

    def report_status(self, status: ConversionStatus) -> None:
        """Progress percentage and message."""

    def show_completion(
        self,
        session: "SelectionSession",
        result: "ConversionResult",
        location: Optional[str],
    ) -> None:
        """Output was delivered."""

    def engine_unavailable(self, engine_name: str, error: Optional[str]) -> None:
        """A conversion is blocked on an engine that failed to load."""

    def notify(self, message: str, level: str = INFO) -> None:
        """Show a non-blocking notice."""

    def reset(self) -> None:
        """Clear the preview, format choice and status."""
