"""Rich rendering of the conversion lifecycle."""

from io import BytesIO
from typing import TYPE_CHECKING, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.text import Text

from fileshift.converters import ConversionResult, Representation, RepresentationKind
from fileshift.status import ConversionStatus, StatusPhase, sanitize_terminal_text
from fileshift.view import ERROR, WARNING, ConversionView

from .console import get_console

if TYPE_CHECKING:
    from fileshift.orchestrator import SelectionSession

LEVEL_STYLES = {
    "info": "info",
    WARNING: "warning",
    ERROR: "error",
}


def format_size(size: int) -> str:
    """Human-readable byte count."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def image_dimensions(data: bytes) -> Optional[tuple[int, int]]:
    """Pixel size of an encoded raster image (best-effort)."""
    try:
        with Image.open(BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError, ValueError):
        return None


class RichConversionView(ConversionView):
    """Prints lifecycle events to a rich console and shows a progress bar."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or get_console()
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def show_file(self, session: "SelectionSession") -> None:
        file = session.file
        self.console.print(
            f"[primary]{escape(sanitize_terminal_text(file.name))}[/primary] "
            f"[muted]({session.capability.display_name}, {format_size(file.size)})[/muted]",
            highlight=False,
        )

    def render_preview(self, session: "SelectionSession", preview: Representation) -> None:
        if preview.kind is RepresentationKind.TEXT:
            body = Text(preview.text) if preview.text else Text("")
            title = escape(sanitize_terminal_text(preview.caption))
            self.console.print(Panel(body, title=title, title_align="left", border_style="muted"))
            return

        details = [preview.mime_type or "unknown type", format_size(len(preview.data))]
        if preview.kind is RepresentationKind.IMAGE:
            size = image_dimensions(preview.data)
            if size:
                details.insert(0, f"{size[0]}x{size[1]}")
            label = "Image preview"
        else:
            label = "Playable media"
        caption = escape(sanitize_terminal_text(preview.caption))
        self.console.print(
            Panel(
                Text(f"{label}: {', '.join(details)}"),
                title=caption,
                title_align="left",
                border_style="muted",
            )
        )

    def show_formats(self, session: "SelectionSession", formats: Sequence[str]) -> None:
        if formats:
            listed = ", ".join(f"[format]{fmt}[/format]" for fmt in formats)
            self.console.print(f"Convert to: {listed}")

    def hide_formats(self) -> None:
        self._stop_progress()

    def report_status(self, status: ConversionStatus) -> None:
        if self._progress is None:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>3.0f}%"),
                console=self.console,
                transient=False,
            )
            self._progress.start()
            self._task = self._progress.add_task(escape(status.message), total=100)
        self._progress.update(
            self._task, completed=status.percent, description=escape(status.message)
        )
        if status.phase in (StatusPhase.COMPLETE, StatusPhase.FAILED):
            self._stop_progress()

    def show_completion(
        self,
        session: "SelectionSession",
        result: ConversionResult,
        location: Optional[str],
    ) -> None:
        target = escape(sanitize_terminal_text(location or result.filename))
        suffix = " [warning](best effort)[/warning]" if result.best_effort else ""
        self.console.print(
            f"[success]Saved[/success] [path]{target}[/path] "
            f"[muted]({format_size(len(result.data))})[/muted]{suffix}",
            highlight=False,
        )

    def engine_unavailable(self, engine_name: str, error: Optional[str]) -> None:
        self.console.print(
            f"[warning]{engine_name} is unavailable:[/warning] "
            f"{escape(sanitize_terminal_text(error))}",
            highlight=False,
        )

    def notify(self, message: str, level: str = "info") -> None:
        style = LEVEL_STYLES.get(level, "info")
        text = escape(sanitize_terminal_text(message))
        self.console.print(f"[{style}]{text}[/{style}]", highlight=False)

    def reset(self) -> None:
        self._stop_progress()

    def _stop_progress(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None
