#!/usr/bin/env python3
"""
fileshift CLI entry point.

Usage:
    fileshift photo.heic --to jpg   # Convert, writing photo.jpg
    fileshift clip.mkv              # Pick the output format interactively
    fileshift --formats report.pdf  # List the formats a file converts to
    fileshift --engines             # List engines and their libraries
    fileshift --config              # Show configuration and settings
    fileshift --init                # Create ./.fileshift/ templates
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fileshift.config import Settings, init_local_config, load_settings
from fileshift.delivery import DirectoryDelivery
from fileshift.display import PromptCancelled, RichConversionView, get_console, q_select
from fileshift.engines import EngineRegistry, create_engine_registry
from fileshift.errors import FileShiftError
from fileshift.files import SourceFile
from fileshift.orchestrator import ConversionOrchestrator
from fileshift.routing import get_resolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNSUPPORTED = 2

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="fileshift",
        description="fileshift - convert files between formats locally",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "file",
        nargs="?",
        help="File to convert",
    )

    parser.add_argument(
        "--to",
        dest="output_format",
        metavar="FMT",
        help="Output format (prompted for when omitted)",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        help="Directory for converted files (default: current directory)",
    )

    parser.add_argument(
        "--type",
        dest="media_type",
        metavar="MEDIA_TYPE",
        help="Declared media type, overriding the guess from the file name",
    )

    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing output files instead of numbering them",
    )

    parser.add_argument(
        "--engine-retries",
        type=int,
        metavar="N",
        help="Reload attempts for an engine that fails during a conversion",
    )

    parser.add_argument(
        "--formats",
        metavar="FILE",
        help="Show the detected type and output formats for FILE",
    )

    parser.add_argument(
        "--engines",
        action="store_true",
        help="List conversion engines",
    )

    parser.add_argument(
        "--config",
        action="store_true",
        help="Show configuration locations and settings",
    )

    parser.add_argument(
        "--init",
        action="store_true",
        help="Initialize local configuration in ./.fileshift/",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose logging",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version",
    )

    return parser.parse_args(argv)


def apply_args_to_settings(args: argparse.Namespace, settings: Settings) -> Settings:
    """Apply command line arguments to settings."""
    if getattr(args, "verbose", False):
        settings.verbose = True

    output_dir_arg = getattr(args, "output_dir", None)
    if output_dir_arg is not None:
        settings.output_dir = Path(output_dir_arg).expanduser().resolve()

    retries_arg = getattr(args, "engine_retries", None)
    if retries_arg is not None:
        if retries_arg < 0:
            print(
                "Warning: --engine-retries must be >= 0; "
                f"keeping current value ({settings.engine_retries})"
            )
        else:
            settings.engine_retries = retries_arg

    return settings


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging.DEBUG if verbose else logging.WARNING,
    )


def show_version() -> None:
    """Show version information."""
    from fileshift import __version__

    print(f"fileshift version {__version__}")


def show_config_info(settings: Settings, console: Optional[Console] = None) -> None:
    """Show configuration locations and status."""
    console = console or get_console()
    paths = settings.config_paths

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="primary")
    table.add_column("Value")
    if paths is not None:
        table.add_row("Local config", str(paths.local_dir or "-"))
        table.add_row("User config", str(paths.user_dir or "-"))
        table.add_row("Package defaults", str(paths.package_dir))
        table.add_row(".env", str(paths.env_file or "-"))
        table.add_row("settings.yaml", str(paths.settings_file or "-"))
    table.add_row("Output directory", str(settings.resolved_output_dir))
    table.add_row("ffmpeg", settings.ffmpeg_binary)
    table.add_row("ffprobe", settings.ffprobe_binary)
    table.add_row("ffmpeg timeout", f"{settings.ffmpeg_timeout:g}s")
    table.add_row("GIF", f"{settings.gif_fps} fps, {settings.gif_width}px wide")
    table.add_row(
        "PDF scale", f"preview {settings.pdf_preview_scale:g}, export {settings.pdf_export_scale:g}"
    )
    table.add_row("Preload engines", ", ".join(settings.preload_engines) or "-")
    table.add_row("Engine retries", str(settings.engine_retries))
    console.print(table)


def list_engines(registry: EngineRegistry, console: Optional[Console] = None) -> None:
    """Print the registered engines."""
    console = console or get_console()
    table = Table(title="Engines")
    table.add_column("Engine", style="engine")
    table.add_column("Label")
    table.add_column("Description")
    table.add_column("State", style="muted")
    for name, info in registry.status().items():
        table.add_row(name, info["display_name"], info["description"], info["state"].value)
    console.print(table)


def show_formats(
    path: Path, media_type: Optional[str] = None, console: Optional[Console] = None
) -> int:
    """Print the capability and offered output formats for a file."""
    console = console or get_console()
    if not path.is_file():
        console.print(f"[error]File not found:[/error] {path}", highlight=False)
        return EXIT_FAILURE

    source = SourceFile.from_path(path, media_type)
    capability = get_resolver().resolve_file(source)
    if capability is None:
        console.print(
            "[error]Unsupported file type or the type could not be determined.[/error]"
        )
        return EXIT_UNSUPPORTED

    formats = capability.offered_formats(source.name)
    declared = escape(source.media_type or "no declared type")
    console.print(f"{capability.display_name} ({declared})", highlight=False)
    console.print("Convert to: " + ", ".join(formats), highlight=False)
    if capability.best_effort_formats:
        flagged = ", ".join(sorted(capability.best_effort_formats))
        console.print(f"[muted]Best effort: {flagged}[/muted]")
    return EXIT_OK


class CliView(RichConversionView):
    """Rich view that retries failed engines a fixed number of times."""

    def __init__(self, console: Optional[Console] = None, retries: int = 0) -> None:
        super().__init__(console)
        self.retries = retries
        self.attempts = 0
        self.orchestrator: Optional[ConversionOrchestrator] = None

    def engine_unavailable(self, engine_name: str, error: Optional[str]) -> None:
        super().engine_unavailable(engine_name, error)
        if self.orchestrator is None:
            return
        loop = asyncio.get_running_loop()
        if self.attempts < self.retries:
            self.attempts += 1
            self.notify(f"Reloading {engine_name} (attempt {self.attempts} of {self.retries})")
            loop.call_soon(self.orchestrator.retry_engine, engine_name)
        else:
            loop.call_soon(self.orchestrator.reset)


async def run_conversion(
    path: Path,
    settings: Settings,
    output_format: Optional[str] = None,
    media_type: Optional[str] = None,
    overwrite: bool = False,
    engines: Optional[EngineRegistry] = None,
    console: Optional[Console] = None,
) -> int:
    """
    Convert one file and return a process exit code.

    Args:
        path: File to convert.
        settings: Settings to use.
        output_format: Target format; prompted for when None.
        media_type: Declared media type override.
        overwrite: Replace existing outputs.
        engines: Engine registry (defaults to the built-in engines).
        console: Console for output.

    Returns:
        0 on success, 1 on failure, 2 if the file type is unsupported.
    """
    console = console or get_console()
    if not path.is_file():
        console.print(f"[error]File not found:[/error] {path}", highlight=False)
        return EXIT_FAILURE

    source = await asyncio.to_thread(SourceFile.from_path, path, media_type)
    view = CliView(console, retries=settings.engine_retries)
    orchestrator = ConversionOrchestrator(
        view=view,
        delivery=DirectoryDelivery(settings.resolved_output_dir, overwrite=overwrite),
        engines=engines or create_engine_registry(settings),
        settings=settings,
    )
    view.orchestrator = orchestrator
    startup = asyncio.ensure_future(orchestrator.start())

    try:
        session = await orchestrator.select(source)
        if session is None:
            return EXIT_UNSUPPORTED

        fmt = output_format
        if fmt is None:
            try:
                fmt = await q_select(
                    "Convert to:", list(session.offered_formats), allow_cancel=True
                )
            except PromptCancelled:
                fmt = None
            if fmt is None:
                console.print("[muted]Cancelled.[/muted]")
                return EXIT_FAILURE

        try:
            result = await orchestrator.convert(fmt)
        except ValueError as e:
            console.print(f"[error]{escape(str(e))}[/error]", highlight=False)
            return EXIT_FAILURE

        if result is None:
            error = orchestrator.last_error
            if error is not None and not isinstance(error, FileShiftError):
                logger.debug("Conversion failed", exc_info=error)
            return EXIT_FAILURE
        return EXIT_OK
    finally:
        await startup


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.version:
        show_version()
        return EXIT_OK

    if args.init:
        success = init_local_config()
        return EXIT_OK if success else EXIT_FAILURE

    settings = load_settings()
    settings = apply_args_to_settings(args, settings)
    configure_logging(settings.verbose)

    if args.config:
        show_config_info(settings)
        return EXIT_OK

    if args.engines:
        list_engines(create_engine_registry(settings))
        return EXIT_OK

    if args.formats:
        return show_formats(Path(args.formats), args.media_type)

    if not args.file:
        print("Error: no input file given. Run 'fileshift --help' for usage.")
        return EXIT_FAILURE

    try:
        return asyncio.run(
            run_conversion(
                Path(args.file),
                settings,
                output_format=args.output_format,
                media_type=args.media_type,
                overwrite=args.overwrite,
            )
        )
    except KeyboardInterrupt:
        print()
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
