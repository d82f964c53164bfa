"""ffmpeg-backed media transcoder."""

import asyncio
import logging
import platform
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

from fileshift.errors import ConversionError
from fileshift.status import ProgressCallback

if TYPE_CHECKING:
    from fileshift.config import Settings

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 500
PROBE_TIMEOUT = 10


class FfmpegEngine:
    """Handle for the ffmpeg and ffprobe binaries.

    One instance is shared by every media conversion once the
    ``media-transcoder`` engine is ready.
    """

    def __init__(
        self,
        ffmpeg_path: str,
        ffprobe_path: Optional[str] = None,
        timeout: Optional[float] = 600,
        version: str = "",
    ) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout
        self.version = version

    @classmethod
    async def locate(cls, settings: "Settings") -> "FfmpegEngine":
        """Find the binaries and check that ffmpeg actually runs.

        Raises:
            RuntimeError: If ffmpeg is missing or broken. The message carries
                installation instructions for the running platform.
        """
        ffmpeg_path = shutil.which(settings.ffmpeg_binary)
        if ffmpeg_path is None:
            raise RuntimeError(
                f"'{settings.ffmpeg_binary}' was not found on PATH. {install_hint()}"
            )

        proc = await asyncio.create_subprocess_exec(
            ffmpeg_path,
            "-hide_banner",
            "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise RuntimeError(f"ffmpeg -version failed: {_tail(stderr)}")

        version_line = stdout.decode("utf-8", errors="replace").splitlines()[:1]
        ffprobe_path = shutil.which(settings.ffprobe_binary)
        if ffprobe_path is None:
            logger.warning("ffprobe not found; conversion progress will be coarse")

        return cls(
            ffmpeg_path=ffmpeg_path,
            ffprobe_path=ffprobe_path,
            timeout=settings.ffmpeg_timeout,
            version=version_line[0] if version_line else "",
        )

    async def probe_duration(self, path: Path) -> Optional[float]:
        """Get media duration in seconds via ffprobe (best-effort)."""
        if not self.ffprobe_path:
            return None

        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffprobe_path,
                "-v",
                "quiet",
                "-show_entries",
                "format=duration",
                "-of",
                "csv=p=0",
                str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"ffprobe could not start: {e}")
            return None

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), PROBE_TIMEOUT)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return None

        text = stdout.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0 or not text:
            return None
        try:
            duration = float(text)
        except ValueError:
            return None
        return duration if duration > 0 else None

    def build_command(
        self, input_path: Path, output_path: Path, extra_args: Sequence[str] = ()
    ) -> list[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-y",
            "-i",
            str(input_path),
            *extra_args,
            "-progress",
            "pipe:1",
            "-nostats",
            str(output_path),
        ]

    async def transcode(
        self,
        input_path: Path,
        output_path: Path,
        extra_args: Sequence[str] = (),
        duration: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Run one ffmpeg invocation.

        Args:
            input_path: Source file on disk.
            output_path: Destination; its suffix selects the muxer.
            extra_args: Arguments inserted between the input and the output.
            duration: Input duration in seconds, used to turn ffmpeg's
                ``out_time`` reports into a fraction.
            progress: Called with a fraction in [0.0, 1.0].

        Raises:
            ConversionError: On timeout or non-zero exit.
        """
        command = self.build_command(input_path, output_path, extra_args)
        logger.debug(f"Running {' '.join(command)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConversionError(f"ffmpeg execution error: {e}") from e

        stderr_task = asyncio.ensure_future(proc.stderr.read())
        try:
            await asyncio.wait_for(
                self._follow_progress(proc.stdout, duration, progress), self.timeout
            )
            await asyncio.wait_for(proc.wait(), self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ConversionError(f"ffmpeg timed out after {self.timeout:g}s") from None
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            stderr = await stderr_task

        if proc.returncode != 0:
            logger.error(f"ffmpeg failed for {input_path.name}: {_tail(stderr)}")
            raise ConversionError(f"ffmpeg exited with code {proc.returncode}: {_tail(stderr)}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise ConversionError("ffmpeg produced empty output")

    @staticmethod
    async def _follow_progress(
        stream: asyncio.StreamReader,
        duration: Optional[float],
        progress: Optional[ProgressCallback],
    ) -> None:
        last = 0.0
        async for raw in stream:
            key, _, value = raw.decode("utf-8", errors="replace").strip().partition("=")
            fraction = None
            if key == "progress" and value == "end":
                fraction = 1.0
            elif key in ("out_time_us", "out_time_ms") and duration:
                # Both keys carry microseconds.
                try:
                    fraction = min(int(value) / 1_000_000 / duration, 1.0)
                except ValueError:
                    continue
            if fraction is not None and fraction > last and progress is not None:
                last = fraction
                progress(fraction)


def _tail(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace").strip()
    return text[-STDERR_TAIL_CHARS:]


def install_hint(system: Optional[str] = None) -> str:
    """Platform-specific ffmpeg installation instructions."""
    system = (system or platform.system()).lower()

    if system == "darwin":
        return "Install on macOS: brew install ffmpeg"
    if system == "linux":
        return (
            "Install on Ubuntu/Debian: sudo apt update && sudo apt install ffmpeg; "
            "Fedora: sudo dnf install ffmpeg; Arch: sudo pacman -S ffmpeg"
        )
    if system == "windows":
        return "Install on Windows: winget install FFmpeg (or choco install ffmpeg)"
    return "Install ffmpeg from https://ffmpeg.org/download.html"
