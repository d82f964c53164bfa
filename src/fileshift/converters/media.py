"""Image, audio and video conversion through the media transcoder."""

import asyncio
import logging
import mimetypes
import tempfile
from pathlib import Path

from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation

logger = logging.getLogger(__name__)


class MediaHandler(BaseHandler):
    """One ffmpeg invocation per conversion.

    The input is written to a private temporary directory because ffmpeg
    needs seekable files for most containers; the directory is removed as
    soon as the output has been read back.
    """

    kinds = (CapabilityKind.MEDIA,)

    async def preview(self, file: SourceFile) -> Representation:
        mime_type = file.media_type or mimetypes.guess_type(file.name)[0] or ""
        if self.capability.key == "image":
            return Representation.image(file.data, mime_type, caption=file.name)
        # Video and audio preview as the playable original
        return Representation.media(file.data, mime_type, caption=file.name)

    def transcode_args(self, output_format: str) -> list[str]:
        """Extra ffmpeg arguments for a target format."""
        if output_format == "gif" and self.capability.key == "video":
            return [
                "-vf",
                f"fps={self.settings.gif_fps},scale={self.settings.gif_width}:-1:flags=lanczos",
            ]
        if self.capability.key != "image":
            return []
        args = []
        if output_format == "ico":
            # ICO frames are limited to 256x256
            args = ["-vf", "scale=256:256:force_original_aspect_ratio=decrease"]
        # Still-image muxers take a single frame; animated inputs keep the first
        return args + ["-frames:v", "1"]

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        ffmpeg = await self.engine()

        with tempfile.TemporaryDirectory(prefix="fileshift-") as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input.{file.extension or 'bin'}"
            output_path = tmp_dir / f"output.{output_format}"
            await asyncio.to_thread(input_path.write_bytes, file.data)

            duration = await ffmpeg.probe_duration(input_path)
            await ffmpeg.transcode(
                input_path,
                output_path,
                extra_args=self.transcode_args(output_format),
                duration=duration,
                progress=progress,
            )
            data = await asyncio.to_thread(output_path.read_bytes)

        logger.debug(f"Transcoded {file.name} to {output_format} ({len(data)} bytes)")
        return self.result(data, file.with_extension(output_format), output_format)
