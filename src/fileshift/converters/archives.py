"""Archive repackaging: zip to tar.gz."""

import asyncio
import calendar
import gzip
import io
import logging
import tarfile
import zipfile
import zlib
from typing import Iterable

from fileshift.errors import ConversionError, PreviewError, UnsupportedConversionError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation

logger = logging.getLogger(__name__)

PREVIEW_ENTRIES = 20
READ_START = 0.25
READ_SPAN = 0.5

ArchiveEntry = tuple[zipfile.ZipInfo, bytes]


def _listing(names: list[str]) -> str:
    shown = names[:PREVIEW_ENTRIES]
    lines = list(shown)
    if len(names) > len(shown):
        lines.append(f"... and {len(names) - len(shown)} more")
    return "\n".join(lines)


def build_tarball(entries: Iterable[ArchiveEntry]) -> bytes:
    """Write entries to a tar in order, then gzip with a fixed header mtime."""
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for info, data in entries:
            member = tarfile.TarInfo(name=info.filename)
            member.size = len(data)
            member.mtime = calendar.timegm(info.date_time + (0, 0, 0))
            member.mode = 0o644
            tar.addfile(member, io.BytesIO(data))
    return gzip.compress(raw.getvalue(), mtime=0)


class ZipArchiveHandler(BaseHandler):
    """Decompress every entry, then repackage as tar.gz."""

    kinds = (CapabilityKind.ZIP_ARCHIVE,)

    @staticmethod
    def _open(file: SourceFile) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(io.BytesIO(file.data))
        except zipfile.BadZipFile as e:
            raise ConversionError(f"{file.name} is not a valid zip archive: {e}") from e

    async def preview(self, file: SourceFile) -> Representation:
        try:
            archive = self._open(file)
        except ConversionError as e:
            raise PreviewError(str(e)) from e
        with archive:
            names = [info.filename for info in archive.infolist() if not info.is_dir()]
        return Representation.placeholder(
            f"Archive file loaded: {file.name}. Ready to convert.", _listing(names)
        )

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        entries = await self.read_entries(file, progress)
        data = await asyncio.to_thread(build_tarball, entries)
        progress(1.0)
        logger.debug(f"Repackaged {len(entries)} entries from {file.name}")
        return self.result(data, file.with_extension(output_format), output_format)

    async def read_entries(self, file: SourceFile, progress: ProgressCallback) -> list[ArchiveEntry]:
        """Every non-directory entry, in enumeration order."""
        archive = self._open(file)
        progress(READ_START)
        entries: list[ArchiveEntry] = []
        with archive:
            infos = [info for info in archive.infolist() if not info.is_dir()]
            for index, info in enumerate(infos):
                try:
                    data = await asyncio.to_thread(archive.read, info)
                except (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError) as e:
                    raise ConversionError(f"Could not read {info.filename}: {e}") from e
                entries.append((info, data))
                progress(READ_START + (index + 1) / len(infos) * READ_SPAN)
        return entries


class TarballHandler(BaseHandler):
    """tar.gz archives: listed in preview, not repackaged."""

    kinds = (CapabilityKind.TARBALL,)

    async def preview(self, file: SourceFile) -> Representation:
        try:
            names = await asyncio.to_thread(self._member_names, file.data)
        except (tarfile.TarError, OSError, EOFError) as e:
            raise PreviewError(f"{file.name} is not a readable tar.gz archive: {e}") from e
        return Representation.placeholder(
            f"Archive file loaded: {file.name}. Ready to convert.", _listing(names)
        )

    @staticmethod
    def _member_names(data: bytes) -> list[str]:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            return [member.name for member in tar.getmembers() if not member.isdir()]

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        raise UnsupportedConversionError("Repackaging tar.gz archives as zip is not supported")
