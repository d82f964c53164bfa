"""Tests for archive repackaging."""

import asyncio
import io
import tarfile
import zipfile

import pytest

from fileshift.converters.archives import TarballHandler, ZipArchiveHandler, build_tarball
from fileshift.engines import EngineRegistry
from fileshift.errors import ConversionError, PreviewError, UnsupportedConversionError
from fileshift.files import SourceFile
from fileshift.routing import CAPABILITIES

from helpers.fakes import make_settings

STAMP = (2023, 6, 1, 12, 30, 0)


def _zip(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries:
            archive.writestr(zipfile.ZipInfo(name, STAMP), data)
    return buffer.getvalue()


def _members(data):
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        return [(m.name, tar.extractfile(m).read()) for m in tar.getmembers()]


@pytest.fixture
def zip_handler(tmp_path):
    return ZipArchiveHandler(CAPABILITIES["application/zip"], EngineRegistry(), make_settings(tmp_path))


@pytest.fixture
def tarball_handler(tmp_path):
    return TarballHandler(CAPABILITIES["application/gzip"], EngineRegistry(), make_settings(tmp_path))


SAMPLE = _zip(
    [
        ("z-last.txt", b"zzz"),
        ("docs/", b""),
        ("docs/readme.md", b"# hello\n"),
        ("a-first.bin", bytes(range(256))),
    ]
)


class TestZipToTarball:
    """zip -> tar.gz."""

    def test_entries_keep_order_and_content(self, zip_handler):
        result = asyncio.run(zip_handler.convert(SourceFile("bundle.zip", SAMPLE), "tar.gz"))

        assert result.filename == "bundle.tar.gz"
        assert result.mime_type == "application/gzip"
        assert _members(result.data) == [
            ("z-last.txt", b"zzz"),
            ("docs/readme.md", b"# hello\n"),
            ("a-first.bin", bytes(range(256))),
        ]

    def test_output_is_deterministic(self, zip_handler):
        async def scenario():
            first = await zip_handler.convert(SourceFile("bundle.zip", SAMPLE), "tar.gz")
            second = await zip_handler.convert(SourceFile("bundle.zip", SAMPLE), "tgz")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.data == second.data
        # gzip header mtime
        assert first.data[4:8] == b"\x00\x00\x00\x00"

    def test_member_metadata(self, zip_handler):
        result = asyncio.run(zip_handler.convert(SourceFile("bundle.zip", SAMPLE), "tar.gz"))
        with tarfile.open(fileobj=io.BytesIO(result.data), mode="r:gz") as tar:
            member = tar.getmember("z-last.txt")
        assert member.mode == 0o644
        assert member.mtime == 1685622600

    def test_progress_is_monotonic(self, zip_handler):
        seen = []
        asyncio.run(zip_handler.convert(SourceFile("bundle.zip", SAMPLE), "tar.gz", seen.append))
        assert seen == sorted(seen)
        assert seen[0] == 0.25
        assert seen[-1] == 1.0

    def test_empty_archive(self, zip_handler):
        result = asyncio.run(zip_handler.convert(SourceFile("empty.zip", _zip([])), "tar.gz"))
        assert _members(result.data) == []

    def test_invalid_zip(self, zip_handler):
        with pytest.raises(ConversionError, match="not a valid zip"):
            asyncio.run(zip_handler.convert(SourceFile("bad.zip", b"PK nope"), "tar.gz"))

    def test_preview_lists_files(self, zip_handler):
        preview = asyncio.run(zip_handler.preview(SourceFile("bundle.zip", SAMPLE)))
        assert preview.text.splitlines() == ["z-last.txt", "docs/readme.md", "a-first.bin"]

    def test_preview_of_invalid_zip(self, zip_handler):
        with pytest.raises(PreviewError):
            asyncio.run(zip_handler.preview(SourceFile("bad.zip", b"nope")))


class TestTarball:
    """tar.gz inputs."""

    def test_preview_lists_members(self, tarball_handler):
        info = zipfile.ZipInfo("inner.txt", STAMP)
        data = build_tarball([(info, b"inside")])
        preview = asyncio.run(tarball_handler.preview(SourceFile("x.tar.gz", data)))
        assert preview.text == "inner.txt"

    def test_repackaging_as_zip_is_unsupported(self, tarball_handler):
        data = build_tarball([])
        with pytest.raises(UnsupportedConversionError):
            asyncio.run(tarball_handler.convert(SourceFile("x.tar.gz", data), "zip"))

    def test_unreadable_tarball_preview(self, tarball_handler):
        with pytest.raises(PreviewError):
            asyncio.run(tarball_handler.preview(SourceFile("x.tar.gz", b"garbage")))
