"""Tests for output delivery."""

import pytest

from fileshift.delivery import DirectoryDelivery, InMemoryDelivery, safe_filename, split_suffix
from fileshift.files import SourceFile


class TestFilenames:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("report.pdf.txt", "report.pdf.txt"),
            ("../../etc/passwd", "passwd"),
            ("..\\evil.exe", "evil.exe"),
            ('a<b>:"c".png', "a_b___c_.png"),
            ("", "converted"),
            ("...", "converted"),
        ],
    )
    def test_safe_filename(self, name, expected):
        assert safe_filename(name) == expected

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("backup.tar.gz", ("backup", ".tar.gz")),
            ("clip.gif", ("clip", ".gif")),
            ("README", ("README", "")),
            (".tar.gz", (".tar", ".gz")),
        ],
    )
    def test_split_suffix(self, name, expected):
        assert split_suffix(name) == expected


class TestSourceFileNames:
    """Output names derived from the staged file."""

    def test_with_extension_replaces_last_suffix(self):
        file = SourceFile("holiday clip.mkv", b"")
        assert file.stem == "holiday clip"
        assert file.with_extension("gif") == "holiday clip.gif"

    def test_appended_keeps_full_name(self):
        assert SourceFile("report.pdf", b"").appended("txt") == "report.pdf.txt"

    def test_no_extension(self):
        file = SourceFile("Makefile", b"")
        assert file.extension == ""
        assert file.with_extension("txt") == "Makefile.txt"

    def test_from_path_guesses_media_type(self, tmp_path):
        path = tmp_path / "data.csv"
        path.write_text("a,b\n1,2\n", encoding="utf-8")
        file = SourceFile.from_path(path)
        assert file.name == "data.csv"
        assert file.media_type == "text/csv"
        assert file.size == 8

    def test_from_path_keeps_declared_type(self, tmp_path):
        path = tmp_path / "blob"
        path.write_bytes(b"\x00")
        assert SourceFile.from_path(path, "").media_type == ""


class TestDirectoryDelivery:
    def test_writes_into_created_directory(self, tmp_path):
        delivery = DirectoryDelivery(tmp_path / "out")
        location = delivery.deliver(b"data", "clip.gif", "image/gif")
        assert location == str(tmp_path / "out" / "clip.gif")
        assert (tmp_path / "out" / "clip.gif").read_bytes() == b"data"

    def test_existing_files_are_not_clobbered(self, tmp_path):
        delivery = DirectoryDelivery(tmp_path)
        delivery.deliver(b"one", "backup.tar.gz", "application/gzip")
        delivery.deliver(b"two", "backup.tar.gz", "application/gzip")
        delivery.deliver(b"three", "backup.tar.gz", "application/gzip")

        assert (tmp_path / "backup.tar.gz").read_bytes() == b"one"
        assert (tmp_path / "backup (1).tar.gz").read_bytes() == b"two"
        assert (tmp_path / "backup (2).tar.gz").read_bytes() == b"three"

    def test_overwrite(self, tmp_path):
        delivery = DirectoryDelivery(tmp_path, overwrite=True)
        delivery.deliver(b"one", "a.txt", "text/plain")
        delivery.deliver(b"two", "a.txt", "text/plain")
        assert (tmp_path / "a.txt").read_bytes() == b"two"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt"]

    def test_unsafe_name_stays_inside_directory(self, tmp_path):
        out = tmp_path / "out"
        DirectoryDelivery(out).deliver(b"x", "../escape.txt", "text/plain")
        assert (out / "escape.txt").exists()
        assert not (tmp_path / "escape.txt").exists()


class TestInMemoryDelivery:
    def test_keeps_outputs_in_order(self):
        delivery = InMemoryDelivery()
        assert delivery.last is None
        assert delivery.deliver(b"a", "a.csv", "text/csv") is None
        delivery.deliver(b"b", "b.json", "application/json")
        assert [output.filename for output in delivery.outputs] == ["a.csv", "b.json"]
        assert delivery.last.data == b"b"
