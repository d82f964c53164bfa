"""Tests for the fileshift command line."""

import asyncio
import io
import json
from unittest.mock import AsyncMock, patch

import openpyxl
import pytest

from fileshift import cli
from fileshift.config import Settings
from fileshift.display import create_console
from fileshift.engines import EngineRegistry, EngineSpec

from helpers.fakes import FlakyLoader, failing_engine, make_settings, ready_engine

CSV_TEXT = "name,qty\nwidget,12\n"


def _console():
    return create_console(file=io.StringIO(), width=120, force_terminal=False)


def _output(console):
    return console.file.getvalue()


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "stock.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    return path


class TestParseArgs:
    def test_conversion_arguments(self):
        args = cli.parse_args(["clip.mkv", "--to", "gif", "-o", "out", "--overwrite"])
        assert args.file == "clip.mkv"
        assert args.output_format == "gif"
        assert args.output_dir == "out"
        assert args.overwrite is True
        assert args.media_type is None

    def test_declared_type(self):
        args = cli.parse_args(["blob", "--type", "application/zip"])
        assert args.media_type == "application/zip"

    def test_apply_args_to_settings(self, tmp_path):
        settings = Settings(base_dir=tmp_path)
        args = cli.parse_args(["x", "-o", str(tmp_path / "out"), "--engine-retries", "3", "-v"])
        cli.apply_args_to_settings(args, settings)
        assert settings.output_dir == tmp_path / "out"
        assert settings.engine_retries == 3
        assert settings.verbose is True

    def test_negative_retries_are_ignored(self, tmp_path, capsys):
        settings = Settings(base_dir=tmp_path, engine_retries=2)
        cli.apply_args_to_settings(cli.parse_args(["x", "--engine-retries", "-1"]), settings)
        assert settings.engine_retries == 2
        assert "must be >= 0" in capsys.readouterr().out


class TestShowFormats:
    def test_supported_file(self, csv_file):
        console = _console()
        assert cli.show_formats(csv_file, console=console) == cli.EXIT_OK
        output = _output(console)
        assert "CSV Document" in output
        assert "xlsx, json" in output

    def test_font_lists_best_effort_targets(self, tmp_path):
        path = tmp_path / "Inter.ttf"
        path.write_bytes(b"\x00\x01\x00\x00")
        console = _console()
        assert cli.show_formats(path, "application/octet-stream", console) == cli.EXIT_OK
        assert "Best effort: otf, ttf" in _output(console)

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "notes.unknownext"
        path.write_text("x", encoding="utf-8")
        assert cli.show_formats(path, console=_console()) == cli.EXIT_UNSUPPORTED

    def test_missing_file(self, tmp_path):
        assert cli.show_formats(tmp_path / "nope.csv", console=_console()) == cli.EXIT_FAILURE


class TestRunConversion:
    """Full conversions driven through the CLI view."""

    def _settings(self, tmp_path, **overrides):
        return make_settings(tmp_path, output_dir=tmp_path / "out", **overrides)

    def test_converts_and_writes_output(self, tmp_path, csv_file):
        console = _console()
        engines = EngineRegistry([ready_engine("spreadsheet", openpyxl)])

        code = asyncio.run(
            cli.run_conversion(
                csv_file, self._settings(tmp_path), "json", engines=engines, console=console
            )
        )

        assert code == cli.EXIT_OK
        written = tmp_path / "out" / "stock.json"
        assert json.loads(written.read_text(encoding="utf-8")) == [
            {"name": "widget", "qty": "12"}
        ]
        assert "Saved" in _output(console)

    def test_second_run_does_not_overwrite(self, tmp_path, csv_file):
        engines = EngineRegistry([ready_engine("spreadsheet", openpyxl)])
        settings = self._settings(tmp_path)

        async def scenario():
            await cli.run_conversion(csv_file, settings, "json", engines=engines, console=_console())
            return await cli.run_conversion(
                csv_file, settings, "json", engines=engines, console=_console()
            )

        assert asyncio.run(scenario()) == cli.EXIT_OK
        assert (tmp_path / "out" / "stock (1).json").exists()

    def test_prompts_for_format(self, tmp_path, csv_file):
        engines = EngineRegistry([ready_engine("spreadsheet", openpyxl)])

        with patch("fileshift.cli.q_select", new=AsyncMock(return_value="xlsx")) as prompt:
            code = asyncio.run(
                cli.run_conversion(
                    csv_file, self._settings(tmp_path), engines=engines, console=_console()
                )
            )

        assert code == cli.EXIT_OK
        assert prompt.await_args.args[1] == ["xlsx", "json"]
        assert (tmp_path / "out" / "stock.xlsx").exists()

    def test_cancelled_prompt(self, tmp_path, csv_file):
        engines = EngineRegistry([ready_engine("spreadsheet", openpyxl)])

        with patch("fileshift.cli.q_select", new=AsyncMock(side_effect=cli.PromptCancelled())):
            code = asyncio.run(
                cli.run_conversion(
                    csv_file, self._settings(tmp_path), engines=engines, console=_console()
                )
            )

        assert code == cli.EXIT_FAILURE
        assert not (tmp_path / "out").exists()

    def test_format_not_offered(self, tmp_path, csv_file):
        console = _console()
        engines = EngineRegistry([ready_engine("spreadsheet", openpyxl)])

        code = asyncio.run(
            cli.run_conversion(
                csv_file, self._settings(tmp_path), "csv", engines=engines, console=console
            )
        )
        assert code == cli.EXIT_FAILURE
        assert "not offered" in _output(console)

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "notes.unknownext"
        path.write_text("x", encoding="utf-8")
        code = asyncio.run(
            cli.run_conversion(
                path, self._settings(tmp_path), "pdf", engines=EngineRegistry(), console=_console()
            )
        )
        assert code == cli.EXIT_UNSUPPORTED

    def test_missing_file(self, tmp_path):
        code = asyncio.run(
            cli.run_conversion(
                tmp_path / "missing.csv",
                self._settings(tmp_path),
                "json",
                engines=EngineRegistry(),
                console=_console(),
            )
        )
        assert code == cli.EXIT_FAILURE

    def test_failed_engine_gives_up_without_retries(self, tmp_path, csv_file):
        console = _console()
        engines = EngineRegistry([failing_engine("spreadsheet", "openpyxl is broken")])

        code = asyncio.run(
            cli.run_conversion(
                csv_file,
                self._settings(tmp_path, engine_retries=0),
                "json",
                engines=engines,
                console=console,
            )
        )

        assert code == cli.EXIT_FAILURE
        assert "openpyxl is broken" in _output(console)
        assert not (tmp_path / "out").exists()

    def test_failed_engine_is_retried(self, tmp_path, csv_file):
        console = _console()
        loader = FlakyLoader(openpyxl, failures=1)
        engines = EngineRegistry([EngineSpec("spreadsheet", loader, display_name="Spreadsheet")])

        code = asyncio.run(
            cli.run_conversion(
                csv_file,
                self._settings(tmp_path, engine_retries=1),
                "json",
                engines=engines,
                console=console,
            )
        )

        assert code == cli.EXIT_OK
        assert loader.calls == 2
        assert "Reloading spreadsheet (attempt 1 of 1)" in _output(console)
        assert (tmp_path / "out" / "stock.json").exists()


class TestMain:
    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

    def test_version(self, capsys):
        assert cli.main(["--version"]) == cli.EXIT_OK
        assert "fileshift version 0.1.0" in capsys.readouterr().out

    def test_no_file(self, capsys):
        assert cli.main([]) == cli.EXIT_FAILURE
        assert "no input file" in capsys.readouterr().out

    def test_formats(self, csv_file):
        assert cli.main(["--formats", str(csv_file)]) == cli.EXIT_OK

    def test_init_twice(self, tmp_path):
        assert cli.main(["--init"]) == cli.EXIT_OK
        assert (tmp_path / ".fileshift" / "settings.yaml").exists()
        assert cli.main(["--init"]) == cli.EXIT_FAILURE

    def test_list_engines(self, tmp_path):
        console = _console()
        cli.list_engines(cli.create_engine_registry(make_settings(tmp_path)), console)
        output = _output(console)
        assert "media-transcoder" in output
        assert "not_loaded" in output
