"""Tests for conversion status formatting."""

import pytest

from fileshift.status import ConversionStatus, StatusPhase, sanitize_terminal_text


class TestConversionStatus:
    """Status constructors."""

    def test_waiting_engine(self):
        status = ConversionStatus.waiting_engine("Media")
        assert status.phase is StatusPhase.WAITING_ENGINE
        assert status.percent == 0
        assert status.message == "Waiting for Media engine..."

    def test_starting(self):
        status = ConversionStatus.starting()
        assert (status.percent, status.message) == (0, "Starting conversion...")

    def test_converting_rounds_to_whole_percent(self):
        status = ConversionStatus.converting(0.456)
        assert status.percent == 46
        assert status.message == "Converting... 46%"

    @pytest.mark.parametrize(
        "fraction,expected",
        [(-0.5, 0), (1.7, 100), (float("nan"), 0), (None, 0), ("0.5", 50)],
    )
    def test_converting_clamps(self, fraction, expected):
        assert ConversionStatus.converting(fraction).percent == expected

    def test_complete(self):
        status = ConversionStatus.complete()
        assert status.phase is StatusPhase.COMPLETE
        assert status.percent == 100

    def test_failed_message(self):
        status = ConversionStatus.failed("ffmpeg exited with code 1.", percent=40)
        assert status.message == "Error: ffmpeg exited with code 1. Please try again."
        assert status.percent == 40

    def test_failed_without_detail(self):
        assert ConversionStatus.failed("").message == "Error: Conversion failed. Please try again."

    def test_failed_percent_is_clamped(self):
        assert ConversionStatus.failed("x", percent=250).percent == 100


class TestSanitizeTerminalText:
    def test_none(self):
        assert sanitize_terminal_text(None) == ""

    def test_newlines_and_control_chars(self):
        assert sanitize_terminal_text("a\nb\tc\x1b[31m\x07") == "a b c[31m"

    def test_non_string(self):
        assert sanitize_terminal_text(ValueError("bad")) == "bad"
