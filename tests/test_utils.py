"""
Tests for the timing and validation helpers.
"""

import logging

import pytest

from polos import FormatError, config
from polos.utils import Timer, validation_error


class TestTimer:
    """Test the timing context manager."""

    def test_elapsed_without_report(self, capsys):
        with Timer(verbose=False) as t:
            sum(range(1000))
        assert t.elapsed >= 0.0
        assert capsys.readouterr().out == ''

    def test_prints_when_verbose(self, capsys):
        with Timer("Catalog build"):
            pass
        assert capsys.readouterr().out.startswith("Catalog build: ")

    def test_reports_to_logger(self, caplog, capsys):
        log = logging.getLogger("polos.tests")
        with caplog.at_level(logging.DEBUG, logger="polos.tests"):
            with Timer("Load kernel", log=log):
                pass
        assert caplog.records[0].getMessage().startswith("Load kernel: ")
        assert capsys.readouterr().out == ''


class TestValidationError:
    """Test strict and best-effort reporting."""

    def test_strict_raises(self):
        with pytest.raises(ValueError, match="corrupt"):
            validation_error("Segment 3 is corrupt")

    def test_strict_raises_given_error(self):
        error = FormatError("bad type code")
        with pytest.raises(FormatError) as info:
            validation_error("ignored", error=error)
        assert info.value is error

    def test_best_effort_warns(self, caplog):
        config.STRICT_LOADING = False
        with pytest.warns(UserWarning, match="corrupt"):
            validation_error("Segment 3 is corrupt", error_class=FormatError)
        assert "Segment 3 is corrupt" in caplog.text

    def test_argument_overrides_config(self):
        with pytest.warns(UserWarning):
            validation_error("Segment 3 is corrupt", strict=False)
