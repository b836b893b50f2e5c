"""Tests for progress reporters."""

from __future__ import annotations

import logging
from io import StringIO

import pytest

from inat_explorer.progress import ConsoleProgress, SilentProgress


class TestConsoleProgress:
    def test_hidden_until_shown(self) -> None:
        stream = StringIO()
        progress = ConsoleProgress(stream)
        progress.set_label("species")
        progress.set_page(1)
        assert stream.getvalue() == ""

    def test_renders_page_of_total(self) -> None:
        stream = StringIO()
        progress = ConsoleProgress(stream)
        progress.set_label("species")
        progress.set_page(1)
        progress.show()
        progress.set_num_pages(3)
        progress.set_page(2)
        assert stream.getvalue().endswith("\rRetrieving species: page 2 of 3")

    def test_unknown_total(self) -> None:
        stream = StringIO()
        progress = ConsoleProgress(stream)
        progress.set_label("observations")
        progress.set_page(1)
        progress.show()
        assert stream.getvalue() == "\rRetrieving observations: page 1"

    def test_hide_ends_line_once(self) -> None:
        stream = StringIO()
        progress = ConsoleProgress(stream)
        progress.show()
        progress.hide()
        progress.hide()
        assert stream.getvalue().count("\n") == 1

    def test_modal_alert(self) -> None:
        stream = StringIO()
        ConsoleProgress(stream).modal_alert("10001 results found, maximum is 10000")
        assert "10001 results found, maximum is 10000" in stream.getvalue()


class TestSilentProgress:
    def test_alert_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="inat_explorer.progress"):
            SilentProgress().modal_alert("51 pages found, maximum is 50")
        assert "51 pages found, maximum is 50" in caplog.text

    def test_other_calls_are_noops(self) -> None:
        progress = SilentProgress()
        progress.set_label("x")
        progress.set_num_pages(2)
        progress.set_page(1)
        progress.show()
        progress.hide()
