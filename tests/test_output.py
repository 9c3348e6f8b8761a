"""Tests for datamirror.output -- rendering of command results and diagnostics."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path

import pytest

from datamirror.models import EntryInfo, GlobalConfig
from datamirror.output import (
    OutputMode,
    Terminal,
    TerminalLogHandler,
    color_disabled,
    get_terminal,
    is_csv_rows,
    reset_terminal,
    set_terminal,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("datamirror.output._stdout_is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("datamirror.output._stdout_is_tty", lambda: True)


def _plain(**kwargs) -> Terminal:
    return Terminal(OutputMode.PLAIN, no_color=True, **kwargs)


def _json(**kwargs) -> Terminal:
    return Terminal(OutputMode.JSON, no_color=True, **kwargs)


# ------------------------------------------------------------------ #
# Mode selection
# ------------------------------------------------------------------ #


class TestModeSelection:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert Terminal().mode == OutputMode.PLAIN

    def test_auto_is_rich_on_a_terminal(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert Terminal().mode == OutputMode.RICH

    def test_auto_is_plain_without_colour(self, tty, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert Terminal().mode == OutputMode.PLAIN

    def test_explicit_mode_is_kept(self, tty):
        assert Terminal(OutputMode.JSON).mode == OutputMode.JSON

    def test_no_color_env_with_empty_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert color_disabled() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert color_disabled() is True

    def test_regular_terminal_keeps_colour(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert color_disabled() is False


# ------------------------------------------------------------------ #
# Results on stdout
# ------------------------------------------------------------------ #


class TestEmitResourceValues:
    def test_bytes_are_written_unchanged(self, capfdbinary):
        _plain().emit(b"\x00\x01raw")
        captured = capfdbinary.readouterr()
        assert captured.out == b"\x00\x01raw"
        assert captured.err == b""

    def test_text_gets_a_trailing_newline(self, capfd):
        _plain().emit("hello")
        assert capfd.readouterr().out == "hello\n"

    def test_text_is_not_json_quoted_in_json_mode(self, capfd):
        _json().emit("line one\nline two\n")
        assert capfd.readouterr().out == "line one\nline two\n"

    def test_empty_text_writes_nothing(self, capfd):
        _plain().emit("")
        assert capfd.readouterr().out == ""

    def test_path_is_written_as_text(self, capfd, tmp_path: Path):
        _json().emit(tmp_path / "datamirror.abc.dat")
        assert capfd.readouterr().out == f"{tmp_path / 'datamirror.abc.dat'}\n"

    def test_xml_element_is_serialised(self, capfd):
        _plain().emit(ET.fromstring("<feed><item>1</item></feed>"))
        assert capfd.readouterr().out == "<feed><item>1</item></feed>\n"


class TestEmitDecodedValues:
    def test_json_mode(self, capfd):
        _json().emit({"name": "widget", "ids": [1, 2]})
        assert json.loads(capfd.readouterr().out) == {"name": "widget", "ids": [1, 2]}

    def test_null_document_in_json_mode(self, capfd):
        _json().emit(None)
        assert capfd.readouterr().out == "null\n"

    def test_null_document_in_plain_mode(self, capfd):
        _plain().emit(None)
        assert capfd.readouterr().out == "null\n"

    def test_mapping_as_key_value_lines(self, capfd):
        _plain().emit({"name": "Alice", "age": 30, "tags": ["a"], "admin": False})
        assert capfd.readouterr().out.splitlines() == [
            "name\tAlice",
            "age\t30",
            'tags\t["a"]',
            "admin\tfalse",
        ]

    def test_list_one_item_per_line(self, capfd):
        _plain().emit(["a", 1, {"b": 2}])
        assert capfd.readouterr().out.splitlines() == ["a", "1", '{"b": 2}']

    def test_rich_mapping_is_highlighted_json(self, capfd):
        Terminal(OutputMode.RICH, no_color=True).emit({"key": "value"})
        captured = capfd.readouterr()
        assert "key" in captured.out
        assert captured.err == ""


class TestEmitCsvRows:
    ROWS = [["id", "name"], ["1", "Smith, J"], ["2", "[b]bold[/b]"]]

    def test_detection(self):
        assert is_csv_rows(self.ROWS)
        assert not is_csv_rows([])
        assert not is_csv_rows([["1", 2]])
        assert not is_csv_rows({"id": "1"})

    def test_plain_rows_are_tab_separated(self, capfd):
        _plain().emit(self.ROWS)
        assert capfd.readouterr().out.splitlines() == [
            "id\tname",
            "1\tSmith, J",
            "2\t[b]bold[/b]",
        ]

    def test_json_rows_are_an_array(self, capfd):
        _json().emit(self.ROWS)
        assert json.loads(capfd.readouterr().out) == self.ROWS

    def test_rich_rows_are_a_table(self, capfd):
        Terminal(OutputMode.RICH, no_color=True).emit(self.ROWS)
        out = capfd.readouterr().out
        assert "Smith, J" in out
        assert "[b]bold[/b]" in out
        assert "\t" not in out

    def test_ragged_rows_render(self, capfd):
        Terminal(OutputMode.RICH, no_color=True).emit([["a"], ["1", "extra"]])
        assert "extra" in capfd.readouterr().out


class TestEmitModels:
    def test_entry_info_as_json(self, capfd):
        info = EntryInfo(
            locator="http://example.test/x",
            key="abc",
            path="/tmp/datamirror.abc.dat",
            cached=True,
            stale=False,
            size=4,
            modified=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )
        _json().emit(info)
        shown = json.loads(capfd.readouterr().out)
        assert shown["cached"] is True
        assert shown["modified"] == "2024-01-02T00:00:00Z"

    def test_entry_info_as_plain(self, capfd):
        info = EntryInfo(
            locator="http://example.test/x", key="abc", path="/p", cached=False, stale=True
        )
        _plain().emit(info)
        lines = capfd.readouterr().out.splitlines()
        assert "cached\tfalse" in lines
        assert "size\tnull" in lines

    def test_config_sections_are_nested_json_in_plain(self, capfd):
        _plain().emit(GlobalConfig())
        first = capfd.readouterr().out.splitlines()[0]
        section, _, body = first.partition("\t")
        assert section == "mirror"
        assert json.loads(body)["ttl_seconds"] == 300


class TestOutputFile:
    def test_bytes_to_file(self, tmp_path, capfd):
        target = tmp_path / "out.bin"
        Terminal(OutputMode.PLAIN, output_file=str(target)).emit(b"\x00\x01raw")
        assert target.read_bytes() == b"\x00\x01raw"
        assert capfd.readouterr().out == ""

    def test_decoded_value_to_file(self, tmp_path, capfd):
        target = tmp_path / "out.json"
        Terminal(OutputMode.JSON, output_file=str(target)).emit({"a": 1})
        assert json.loads(target.read_text(encoding="utf-8")) == {"a": 1}
        assert capfd.readouterr().out == ""

    def test_rich_mode_writes_plain_rows_to_file(self, tmp_path, capfd):
        target = tmp_path / "rows.tsv"
        Terminal(OutputMode.RICH, output_file=str(target)).emit([["id"], ["1"]])
        assert target.read_text(encoding="utf-8") == "id\n1\n"
        assert capfd.readouterr().out == ""

    def test_file_is_overwritten(self, tmp_path):
        target = tmp_path / "out.txt"
        target.write_text("old content that is longer", encoding="utf-8")
        _plain(output_file=str(target)).emit("new")
        assert target.read_text(encoding="utf-8") == "new\n"


# ------------------------------------------------------------------ #
# Diagnostics on stderr
# ------------------------------------------------------------------ #


class TestDiagnostics:
    @pytest.mark.parametrize("method", ["note", "warning", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, method):
        getattr(_plain(), method)("diagnostic")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic" in captured.err

    def test_prefixes(self, capfd):
        terminal = _plain()
        terminal.warning("stale copy")
        terminal.error("HTTP 404")
        err = capfd.readouterr().err
        assert "Warning: stale copy" in err
        assert "Error: HTTP 404" in err

    def test_quiet_drops_notes_only(self, capfd):
        terminal = _plain(quiet=True)
        terminal.note("hidden")
        terminal.warning("shown")
        err = capfd.readouterr().err
        assert "hidden" not in err
        assert "Warning: shown" in err

    def test_debug_requires_verbose(self, capfd):
        _plain().debug("silent")
        _plain(verbose=True).debug("loud")
        err = capfd.readouterr().err
        assert "silent" not in err
        assert "[debug] loud" in err

    def test_brackets_in_messages_are_not_markup(self, capfd):
        _plain().error("Cannot retrieve http://[::1]/x [red]")
        assert "http://[::1]/x [red]" in capfd.readouterr().err

    def test_long_messages_are_not_wrapped(self, capfd):
        url = "http://example.test/" + "a" * 200
        _plain().error(f"Cannot retrieve {url}")
        assert url in capfd.readouterr().err


class TestTerminalLogHandler:
    @pytest.fixture()
    def logger(self):
        logger = logging.getLogger("datamirror.test_output")
        handler = TerminalLogHandler()
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        yield logger
        logger.removeHandler(handler)

    def test_warning_record(self, capfd, logger):
        set_terminal(_plain())
        logger.warning("Cannot refresh %s: HTTP %d", "http://example.test/x", 503)
        assert "Warning: Cannot refresh http://example.test/x: HTTP 503" in capfd.readouterr().err

    def test_error_record(self, capfd, logger):
        set_terminal(_plain())
        logger.error("boom")
        assert "Error: boom" in capfd.readouterr().err

    def test_debug_record_needs_verbose(self, capfd, logger):
        set_terminal(_plain())
        logger.debug("Cache hit")
        assert capfd.readouterr().err == ""

        set_terminal(_plain(verbose=True))
        logger.debug("Cache hit")
        assert "[debug] Cache hit" in capfd.readouterr().err


class TestInstalledTerminal:
    def test_default_is_created_lazily(self):
        reset_terminal()
        assert isinstance(get_terminal(), Terminal)
        assert get_terminal() is get_terminal()

    def test_set_replaces_instance(self):
        terminal = _json()
        set_terminal(terminal)
        assert get_terminal() is terminal
