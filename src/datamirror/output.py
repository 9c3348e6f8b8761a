"""Terminal output for the ``datamirror`` command line.

Command results go to stdout, or to the ``--output`` file. Notes, warnings
and errors go to stderr, so ``datamirror get URL > copy.dat`` captures the
resource and nothing else.

:meth:`Terminal.emit` renders whatever a command produced:

* ``bytes`` (``get`` without ``--format``) are written unchanged;
* ``str`` and :class:`~pathlib.Path` values are written as one text block;
* an :class:`xml.etree.ElementTree.Element` is serialised back to XML;
* CSV rows become a table, or tab-separated lines when not rendering rich;
* pydantic models (entry status, the stored config) and decoded JSON/YAML
  become JSON, ``key<TAB>value`` lines or highlighted JSON, by mode.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import IO, Any, Iterator, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputMode(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def color_disabled() -> bool:
    """``NO_COLOR`` (set to anything) or ``TERM=dumb`` turn colour off."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _stdout_is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def is_csv_rows(value: Any) -> bool:
    """Return ``True`` for a non-empty list of string lists (decoded CSV)."""
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(row, list) and all(isinstance(c, str) for c in row) for row in value)
    )


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Path):
        return str(value)
    return value


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _plain_scalar(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class Terminal:
    """Writer for command results and diagnostics, built from the global flags.

    Args:
        mode: How structured values are rendered. ``AUTO`` becomes ``RICH``
            on an interactive terminal with colour enabled, ``PLAIN``
            otherwise.
        no_color: Strip colour from both streams.
        quiet: Drop notes; warnings and errors are still shown.
        verbose: Show debug records from the ``datamirror`` loggers.
        output_file: Write results to this file instead of stdout.
    """

    def __init__(
        self,
        mode: OutputMode = OutputMode.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        no_color = no_color or color_disabled()
        if mode == OutputMode.AUTO:
            mode = OutputMode.RICH if _stdout_is_tty() and not no_color else OutputMode.PLAIN
        self.mode = mode
        self.quiet = quiet
        self.verbose = verbose
        self._no_color = no_color
        self._output_file = output_file
        self._stderr = Console(stderr=True, no_color=no_color, highlight=False, soft_wrap=True)

    # -- results ------------------------------------------------------- #

    def emit(self, value: Any) -> None:
        """Write a command result."""
        if isinstance(value, bytes):
            self._write_bytes(value)
            return
        if isinstance(value, ET.Element):
            value = ET.tostring(value, encoding="unicode")
        value = _to_jsonable(value)

        if isinstance(value, str):
            self._write_text(value)
        elif self.mode == OutputMode.JSON:
            self._write_text(_dumps(value))
        elif is_csv_rows(value):
            self._emit_rows(value)
        elif self._renders_rich():
            self._stdout_console().print(Syntax(_dumps(value), "json", word_wrap=True))
        elif isinstance(value, dict):
            self._write_text("\n".join(f"{k}\t{_plain_scalar(v)}" for k, v in value.items()))
        elif isinstance(value, list):
            self._write_text("\n".join(_plain_scalar(item) for item in value))
        else:
            self._write_text(_plain_scalar(value))

    def _emit_rows(self, rows: list[list[str]]) -> None:
        if not self._renders_rich():
            self._write_text("\n".join("\t".join(row) for row in rows))
            return
        header, *body = rows
        table = Table(header_style="bold")
        for name in header:
            table.add_column(Text(name))
        for row in body:
            table.add_row(*(Text(cell) for cell in row))
        self._stdout_console().print(table)

    def _renders_rich(self) -> bool:
        return self.mode == OutputMode.RICH and self._output_file is None

    def _stdout_console(self) -> Console:
        return Console(no_color=self._no_color, force_terminal=True, highlight=False)

    def _write_text(self, text: str) -> None:
        if text and not text.endswith("\n"):
            text += "\n"
        with self._sink(binary=False) as fh:
            fh.write(text)

    def _write_bytes(self, data: bytes) -> None:
        if self._output_file is None and getattr(sys.stdout, "buffer", None) is None:
            self._write_text(data.decode("utf-8", errors="replace"))
            return
        with self._sink(binary=True) as fh:
            fh.write(data)

    @contextmanager
    def _sink(self, binary: bool) -> Iterator[IO[Any]]:
        if self._output_file is not None:
            if binary:
                with open(self._output_file, "wb") as fh:
                    yield fh
            else:
                with open(self._output_file, "w", encoding="utf-8") as fh:
                    yield fh
            return
        stream = sys.stdout.buffer if binary else sys.stdout
        yield stream
        stream.flush()

    # -- diagnostics --------------------------------------------------- #

    def note(self, message: str) -> None:
        """Progress or confirmation message; dropped by ``--quiet``."""
        if not self.quiet:
            self._stderr.print(Text(message))

    def warning(self, message: str) -> None:
        self._stderr.print(Text.assemble(("Warning: ", "yellow"), message))

    def error(self, message: str) -> None:
        self._stderr.print(Text.assemble(("Error: ", "bold red"), message))

    def debug(self, message: str) -> None:
        if self.verbose:
            self._stderr.print(Text(f"[debug] {message}", style="dim"))


class TerminalLogHandler(logging.Handler):
    """Show ``datamirror`` log records on the current :class:`Terminal`.

    The terminal is looked up per record, so one installed later (each CLI
    invocation installs its own) is picked up.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            terminal = get_terminal()
            if record.levelno >= logging.ERROR:
                terminal.error(message)
            elif record.levelno >= logging.WARNING:
                terminal.warning(message)
            else:
                terminal.debug(message)
        except Exception:
            self.handleError(record)


_terminal: Optional[Terminal] = None


def get_terminal() -> Terminal:
    """Return the installed :class:`Terminal`, creating a default one if needed."""
    global _terminal
    if _terminal is None:
        _terminal = Terminal()
    return _terminal


def set_terminal(terminal: Terminal) -> None:
    global _terminal
    _terminal = terminal


def reset_terminal() -> None:
    global _terminal
    _terminal = None
