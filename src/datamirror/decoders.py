"""Decoders that turn cached bytes into structured values.

Every decoder is a pure function ``bytes -> value`` that raises
:class:`~datamirror.exceptions.DecodeError` on malformed input. A decoder
never touches the network or the cache; it runs only after
:meth:`~datamirror.mirror.Mirror.ensure_fresh` has produced current bytes.

Some formats have a legitimate empty value: a JSON body of ``null`` or a
YAML document of ``~`` decodes to ``None`` *without* raising, so callers can
tell an empty resource apart from a broken one.
"""

from __future__ import annotations

import csv
import enum
import io
import json
import xml.etree.ElementTree as ET
from functools import partial
from typing import Any, Callable, Mapping, Optional

import yaml

from datamirror.exceptions import DecodeError, InvalidUsageError
from datamirror.models import CSVConfig

Decoder = Callable[[bytes], Any]


class DataFormat(str, enum.Enum):
    """Formats understood by :func:`get_decoder`."""

    RAW = "raw"
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"
    XML = "xml"
    CSV = "csv"


def decode_raw(data: bytes) -> bytes:
    return data


def decode_text(data: bytes, encoding: str = "utf-8") -> str:
    """Decode *data* as text (UTF-8 by default)."""
    try:
        return data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise DecodeError(f"Resource is not valid {encoding} text: {exc}") from exc


def decode_json(data: bytes) -> Any:
    """Decode a JSON document. A body of ``null`` yields ``None``."""
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Resource is not valid JSON: {exc}") from exc


def decode_yaml(data: bytes) -> Any:
    """Decode a YAML document with :func:`yaml.safe_load`.

    A document of ``~``, ``null`` or nothing at all yields ``None``.
    """
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise DecodeError(f"Resource is not valid YAML: {exc}") from exc


def decode_xml(data: bytes) -> ET.Element:
    """Parse an XML document and return its root element."""
    try:
        return ET.fromstring(data)
    except ET.ParseError as exc:
        raise DecodeError(f"Resource is not well-formed XML: {exc}") from exc


def decode_csv(data: bytes, delimiter: str = ",", quotechar: str = '"') -> list[list[str]]:
    """Parse CSV into a list of rows, each a list of cell strings.

    Args:
        data: UTF-8 encoded CSV (a leading BOM is ignored).
        delimiter: Field separator.
        quotechar: Quote character.
    """
    text = decode_text(data, "utf-8-sig")
    reader = csv.reader(
        io.StringIO(text, newline=""),
        delimiter=delimiter,
        quotechar=quotechar,
        strict=True,
    )
    try:
        return [row for row in reader]
    except csv.Error as exc:
        raise DecodeError(f"Resource is not valid CSV (line {reader.line_num}): {exc}") from exc


DEFAULT_DECODERS: dict[DataFormat, Decoder] = {
    DataFormat.RAW: decode_raw,
    DataFormat.TEXT: decode_text,
    DataFormat.JSON: decode_json,
    DataFormat.YAML: decode_yaml,
    DataFormat.XML: decode_xml,
    DataFormat.CSV: decode_csv,
}


def csv_decoder(config: CSVConfig) -> Decoder:
    """Build a CSV decoder bound to the dialect in *config*."""
    return partial(decode_csv, delimiter=config.delimiter, quotechar=config.quotechar)


def parse_format(value: str | DataFormat) -> DataFormat:
    """Coerce a format name (case-insensitive) to :class:`DataFormat`.

    Raises:
        InvalidUsageError: For unknown names.
    """
    if isinstance(value, DataFormat):
        return value
    try:
        return DataFormat(value.lower())
    except ValueError:
        choices = ", ".join(f.value for f in DataFormat)
        raise InvalidUsageError(f"Unknown format '{value}' (choose from: {choices})") from None


def get_decoder(
    fmt: str | DataFormat,
    overrides: Optional[Mapping[DataFormat, Decoder]] = None,
) -> Decoder:
    """Return the decoder for *fmt*, preferring entries in *overrides*."""
    key = parse_format(fmt)
    if overrides and key in overrides:
        return overrides[key]
    return DEFAULT_DECODERS[key]
