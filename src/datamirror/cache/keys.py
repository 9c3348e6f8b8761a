"""Cache key derivation and entry naming.

A cache key is the SHA-256 hex digest of ``PRINCIPAL:CANONICAL_LOCATOR``.
Salting with the principal keeps users on a shared machine from reading
each other's entries by name; canonicalising the locator makes equivalent
URLs (``HTTP://Example.test`` and ``http://example.test/``) share an entry.

Entries live in a single flat directory (the platform temp dir unless
configured otherwise) and are named ``<namespace>.<key>.dat``.
"""

from __future__ import annotations

import hashlib
import re
import string
import tempfile
from pathlib import Path
from typing import Optional, Union

import httpx

from datamirror.exceptions import InvalidUsageError
from datamirror.models import DEFAULT_NAMESPACE

Locator = Union[str, httpx.URL]

KEY_SEPARATOR = ":"
ENTRY_SUFFIX = "dat"

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_PERCENT_ESCAPE = re.compile(r"%([0-9A-Fa-f]{2})")
_UNRESERVED = frozenset(string.ascii_letters + string.digits + "-._~")


def canonicalize_locator(locator: Locator) -> str:
    """Return the canonical string form of *locator*.

    Normalisation applied:

    * scheme and host are lower-cased;
    * the scheme's default port is dropped;
    * an empty path becomes ``/`` and ``.``/``..`` segments are resolved;
    * percent-escapes use upper-case hex, and escaped unreserved
      characters are decoded;
    * the fragment is dropped (it is never sent to the server).

    Args:
        locator: A URL string or :class:`httpx.URL`.

    Returns:
        The canonical URL string.

    Raises:
        InvalidUsageError: If the locator cannot be parsed or lacks a
            scheme or host.
    """
    try:
        url = locator if isinstance(locator, httpx.URL) else httpx.URL(str(locator).strip())
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidUsageError(f"Invalid locator {locator!r}: {exc}") from exc

    scheme = url.scheme.lower()
    host = url.raw_host.decode("ascii").lower()
    if not scheme or not host:
        raise InvalidUsageError(f"Locator must be an absolute URL with a host: {locator!r}")

    if ":" in host:
        host = f"[{host}]"

    authority = host
    port = url.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        authority = f"{host}:{port}"
    if url.userinfo:
        authority = f"{url.userinfo.decode('ascii')}@{authority}"

    raw_path = url.raw_path.decode("ascii")
    path, _, query = raw_path.partition("?")
    path = _remove_dot_segments(_normalize_escapes(path))

    canonical = f"{scheme}://{authority}{path}"
    if query:
        canonical += "?" + _normalize_escapes(query)
    return canonical


def derive_key(locator: Locator, principal: str) -> str:
    """Derive the cache key for *locator* on behalf of *principal*.

    Args:
        locator: A URL string or :class:`httpx.URL`.
        principal: Name of the OS user the entry belongs to.

    Returns:
        A 64-character lower-case hex digest.
    """
    raw = KEY_SEPARATOR.join([principal, canonicalize_locator(locator)])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def entry_path(
    key: str,
    directory: Optional[str | Path] = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> Path:
    """Return the on-disk location of the entry named by *key*.

    Args:
        key: Cache key from :func:`derive_key`.
        directory: Directory holding entries. Defaults to
            :func:`tempfile.gettempdir`.
        namespace: File name prefix.
    """
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    return base / ".".join([namespace, key, ENTRY_SUFFIX])


def _remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments (RFC 3986 section 5.2.4)."""
    if not path:
        return "/"
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        if segment == "..":
            # Never pop the leading empty segment of an absolute path.
            if len(output) > 1:
                output.pop()
            continue
        output.append(segment)
    result = "/".join(output)
    if path.endswith(("/.", "/..")):
        result += "/"
    if not result.startswith("/"):
        result = "/" + result
    return result


def _normalize_escapes(text: str) -> str:
    def _replace(match: re.Match[str]) -> str:
        char = chr(int(match.group(1), 16))
        if char in _UNRESERVED:
            return char
        return "%" + match.group(1).upper()

    return _PERCENT_ESCAPE.sub(_replace, text)
