"""Freshness decisions for cache entries.

An entry's filesystem modification time doubles as its *freshness
timestamp*: the instant it was last known to be good. The entry is fresh
while ``mtime > now - ttl``. After every successful or not-modified refresh
the timestamp is ratcheted forward with :func:`next_freshness_timestamp`,
so it never moves backward for a given entry.
"""

from __future__ import annotations

import os
import time
from datetime import timezone
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Optional

from datamirror.exceptions import CachePermissionError


def entry_stat(path: Path) -> Optional[os.stat_result]:
    """Return the ``os.stat`` result for *path*, or ``None`` if there is no entry.

    Raises:
        CachePermissionError: If the entry cannot be inspected, for example
            because the cache directory is not searchable or is a file.
    """
    try:
        return os.stat(path)
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise CachePermissionError(f"Cannot inspect cache entry {path}: {exc}") from exc


def entry_mtime(path: Path) -> Optional[float]:
    """Return the modification time of *path*, or ``None`` if it does not exist."""
    st = entry_stat(path)
    return None if st is None else st.st_mtime


def is_stale(path: Path, ttl_seconds: float, now: Optional[float] = None) -> bool:
    """Return ``True`` if the entry at *path* must be refreshed.

    A missing entry is always stale. An existing entry is stale when its
    modification time is not strictly newer than ``now - ttl_seconds``, so a
    TTL of zero forces a refresh unless the timestamp lies in the future.

    Args:
        path: Location of the cache entry.
        ttl_seconds: Time-to-live in seconds.
        now: Current POSIX time; defaults to :func:`time.time`.
    """
    mtime = entry_mtime(path)
    if mtime is None:
        return True
    if now is None:
        now = time.time()
    return not mtime > now - ttl_seconds


def parse_expires(value: Optional[str]) -> Optional[float]:
    """Parse an ``Expires`` header into a POSIX timestamp.

    Invalid dates (including the common ``Expires: 0``) yield ``None`` and
    the caller falls back to the current time.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def next_freshness_timestamp(
    previous_mtime: Optional[float],
    expires: Optional[float],
    now: Optional[float] = None,
) -> float:
    """Compute the timestamp to stamp onto an entry after a refresh.

    The result is the latest of the server-provided expiry, the entry's
    modification time read before the refresh, and the current time.

    Args:
        previous_mtime: mtime of the entry before the refresh wrote to it.
        expires: Expiry instant from the response, if any.
        now: Current POSIX time; defaults to :func:`time.time`.
    """
    if now is None:
        now = time.time()
    candidates = [now]
    if previous_mtime is not None:
        candidates.append(previous_mtime)
    if expires is not None:
        candidates.append(expires)
    return max(candidates)


def http_date(timestamp: float) -> str:
    """Format *timestamp* as an IMF-fixdate (``Sun, 06 Nov 1994 08:49:37 GMT``)."""
    return formatdate(timestamp, usegmt=True)
