"""Filesystem cache primitives for datamirror.

This package holds the pieces the refresh protocol in
:class:`~datamirror.mirror.Mirror` is built from:

* :mod:`datamirror.cache.keys` -- locator canonicalisation and key/path
  derivation.
* :mod:`datamirror.cache.freshness` -- staleness checks and the freshness
  timestamp ratchet.
* :mod:`datamirror.cache.entry` -- :class:`CacheEntry`, atomic whole-file
  replacement and ``0o600`` permissions.
"""

from datamirror.cache.entry import CacheEntry
from datamirror.cache.freshness import is_stale, next_freshness_timestamp, parse_expires
from datamirror.cache.keys import canonicalize_locator, derive_key, entry_path

__all__ = [
    "CacheEntry",
    "canonicalize_locator",
    "derive_key",
    "entry_path",
    "is_stale",
    "next_freshness_timestamp",
    "parse_expires",
]
