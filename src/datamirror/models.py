"""Canonical Pydantic models shared across all datamirror modules.

These are the configuration models serialised as JSON in the user's config
directory and handed to :class:`~datamirror.mirror.Mirror` at construction:
:class:`MirrorConfig`, :class:`RequestConfig`, :class:`CSVConfig` and the
top-level :class:`GlobalConfig`.

:class:`EntryInfo` is the read-only snapshot of a cache entry returned by
:meth:`~datamirror.mirror.Mirror.entry_info`.

All models use Pydantic v2.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


DEFAULT_TTL_SECONDS = 300
DEFAULT_NAMESPACE = "datamirror"


class MirrorConfig(BaseModel):
    """Cache behaviour: time-to-live, file naming and conditional requests."""

    ttl_seconds: int = Field(
        default=DEFAULT_TTL_SECONDS,
        ge=0,
        description="Seconds a local copy is served without contacting the network",
    )
    namespace: str = Field(
        default=DEFAULT_NAMESPACE,
        min_length=1,
        description="Prefix of cache file names (<namespace>.<digest>.dat)",
    )
    cache_dir: Optional[str] = Field(
        default=None,
        description="Directory holding cache files; defaults to the platform temp dir",
    )
    send_validators: bool = Field(
        default=True,
        description="Send If-Modified-Since derived from the local copy's mtime",
    )


class RequestConfig(BaseModel):
    """Settings for the shared :class:`httpx.Client` used to refresh entries."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")
    user_agent: Optional[str] = Field(
        default=None, description="User-Agent header; a descriptive default is built when unset"
    )


class CSVConfig(BaseModel):
    """Dialect options for the CSV decoder."""

    delimiter: str = Field(default=",", min_length=1, max_length=1)
    quotechar: str = Field(default='"', min_length=1, max_length=1)


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/datamirror/config.json``.

    Loaded and saved by :func:`~datamirror.config.load_global_config` and
    :func:`~datamirror.config.save_global_config`. See
    :func:`~datamirror.config.resolve_config` for the precedence chain.
    """

    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    csv: CSVConfig = Field(default_factory=CSVConfig)


class EntryInfo(BaseModel):
    """Snapshot of a cache entry as seen on disk."""

    locator: str
    key: str
    path: str
    cached: bool
    stale: bool
    size: Optional[int] = None
    modified: Optional[datetime] = None
