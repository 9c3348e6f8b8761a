"""The cache service: refresh protocol and public read operations.

:class:`Mirror` maps a locator to a local file that is at most
``ttl_seconds`` old, refreshing it with a conditional GET when needed::

    with Mirror(MirrorConfig(ttl_seconds=60)) as mirror:
        path = mirror.get_local_path("https://example.test/data.json")
        data = mirror.get_json("https://example.test/data.json")

Refresh protocol (:meth:`Mirror.ensure_fresh`):

1. Derive the entry path from the principal and canonical locator.
2. Return it untouched if the entry is fresh.
3. Otherwise send a GET, with ``If-Modified-Since`` taken from the
   entry's mtime when a local copy exists.
4. On 2xx, replace the entry atomically with the body.
5. On 2xx or 304, stamp the entry with the latest of ``Expires``, its
   previous mtime and now.
6. On status >= 400 or a network failure, log a warning and keep the
   existing copy (if any) with its timestamp unchanged.
7. Restrict the entry to ``0o600`` and return its path, or raise
   :class:`~datamirror.exceptions.TransportError` if there is none.

Module-level functions (:func:`mirror_file`, :func:`mirror_json`, ...) run
against a process-wide default instance managed by :func:`get_mirror`,
:func:`set_mirror` and :func:`reset_mirror`.
"""

from __future__ import annotations

import logging
import platform
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Callable, Mapping, Optional

import httpx

from datamirror import __version__
from datamirror.cache.entry import CacheEntry
from datamirror.cache.freshness import (
    http_date,
    is_stale,
    next_freshness_timestamp,
    parse_expires,
)
from datamirror.cache.keys import Locator, canonicalize_locator, derive_key, entry_path
from datamirror.decoders import DataFormat, Decoder, csv_decoder, get_decoder
from datamirror.exceptions import DecodeError, MirrorError, TransportError
from datamirror.identity import PrincipalProvider, current_principal, resolve_principal
from datamirror.models import CSVConfig, EntryInfo, GlobalConfig, MirrorConfig, RequestConfig
from datamirror.result import MirrorResult

logger = logging.getLogger(__name__)


def default_user_agent() -> str:
    """Return the ``User-Agent`` sent when none is configured."""
    return (
        f"datamirror/{__version__} httpx/{httpx.__version__} "
        f"Python/{platform.python_version()}"
    )


class Mirror:
    """Filesystem-backed cache of remote resources.

    The instance holds only configuration and a lazily created
    :class:`httpx.Client`; all cache state lives on disk so independent
    processes of the same user share entries.

    Args:
        config: Cache settings (TTL, namespace, directory, validators).
        request: Settings for the HTTP client built when *client* is not
            given.
        client: A pre-configured :class:`httpx.Client` to use for refreshes
            (credentials, proxies, transports). It is not closed by
            :meth:`close`.
        principal: Provider of the current user's name, used to salt keys.
        decoders: Per-format decoder overrides.
        csv: CSV dialect for the default CSV decoder.
        clock: Source of the current POSIX time.
    """

    def __init__(
        self,
        config: Optional[MirrorConfig] = None,
        request: Optional[RequestConfig] = None,
        client: Optional[httpx.Client] = None,
        principal: PrincipalProvider = current_principal,
        decoders: Optional[Mapping[DataFormat, Decoder]] = None,
        csv: Optional[CSVConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or MirrorConfig()
        self._request = request or RequestConfig()
        self._client = client
        self._owns_client = client is None
        self._principal = principal
        self._clock = clock
        self._decoders: dict[DataFormat, Decoder] = {
            DataFormat.CSV: csv_decoder(csv or CSVConfig()),
        }
        self._decoders.update(decoders or {})

    @classmethod
    def from_config(cls, config: GlobalConfig, **kwargs: Any) -> Mirror:
        """Build a mirror from a :class:`~datamirror.models.GlobalConfig`."""
        return cls(config=config.mirror, request=config.request, csv=config.csv, **kwargs)

    @property
    def config(self) -> MirrorConfig:
        return self._config

    @property
    def client(self) -> httpx.Client:
        """The shared HTTP client, created on first use."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Mirror:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this mirror created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def cache_key_for(self, locator: Locator) -> str:
        """Return the cache key for *locator* (pure; no I/O besides identity)."""
        return derive_key(locator, resolve_principal(self._principal))

    def local_path_for(self, locator: Locator) -> Path:
        """Return where the entry for *locator* lives, whether or not it exists."""
        return entry_path(
            self.cache_key_for(locator),
            directory=self._config.cache_dir,
            namespace=self._config.namespace,
        )

    def is_cached(self, locator: Locator) -> bool:
        """Return ``True`` if a local copy of *locator* exists."""
        return CacheEntry(self.local_path_for(locator)).exists()

    def is_stale(self, locator: Locator, ttl: Optional[float] = None) -> bool:
        """Return ``True`` if *locator* has no local copy or it is older than *ttl*."""
        return is_stale(self.local_path_for(locator), self._ttl(ttl), now=self._clock())

    def entry_info(self, locator: Locator, ttl: Optional[float] = None) -> EntryInfo:
        """Describe the local entry for *locator* without touching the network."""
        canonical = canonicalize_locator(locator)
        key = self.cache_key_for(canonical)
        entry = CacheEntry(
            entry_path(key, directory=self._config.cache_dir, namespace=self._config.namespace)
        )
        mtime = entry.mtime()
        return EntryInfo(
            locator=canonical,
            key=key,
            path=str(entry.path),
            cached=mtime is not None,
            stale=is_stale(entry.path, self._ttl(ttl), now=self._clock()),
            size=entry.size(),
            modified=(
                datetime.fromtimestamp(mtime, tz=timezone.utc) if mtime is not None else None
            ),
        )

    # ------------------------------------------------------------------ #
    # Refresh protocol
    # ------------------------------------------------------------------ #

    def ensure_fresh(self, locator: Locator, ttl: Optional[float] = None) -> Path:
        """Return the path of a local copy of *locator* no older than *ttl*.

        Args:
            locator: URL of the resource.
            ttl: Time-to-live in seconds; ``None`` uses
                :attr:`MirrorConfig.ttl_seconds`. Zero forces a refresh.

        Returns:
            The path of the (possibly stale, if the refresh failed) local
            copy.

        Raises:
            IdentityResolutionError: If the principal cannot be resolved.
            InvalidUsageError: If *locator* is not an absolute URL.
            TransportError: If there is no local copy after the attempt.
            CachePermissionError: If the entry cannot be inspected, written or
                restricted.
        """
        ttl_seconds = self._ttl(ttl)
        canonical = canonicalize_locator(locator)
        entry = CacheEntry(self.local_path_for(canonical))

        now = self._clock()
        if not is_stale(entry.path, ttl_seconds, now=now):
            logger.debug("Cache hit for %s at %s", canonical, entry.path)
            return entry.path

        # Read before any write so the ratchet never uses its own output.
        previous_mtime = entry.mtime()
        headers: dict[str, str] = {}
        if previous_mtime is not None and self._config.send_validators:
            headers["If-Modified-Since"] = http_date(min(previous_mtime, now))

        status: Optional[int] = None
        try:
            status = self._refresh(canonical, entry, headers, previous_mtime)
        except httpx.RequestError as exc:
            if not entry.exists():
                raise TransportError(f"Cannot retrieve {canonical}: {exc}") from exc
            logger.warning("Cannot refresh %s, keeping local copy: %s", canonical, exc)

        if not entry.exists():
            detail = f": HTTP {status}" if status is not None else ""
            raise TransportError(f"Cannot retrieve {canonical}{detail}", status_code=status)

        entry.restrict_permissions()
        return entry.path

    get_local_path = ensure_fresh

    def _refresh(
        self,
        url: str,
        entry: CacheEntry,
        headers: dict[str, str],
        previous_mtime: Optional[float],
    ) -> int:
        """Send the conditional GET and update *entry*. Returns the status code."""
        logger.debug("Refreshing %s (%s)", url, headers or "unconditional")
        with self.client.stream("GET", url, headers=headers) as response:
            status = response.status_code
            if response.is_success:
                size = entry.replace(response.iter_bytes())
                logger.debug("Stored %d bytes from %s", size, url)
            elif status == httpx.codes.NOT_MODIFIED:
                logger.debug("%s not modified", url)
            elif status >= 400:
                logger.warning("Cannot refresh %s: HTTP %d %s", url, status, response.reason_phrase)
                return status
            else:
                logger.debug("Ignoring HTTP %d for %s", status, url)
                return status
            expires = parse_expires(response.headers.get("Expires"))

        timestamp = next_freshness_timestamp(previous_mtime, expires, self._clock())
        entry.stamp(timestamp)
        return status

    # ------------------------------------------------------------------ #
    # Readers
    # ------------------------------------------------------------------ #

    def get_bytes(self, locator: Locator, ttl: Optional[float] = None) -> bytes:
        """Return the raw bytes of *locator*."""
        return CacheEntry(self.ensure_fresh(locator, ttl)).read_bytes()

    def get_text(self, locator: Locator, ttl: Optional[float] = None) -> str:
        """Return *locator* decoded as UTF-8 text."""
        return self.get_structured(locator, DataFormat.TEXT, ttl)

    def get_reader(self, locator: Locator, ttl: Optional[float] = None) -> IO[str]:
        """Return an open UTF-8 text handle on the local copy. The caller closes it."""
        return CacheEntry(self.ensure_fresh(locator, ttl)).open_text()

    def get_structured(
        self,
        locator: Locator,
        fmt: str | DataFormat,
        ttl: Optional[float] = None,
    ) -> Any:
        """Return *locator* decoded as *fmt*.

        Raises:
            InvalidUsageError: If *fmt* is unknown (before any network access).
            DecodeError: If the bytes do not parse as *fmt*.
        """
        decoder = get_decoder(fmt, self._decoders)
        data = self.get_bytes(locator, ttl)
        try:
            return decoder(data)
        except DecodeError:
            raise
        except Exception as exc:
            raise DecodeError(f"Cannot decode {locator} as {fmt}: {exc}") from exc

    def get_json(self, locator: Locator, ttl: Optional[float] = None) -> Any:
        return self.get_structured(locator, DataFormat.JSON, ttl)

    def get_yaml(self, locator: Locator, ttl: Optional[float] = None) -> Any:
        return self.get_structured(locator, DataFormat.YAML, ttl)

    def get_xml(self, locator: Locator, ttl: Optional[float] = None) -> Any:
        return self.get_structured(locator, DataFormat.XML, ttl)

    def get_csv(self, locator: Locator, ttl: Optional[float] = None) -> list[list[str]]:
        return self.get_structured(locator, DataFormat.CSV, ttl)

    def fetch(
        self,
        locator: Locator,
        fmt: str | DataFormat = DataFormat.RAW,
        ttl: Optional[float] = None,
    ) -> MirrorResult[Any]:
        """Like :meth:`get_structured`, but report failures in the result.

        Only :class:`~datamirror.exceptions.MirrorError` is captured; a
        decoded value of ``None`` comes back as a successful result.
        """
        try:
            return MirrorResult.success(self.get_structured(locator, fmt, ttl))
        except MirrorError as exc:
            logger.debug("Fetch of %s as %s failed: %s", locator, fmt, exc)
            return MirrorResult.failure(exc)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ttl(self, ttl: Optional[float]) -> float:
        return self._config.ttl_seconds if ttl is None else ttl

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=self._request.follow_redirects,
            headers={"User-Agent": self._request.user_agent or default_user_agent()},
        )


# ------------------------------------------------------------------ #
# Process-wide default instance
# ------------------------------------------------------------------ #

_mirror: Optional[Mirror] = None


def get_mirror() -> Mirror:
    """Return the process-wide :class:`Mirror`, creating a default one lazily."""
    global _mirror
    if _mirror is None:
        _mirror = Mirror()
    return _mirror


def set_mirror(mirror: Mirror) -> None:
    """Install *mirror* as the process-wide default instance."""
    global _mirror
    _mirror = mirror


def reset_mirror() -> None:
    """Close and forget the process-wide instance (mainly for tests)."""
    global _mirror
    if _mirror is not None:
        _mirror.close()
    _mirror = None


# ------------------------------------------------------------------ #
# Convenience functions that use the default instance
# ------------------------------------------------------------------ #


def mirror_file(url: Locator, ttl: Optional[float] = None) -> Path:
    """Return the local path of *url* via the default mirror."""
    return get_mirror().ensure_fresh(url, ttl)


def mirror_str(url: Locator, ttl: Optional[float] = None) -> str:
    """Return *url* as text via the default mirror."""
    return get_mirror().get_text(url, ttl)


def mirror_fh(url: Locator, ttl: Optional[float] = None) -> IO[str]:
    """Return an open text handle on *url* via the default mirror."""
    return get_mirror().get_reader(url, ttl)


def mirror_json(url: Locator, ttl: Optional[float] = None) -> Any:
    return get_mirror().get_json(url, ttl)


def mirror_yaml(url: Locator, ttl: Optional[float] = None) -> Any:
    return get_mirror().get_yaml(url, ttl)


def mirror_xml(url: Locator, ttl: Optional[float] = None) -> Any:
    return get_mirror().get_xml(url, ttl)


def mirror_csv(url: Locator, ttl: Optional[float] = None) -> list[list[str]]:
    return get_mirror().get_csv(url, ttl)


def filename(url: Locator) -> Path:
    """Return the local path the default mirror uses for *url*."""
    return get_mirror().local_path_for(url)


def mirrored(url: Locator) -> bool:
    """Return ``True`` if a local copy of *url* exists."""
    return get_mirror().is_cached(url)


def stale(url: Locator, ttl: Optional[float] = None) -> bool:
    """Return ``True`` if *url* has no local copy or it is older than *ttl*."""
    return get_mirror().is_stale(url, ttl)
