"""On-disk cache entries.

Each entry is a single file whose bytes are the last fetched body and whose
modification time is the freshness timestamp. Content is only ever replaced
as a whole: the new body is streamed into a temporary file in the same
directory, synced, restricted to ``0o600`` and then renamed over the entry
with :func:`os.replace`. Concurrent readers therefore see either the old or
the new file, never a partial one, and the last writer wins.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import IO, Iterable, Optional

from datamirror.cache.freshness import entry_mtime, entry_stat
from datamirror.exceptions import CachePermissionError

ENTRY_MODE = 0o600


class CacheEntry:
    """Handle on a single cache file.

    The object holds no state besides the path; every query goes to the
    filesystem so that several processes can share the entry.

    Args:
        path: Location of the entry, usually from
            :func:`~datamirror.cache.keys.entry_path`.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """The filesystem path of this entry."""
        return self._path

    def exists(self) -> bool:
        st = entry_stat(self._path)
        return st is not None and stat.S_ISREG(st.st_mode)

    def mtime(self) -> Optional[float]:
        """Modification time, or ``None`` if the entry does not exist."""
        return entry_mtime(self._path)

    def size(self) -> Optional[int]:
        st = entry_stat(self._path)
        return None if st is None else st.st_size

    def read_bytes(self) -> bytes:
        try:
            return self._path.read_bytes()
        except OSError as exc:
            raise CachePermissionError(f"Cannot read cache entry {self._path}: {exc}") from exc

    def open_text(self, encoding: str = "utf-8") -> IO[str]:
        """Open the entry for reading as text. The caller closes the handle."""
        try:
            return open(self._path, "r", encoding=encoding, newline="")
        except OSError as exc:
            raise CachePermissionError(f"Cannot read cache entry {self._path}: {exc}") from exc

    def replace(self, chunks: Iterable[bytes]) -> int:
        """Atomically replace the entry's content with *chunks*.

        Args:
            chunks: Byte strings written in order, typically from
                :meth:`httpx.Response.iter_bytes`.

        Returns:
            The number of bytes written.

        Raises:
            CachePermissionError: If the directory is not writable or the
                rename fails.
            Exception: Anything raised while iterating *chunks* propagates
                after the temporary file is removed.
        """
        fd = None
        tmp_path: Optional[str] = None
        written = 0
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            )
            tmp_path = fd.name
            os.chmod(tmp_path, ENTRY_MODE)
            for chunk in chunks:
                fd.write(chunk)
                written += len(chunk)
            fd.flush()
            os.fsync(fd.fileno())
            fd.close()
            fd = None
            os.replace(tmp_path, self._path)
            tmp_path = None
        except OSError as exc:
            raise CachePermissionError(f"Cannot write cache entry {self._path}: {exc}") from exc
        finally:
            if fd is not None:
                fd.close()
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
        return written

    def stamp(self, timestamp: float) -> bool:
        """Set both access and modification time to *timestamp*.

        Returns:
            ``False`` if the entry vanished before it could be stamped.

        Raises:
            CachePermissionError: If the timestamps cannot be changed.
        """
        try:
            os.utime(self._path, (timestamp, timestamp))
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CachePermissionError(f"Cannot update timestamp of {self._path}: {exc}") from exc
        return True

    def restrict_permissions(self) -> None:
        """Make the entry readable and writable by its owner only.

        Raises:
            CachePermissionError: If ``chmod`` fails.
        """
        try:
            os.chmod(self._path, ENTRY_MODE)
        except OSError as exc:
            raise CachePermissionError(f"Cannot restrict permissions of {self._path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"CacheEntry({str(self._path)!r})"
