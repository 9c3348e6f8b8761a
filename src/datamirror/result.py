"""Two-channel result type for mirror operations.

:class:`MirrorResult` carries either a value or a
:class:`~datamirror.exceptions.MirrorError`. It exists so that a resource
whose decoded value is legitimately empty (``MirrorResult(value=None)``)
cannot be confused with a failure (``MirrorResult(error=...)``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from datamirror.exceptions import MirrorError

T = TypeVar("T")


@dataclass(frozen=True)
class MirrorResult(Generic[T]):
    """Outcome of :meth:`~datamirror.mirror.Mirror.fetch`.

    Attributes:
        value: The decoded value. Only meaningful when :attr:`ok` is true,
            and may itself be ``None``.
        error: The error that prevented a value from being produced.
    """

    value: Optional[T] = None
    error: Optional[MirrorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, default: Any) -> Any:
        """Return the value, or *default* if the operation failed."""
        if self.error is not None:
            return default
        return self.value

    @classmethod
    def success(cls, value: Optional[T]) -> MirrorResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: MirrorError) -> MirrorResult[T]:
        return cls(error=error)
