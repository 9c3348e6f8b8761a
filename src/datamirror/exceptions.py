"""Exception hierarchy for datamirror.

All exceptions inherit from :class:`MirrorError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`datamirror.exit_codes`.
The CLI entry point in :func:`datamirror.app.main` catches ``MirrorError``
and exits with the appropriate code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    MirrorError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- IdentityResolutionError  (exit 3)
    +-- TransportError           (exit 6)
    +-- DecodeError              (exit 7)
    +-- CachePermissionError     (exit 8)
    +-- ConfigError              (exit 1)
"""

from __future__ import annotations

from typing import Optional

from datamirror.exit_codes import (
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_IDENTITY_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_PERMISSION_ERROR,
    EXIT_TRANSPORT_ERROR,
)


class MirrorError(Exception):
    """Base exception for all datamirror errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`datamirror.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MirrorError):
    """Raised for locators that cannot be parsed or unknown decode formats."""

    exit_code = EXIT_INVALID_USAGE


class IdentityResolutionError(MirrorError):
    """Raised when the calling principal (OS user name) cannot be determined.

    The cache key is salted with the principal, so no filesystem or network
    activity happens once this is raised.
    """

    exit_code = EXIT_IDENTITY_ERROR


class TransportError(MirrorError):
    """Raised when a resource cannot be retrieved and no local copy exists.

    Covers network-level failures (DNS, TLS, connection refused, timeout) as
    well as HTTP error statuses on a first-ever fetch.

    Args:
        message: Human-readable error description.
        status_code: The HTTP status code, when the server answered at all.
    """

    exit_code = EXIT_TRANSPORT_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(MirrorError):
    """Raised when cached bytes fail to parse as the requested format.

    Distinct from a successfully decoded empty value such as JSON ``null``.
    """

    exit_code = EXIT_DECODE_ERROR


class CachePermissionError(MirrorError):
    """Raised when a cache entry cannot be written or restricted to ``0o600``.

    Named with a prefix to avoid shadowing the built-in ``PermissionError``.
    """

    exit_code = EXIT_PERMISSION_ERROR


class ConfigError(MirrorError):
    """Raised for configuration problems (invalid JSON, bad environment values)."""

    exit_code = EXIT_GENERIC_FAILURE
