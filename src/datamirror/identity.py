"""Resolution of the calling principal used to salt cache keys.

A *principal provider* is any zero-argument callable returning the name of
the operating-system user on whose behalf the cache is used.
:func:`current_principal` is the default; :class:`StaticPrincipal` pins a
name, which is mainly useful in tests and for services that run on behalf of
a fixed account.
"""

from __future__ import annotations

import getpass
from typing import Callable

from datamirror.exceptions import IdentityResolutionError

PrincipalProvider = Callable[[], str]


def current_principal() -> str:
    """Return the login name of the current user.

    Uses :func:`getpass.getuser`, which consults ``LOGNAME``, ``USER``,
    ``LNAME`` and ``USERNAME`` before falling back to the password database.

    Raises:
        IdentityResolutionError: If no user name can be determined.
    """
    try:
        name = getpass.getuser()
    except (OSError, KeyError, ImportError) as exc:
        raise IdentityResolutionError(f"Cannot determine the current user: {exc}") from exc
    if not name:
        raise IdentityResolutionError("Cannot determine the current user: empty login name")
    return name


class StaticPrincipal:
    """Principal provider that always returns the same name.

    Args:
        name: The principal name. Must be non-empty.
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise IdentityResolutionError("Principal name must not be empty")
        self._name = name

    def __call__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"StaticPrincipal({self._name!r})"


def resolve_principal(provider: PrincipalProvider) -> str:
    """Call *provider* and validate its answer.

    Any exception other than :class:`IdentityResolutionError` raised by a
    custom provider is wrapped so callers only need to handle one type.
    """
    try:
        name = provider()
    except IdentityResolutionError:
        raise
    except Exception as exc:
        raise IdentityResolutionError(f"Principal provider failed: {exc}") from exc
    if not isinstance(name, str) or not name:
        raise IdentityResolutionError("Principal provider returned no name")
    return name
