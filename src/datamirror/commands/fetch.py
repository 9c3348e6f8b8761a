"""``get``, ``path``, ``key`` and ``status``: commands on a single resource.

Each command builds a :class:`~datamirror.mirror.Mirror` from
:func:`~datamirror.config.resolve_config`, with ``--ttl`` and the global
``--cache-dir`` as the highest-precedence settings.
"""

from __future__ import annotations

from typing import Optional

import typer

from datamirror.commands import CliState, fail
from datamirror.config import resolve_config
from datamirror.decoders import DataFormat
from datamirror.exceptions import MirrorError
from datamirror.mirror import Mirror
from datamirror.models import GlobalConfig
from datamirror.output import get_terminal


def create_mirror(config: GlobalConfig) -> Mirror:
    """Build the :class:`Mirror` used by CLI commands."""
    return Mirror.from_config(config)


def _open_mirror(ctx: typer.Context, ttl: Optional[int] = None) -> Mirror:
    state = CliState.of(ctx)
    return create_mirror(resolve_config(cli_ttl=ttl, cli_cache_dir=state.cache_dir))


_URL_ARGUMENT = typer.Argument(help="Absolute URL of the resource.")
_TTL_OPTION = typer.Option(
    None, "--ttl", "-t", min=0, help="Maximum age in seconds of the local copy; 0 forces a refresh."
)


def get_command(
    ctx: typer.Context,
    url: str = _URL_ARGUMENT,
    ttl: Optional[int] = _TTL_OPTION,
    fmt: DataFormat = typer.Option(
        DataFormat.RAW, "--format", "-F", help="Decode the resource before printing it."
    ),
) -> None:
    """Print a resource, refreshing the local copy first if it is stale.

    Example::

        datamirror get https://example.test/rows.csv -F csv
    """
    try:
        with _open_mirror(ctx, ttl) as mirror:
            if fmt == DataFormat.RAW:
                value = mirror.get_bytes(url)
            else:
                value = mirror.get_structured(url, fmt)
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().emit(value)


def path_command(
    ctx: typer.Context,
    url: str = _URL_ARGUMENT,
    ttl: Optional[int] = _TTL_OPTION,
) -> None:
    """Refresh the local copy if needed and print where it lives."""
    try:
        with _open_mirror(ctx, ttl) as mirror:
            path = mirror.get_local_path(url)
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().emit(path)


def key_command(ctx: typer.Context, url: str = _URL_ARGUMENT) -> None:
    """Print the cache key of a resource without any network access."""
    try:
        with _open_mirror(ctx) as mirror:
            key = mirror.cache_key_for(url)
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().emit(key)


def status_command(
    ctx: typer.Context,
    url: str = _URL_ARGUMENT,
    ttl: Optional[int] = _TTL_OPTION,
) -> None:
    """Show whether a resource is cached and still fresh, without network access."""
    try:
        with _open_mirror(ctx, ttl) as mirror:
            info = mirror.entry_info(url)
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().emit(info)
