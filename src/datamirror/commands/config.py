"""``datamirror config``: inspect and edit the stored settings.

Keys are ``<section>.<field>`` paths into
:class:`~datamirror.models.GlobalConfig`, e.g. ``mirror.ttl_seconds`` or
``request.user_agent``. A value is parsed according to the type of the
current setting, and ``null`` clears an optional one such as
``mirror.cache_dir``.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from datamirror.commands import CliState, fail
from datamirror.config import global_config_path, load_global_config, save_global_config
from datamirror.exceptions import InvalidUsageError, MirrorError
from datamirror.models import GlobalConfig
from datamirror.output import get_terminal

config_app = typer.Typer(no_args_is_help=True)

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def _parse_value(raw: str, current: Any) -> Any:
    if raw.lower() == "null":
        return None
    if isinstance(current, bool):
        if raw.lower() in _TRUE:
            return True
        if raw.lower() in _FALSE:
            return False
        raise InvalidUsageError(f"Expected true or false, got: {raw}")
    if isinstance(current, (int, float)):
        try:
            return type(current)(raw)
        except ValueError:
            raise InvalidUsageError(f"Expected a number, got: {raw}") from None
    return raw


def apply_setting(config: GlobalConfig, key: str, raw: str) -> GlobalConfig:
    """Return a copy of *config* with *key* set from the string *raw*.

    Raises:
        InvalidUsageError: If *key* names no setting or the value is rejected.
    """
    section_name, _, field = key.partition(".")
    data = config.model_dump(mode="json")
    section = data.get(section_name)
    if not isinstance(section, dict) or field not in section:
        raise InvalidUsageError(f"Unknown config key: {key}")
    section[field] = _parse_value(raw, section[field])
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        reason = exc.errors()[0]["msg"]
        raise InvalidUsageError(f"Invalid value for {key}: {reason}") from None


@config_app.command("show")
def config_show() -> None:
    """Print the stored settings, with defaults for anything not stored."""
    try:
        config = load_global_config()
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().note(f"Config file: {global_config_path()}")
    get_terminal().emit(config)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting to change, e.g. mirror.ttl_seconds."),
    value: str = typer.Argument(help="New value; 'null' clears an optional setting."),
) -> None:
    """Change one setting.

    Example::

        datamirror config set mirror.ttl_seconds 600
        datamirror config set mirror.cache_dir null
    """
    try:
        save_global_config(apply_setting(load_global_config(), key, value))
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().note(f"{key} = {value}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore the default settings. Asks first unless ``--force`` is given."""
    if not CliState.of(ctx).force and not typer.confirm("Discard all stored settings?"):
        get_terminal().note("Nothing changed.")
        raise typer.Exit()
    try:
        save_global_config(GlobalConfig())
    except MirrorError as exc:
        raise fail(exc) from None
    get_terminal().note("Settings restored to defaults.")
