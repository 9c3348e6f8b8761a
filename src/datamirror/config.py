"""Stored settings and their precedence.

The :class:`~datamirror.models.GlobalConfig` is kept as JSON in
``$XDG_CONFIG_HOME/datamirror/config.json`` on Linux and the BSDs, and in
``~/.datamirror/config.json`` elsewhere. Cache entries are not stored here;
they go to :attr:`~datamirror.models.MirrorConfig.cache_dir` or the temp
directory.

:func:`resolve_config` layers the settings: command-line values, then
``DATAMIRROR_TTL`` / ``DATAMIRROR_CACHE_DIR``, then the file, then defaults.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from datamirror.cache.entry import CacheEntry
from datamirror.exceptions import CachePermissionError, ConfigError
from datamirror.models import GlobalConfig

APP_NAME = "datamirror"

ENV_TTL = "DATAMIRROR_TTL"
ENV_CACHE_DIR = "DATAMIRROR_CACHE_DIR"


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _user_dir(xdg_var: str, xdg_default: str, fallback: str) -> Path:
    if _is_xdg_platform():
        base = os.environ.get(xdg_var) or Path.home() / xdg_default
        path = Path(base) / APP_NAME
    else:
        path = Path.home() / f".{APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding ``config.json``; created on first use."""
    return _user_dir("XDG_CONFIG_HOME", ".config", "")


def get_data_dir() -> Path:
    """Directory for crash reports; created on first use."""
    return _user_dir("XDG_DATA_HOME", ".local/share", "logs")


def global_config_path() -> Path:
    return get_config_dir() / "config.json"


def load_global_config() -> GlobalConfig:
    """Read the stored settings; defaults when nothing is stored yet.

    Raises:
        ConfigError: If the file cannot be read or does not validate.
    """
    path = global_config_path()
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return GlobalConfig()
    except OSError as exc:
        raise ConfigError(f"Cannot read global config at {path}: {exc}") from exc
    try:
        return GlobalConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> Path:
    """Replace the stored settings with *config*, atomically.

    The file is written the way cache entries are: a private temporary file
    renamed over the old one.

    Raises:
        ConfigError: If the file cannot be written.
    """
    path = global_config_path()
    payload = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    try:
        CacheEntry(path).replace([payload.encode("utf-8")])
    except CachePermissionError as exc:
        raise ConfigError(f"Cannot save global config: {exc}") from exc
    return path


def _ttl_from_env() -> Optional[int]:
    raw = os.environ.get(ENV_TTL)
    if not raw:
        return None
    try:
        ttl = int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_TTL} must be an integer, got: {raw}") from None
    if ttl < 0:
        raise ConfigError(f"{ENV_TTL} must not be negative, got: {raw}")
    return ttl


def resolve_config(
    cli_ttl: Optional[int] = None,
    cli_cache_dir: Optional[str] = None,
) -> GlobalConfig:
    """Return the effective settings for one command.

    Args:
        cli_ttl: ``--ttl`` from the command line.
        cli_cache_dir: ``--cache-dir`` from the command line.

    Raises:
        ConfigError: If the stored file is invalid or ``DATAMIRROR_TTL`` is
            not a non-negative integer.
    """
    config = load_global_config()
    mirror = config.mirror

    env_ttl = _ttl_from_env()
    ttl = cli_ttl if cli_ttl is not None else env_ttl
    if ttl is not None:
        mirror.ttl_seconds = ttl

    cache_dir = cli_cache_dir or os.environ.get(ENV_CACHE_DIR)
    if cache_dir:
        mirror.cache_dir = cache_dir
    return config
