"""Reading, layering and caching notios configuration.

Each layer from ``config_layers`` is read with PyYAML; unreadable or invalid
files are logged and skipped. Environment variables form the top layer. The
merged dict is then turned into typed sections, and keymappings are parsed
against the known pages and actions, so a bad binding fails at startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar

import yaml

from notios.config.merge import merge_configs
from notios.config.paths import config_layers
from notios.config.schema import Config, LoggingConfig, ProcConfig
from notios.errors import ConfigError
from notios.keymapping.actions import DEFAULT_KEYMAPPINGS, parse_keymappings

# Logging may not be set up yet when config loads
_log = logging.getLogger("notios.config")

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "NOTIOS_LOG": ("logging", "file"),
    "NOTIOS_NPM_PATH": ("proc", "npm_path"),
}

_PROC_FIELDS: dict[str, Callable[[Any], Any]] = {
    "force_no_color": bool,
    "enable_unread_marker": bool,
    "history_always_keep_head_size": int,
    "history_cache_size": int,
    "npm_path": str,
}
_LOGGING_FIELDS: dict[str, Callable[[Any], Any]] = {
    "level": str,
    "verbose": int,
    "file": str,
}
_KNOWN_SECTIONS = frozenset({"proc", "keymappings", "logging"})

_SectionT = TypeVar("_SectionT")

_cached_config: Config | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Top-level mapping of a YAML file; {} when missing, unreadable or invalid."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        _log.warning("Ignoring %s: top level is %s, not a mapping", path, type(data).__name__)
        return {}
    return data


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Config layer built from ENV_OVERRIDES; empty values are ignored."""
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def _build_section(
    cls: Callable[..., _SectionT],
    converters: Mapping[str, Callable[[Any], Any]],
    name: str,
    raw: Any,
) -> _SectionT:
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Config section {name!r} must be a mapping")

    values: dict[str, Any] = {}
    for key, convert in converters.items():
        value = raw.get(key)
        if value is None:
            continue
        try:
            values[key] = convert(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name}.{key}: cannot use {value!r} ({e})") from e
    return cls(**values)


def dict_to_config(data: dict[str, Any]) -> Config:
    """Typed Config from a merged dict. Unknown top-level keys land in ``extra``.

    Raises:
        ConfigError: On a malformed section, an unknown keymapping page or
            action, or a key descriptor that does not parse.
    """
    # User bindings replace defaults per action
    layered = merge_configs(
        {"keymappings": DEFAULT_KEYMAPPINGS},
        {"keymappings": data.get("keymappings") or {}},
    )

    return Config(
        proc=_build_section(ProcConfig, _PROC_FIELDS, "proc", data.get("proc")),
        keymappings=parse_keymappings(layered["keymappings"]),
        logging=_build_section(LoggingConfig, _LOGGING_FIELDS, "logging", data.get("logging")),
        extra={k: v for k, v in data.items() if k not in _KNOWN_SECTIONS},
    )


def load_config(
    project_root: str | None = None,
    config_file: str | Path | None = None,
) -> Config:
    """Merge every layer into a Config.

    Lowest to highest priority: system, user, project, ``config_file``,
    environment. Only the plain global load (no project, no explicit file) is
    cached.
    """
    global _cached_config

    cacheable = project_root is None and config_file is None
    if cacheable and _cached_config is not None:
        return _cached_config

    layers: list[dict[str, Any]] = []
    for layer in config_layers(project_root, config_file):
        layer_data = load_yaml_file(layer.path)
        if layer_data:
            _log.debug("Loaded %s config from %s", layer.name, layer.path)
            layers.append(layer_data)
    layers.append(env_overrides())

    config = dict_to_config(merge_configs(*layers))
    if cacheable:
        _cached_config = config
    return config


def get_config() -> Config:
    return _cached_config if _cached_config is not None else load_config()


def reset_config() -> None:
    """Drop the cached global config."""
    global _cached_config
    _cached_config = None

