"""Where configuration files live.

Layers, lowest priority first:

    system   /etc/notios/config.yaml           %PROGRAMDATA%\\notios\\config.yaml
    user     $XDG_CONFIG_HOME/notios/...        %APPDATA%\\notios\\config.yaml
             ~/.config/notios/... or ~/.notios/...
    project  <project>/.notios/config.yaml
    explicit --config FILE
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "notios"
PROJECT_DIR = ".notios"


@dataclass(frozen=True)
class ConfigLayer:
    """One config file in the cascade; the file need not exist."""

    name: str
    path: Path


def _windows_dir(env_var: str) -> Path | None:
    root = os.environ.get(env_var)
    return Path(root) / APP_NAME if root else None


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        directory = _windows_dir("PROGRAMDATA")
    else:
        directory = Path("/etc") / APP_NAME
    return directory / CONFIG_FILENAME if directory else None


def get_user_config_path() -> Path | None:
    """User config, following XDG where it is in use."""
    if sys.platform == "win32":
        directory = _windows_dir("APPDATA")
        return directory / CONFIG_FILENAME if directory else None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME
    dot_config = Path.home() / ".config"
    if dot_config.exists():
        return dot_config / APP_NAME / CONFIG_FILENAME
    return Path.home() / PROJECT_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / PROJECT_DIR / CONFIG_FILENAME


def config_layers(
    project_root: str | None = None,
    config_file: str | Path | None = None,
) -> list[ConfigLayer]:
    """Config files in merge order; later layers win."""
    candidates = [
        ("system", get_system_config_path()),
        ("user", get_user_config_path()),
        ("project", get_project_config_path(project_root) if project_root else None),
        ("explicit", Path(config_file) if config_file is not None else None),
    ]
    return [ConfigLayer(name, path) for name, path in candidates if path is not None]


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """System, user and project paths, lowest priority first."""
    return [layer.path for layer in config_layers(project_root)]
