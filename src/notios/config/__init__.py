"""notios configuration: layered YAML files plus environment overrides.

    config = load_config(project_root=".", config_file=None)
    config.proc.history_cache_size
    config.keymappings["selector"]["quit"]   # parsed key sequences

See ``notios.config.paths`` for where each layer lives.
"""

from notios.config.loader import (
    dict_to_config,
    get_config,
    load_config,
    reset_config,
)
from notios.config.paths import (
    ConfigLayer,
    config_layers,
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from notios.config.schema import Config, LoggingConfig, ProcConfig

__all__ = [
    # Main API
    "Config",
    "dict_to_config",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "LoggingConfig",
    "ProcConfig",
    # Path utilities
    "ConfigLayer",
    "config_layers",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
