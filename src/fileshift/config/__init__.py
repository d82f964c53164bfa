"""Configuration module for fileshift."""

from .loader import ConfigPaths, get_config_paths, init_local_config
from .settings import Settings, get_settings, load_settings, reset_settings

__all__ = [
    "ConfigPaths",
    "Settings",
    "get_config_paths",
    "get_settings",
    "init_local_config",
    "load_settings",
    "reset_settings",
]
