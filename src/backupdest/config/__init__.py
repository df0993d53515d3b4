"""Configuration system for backupdest.

This module provides TOML-based configuration loading, validation,
and schema definitions for destination resolution.
"""

from .loader import (
    ConfigError,
    configure,
    find_config_file,
    generate_example_config,
    load_config,
)
from .schema import (
    ClusterConfig,
    Config,
    GlobalConfig,
    ResolverSettings,
    StorageConfig,
)

__all__ = [
    "ClusterConfig",
    "Config",
    "GlobalConfig",
    "ResolverSettings",
    "StorageConfig",
    "configure",
    "load_config",
    "find_config_file",
    "generate_example_config",
    "ConfigError",
]
