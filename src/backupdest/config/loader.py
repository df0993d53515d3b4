"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from ..__logger__ import create_logger, logger
from ..constants import FULL_BACKUP_WITH_SUBDIR_SETTING
from ..versions import parse_version
from .schema import ClusterConfig, Config, GlobalConfig, StorageConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "backupdest" / "config.toml",
    Path("/etc/backupdest/config.toml"),
]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _expect(value: Any, kind: type | tuple, name: str) -> Any:
    # bool is an int subclass
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise ConfigError(f"'{name}' must be {_kind_name(kind)}, got {value!r}")
    return value


def _kind_name(kind: type | tuple) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    level = _expect(data.get("log_level", "INFO"), str, "global.log_level").upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {level}")

    log_file = data.get("log_file")
    if log_file is not None:
        _expect(log_file, str, "global.log_file")

    return GlobalConfig(log_level=level, log_file=log_file)


def _parse_cluster(data: dict[str, Any]) -> ClusterConfig:
    """Parse cluster configuration from dict."""
    version = _expect(data.get("version", "22.1"), str, "cluster.version")
    try:
        parse_version(version)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    return ClusterConfig(
        version=version,
        full_backup_with_subdir_enabled=_expect(
            data.get("full_backup_with_subdir_enabled", False),
            bool,
            "cluster.full_backup_with_subdir_enabled",
        ),
    )


def _parse_storage(data: dict[str, Any]) -> StorageConfig:
    """Parse storage configuration from dict."""
    timeout = _expect(data.get("http_timeout", 30.0), (int, float), "storage.http_timeout")
    if timeout <= 0:
        raise ConfigError("'storage.http_timeout' must be positive")
    return StorageConfig(http_timeout=float(timeout))


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if config.cluster.full_backup_with_subdir_enabled:
        warnings.append(
            f"'{FULL_BACKUP_WITH_SUBDIR_SETTING}' is enabled; full backups into "
            "user defined subdirectories are deprecated"
        )

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    config = Config(
        global_config=_parse_global(data.get("global", {})),
        cluster=_parse_cluster(data.get("cluster", {})),
        storage=_parse_storage(data.get("storage", {})),
    )

    return config, _validate_config(config)


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# backupdest configuration

[global]
log_level = "INFO"
# log_file = "/var/log/backupdest.log"

[cluster]
version = "22.1"
# Deprecated: allow a full backup into a user named subdirectory
full_backup_with_subdir_enabled = false

[storage]
http_timeout = 30.0
"""


def configure(explicit_path: str | None = None) -> Config:
    """Load the configuration (defaults when none exists) and set up logging.

    Args:
        explicit_path: Explicitly specified config path

    Returns:
        The loaded Config
    """
    path = find_config_file(explicit_path)
    config, warnings = load_config(path) if path else (Config(), [])

    create_logger(config.global_config.log_level, config.global_config.log_file)
    for warning in warnings:
        logger.warning(warning)
    logger.debug("Configuration loaded from %s", path or "defaults")
    return config
