"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

import functools
from dataclasses import dataclass, field
from typing import Optional

from ..storage import choose_storage
from ..versions import VersionGate


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        log_level: Log level name used by create_logger
        log_file: Path to log file (None for no file logging)
    """

    log_level: str = "INFO"
    log_file: Optional[str] = None


@dataclass
class ClusterConfig:
    """Cluster capabilities that influence destination resolution.

    Attributes:
        version: Active cluster version (e.g., "22.1" or "21.2-52")
        full_backup_with_subdir_enabled: Allow the deprecated full backup
            into a user named subdirectory that holds no backup yet
    """

    version: str = "22.1"
    full_backup_with_subdir_enabled: bool = False


@dataclass
class StorageConfig:
    """Storage client configuration.

    Attributes:
        http_timeout: Timeout in seconds for HTTP storage requests
    """

    http_timeout: float = 30.0


@dataclass(frozen=True)
class ResolverSettings:
    """Settings threaded into every destination resolution.

    Built once at startup and passed down explicitly.
    """

    version_gate: VersionGate = field(default_factory=VersionGate)
    full_backup_with_subdir_enabled: bool = False


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Logging settings
        cluster: Version and deprecated-behaviour settings
        storage: Storage client settings
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def version_gate(self) -> VersionGate:
        """Build the version gate for the configured cluster version."""
        return VersionGate(self.cluster.version)

    def resolver_settings(self) -> ResolverSettings:
        """Get the settings used by resolve_dest."""
        return ResolverSettings(
            version_gate=self.version_gate(),
            full_backup_with_subdir_enabled=self.cluster.full_backup_with_subdir_enabled,
        )

    def storage_factory(self):
        """Get a callable opening storage for (uri, user) with these settings."""
        return functools.partial(choose_storage, config=self.storage)
