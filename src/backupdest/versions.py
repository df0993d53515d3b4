"""Cluster version gates consulted while resolving destinations.

Nodes of a mixed-version deployment may still read the legacy latest
pointer only, so behaviour that older nodes cannot understand is gated on
the active cluster version.
"""

import re
from enum import Enum

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)(?:-(\d+))?$")


def parse_version(value: str) -> tuple[int, int, int]:
    """Parse ``MAJOR.MINOR`` or ``MAJOR.MINOR-INTERNAL`` into a comparable tuple."""
    match = _VERSION_RE.match(value.strip())
    if not match:
        raise ValueError(f"invalid cluster version {value!r}")
    major, minor, internal = match.groups()
    return int(major), int(minor), int(internal or 0)


class ClusterVersion(Enum):
    """Versions that gate backup destination behaviour."""

    # Latest pointers are written once into the history directory.
    BACKUP_DOES_NOT_OVERWRITE_LATEST_AND_CHECKPOINT = (21, 2, 52)
    # Full backups may no longer land on an existing backup.
    START_22_1 = (22, 1, 0)


class VersionGate:
    """Answers whether a cluster version is active."""

    def __init__(self, active="22.1") -> None:
        if isinstance(active, str):
            active = parse_version(active)
        self.active = tuple(active)

    def is_active(self, version: ClusterVersion) -> bool:
        return self.active >= version.value

    def __repr__(self) -> str:
        major, minor, internal = self.active
        suffix = f"-{internal}" if internal else ""
        return f"VersionGate({major}.{minor}{suffix})"
