"""Backup manifest probing and full backup enumeration."""

import re

from .__logger__ import logger
from .constants import BACKUP_MANIFEST_NAME, LISTING_DELIM_DATA_SLASH
from .errors import NotFoundError

# Backups in a bucket root may omit the leading slash, those in a
# subdirectory carry one.
BACKUP_PATH_RE = re.compile(
    r"^/?[^/]+/[^/]+/[^/]+/" + re.escape(BACKUP_MANIFEST_NAME) + r"$"
)


def contains_manifest(store) -> bool:
    """Return whether ``store`` holds a completed backup manifest.

    Absence is reported as False; any other storage error propagates.
    """
    try:
        reader = store.read_file(BACKUP_MANIFEST_NAME)
    except NotFoundError:
        logger.debug("No %s in %r", BACKUP_MANIFEST_NAME, store)
        return False
    reader.close()
    return True


def list_full_backups_in_collection(store) -> list[str]:
    """List the subdirectories of every full backup in a collection.

    Only manifests exactly three path levels deep qualify, e.g.
    ``2024/01/02-030405.00/BACKUP_MANIFEST`` yields ``2024/01/02-030405.00``.
    """
    backup_paths = [
        name[: -len("/" + BACKUP_MANIFEST_NAME)]
        for name in store.list_all("", LISTING_DELIM_DATA_SLASH)
        if BACKUP_PATH_RE.match(name)
    ]
    logger.debug("Found %d full backups in %r", len(backup_paths), store)
    return backup_paths
