"""Incremental backup layers of a backup chain.

Incremental layers live in date-based folders (``20240102/030405.00``)
either under ``<collection>/incrementals/<subdir>`` or, for backups taken
by older releases, inside the full backup's own directory.
"""

import re

from . import append_paths
from .__logger__ import logger
from .constants import (
    BACKUP_MANIFEST_NAME,
    BACKUP_OLD_MANIFEST_NAME,
    DEFAULT_INCREMENTALS_SUBDIR,
    LISTING_DELIM_DATA_SLASH,
)
from .errors import ListingUnsupportedError, StorageError, raise_if_cancelled
from .locality import get_uris_by_locality_kv

INC_BACKUP_SUBDIR_RE = r"^/?(\d[^/]*/\d[^/]*\.\d{2})/"
INC_BACKUP_MANIFEST_RE = re.compile(
    INC_BACKUP_SUBDIR_RE
    + "(?:"
    + re.escape(BACKUP_MANIFEST_NAME)
    + "|"
    + re.escape(BACKUP_OLD_MANIFEST_NAME)
    + ")$"
)


def find_prior_backups(store, include_manifest: bool = False) -> list[str]:
    """List the incremental layers stored in ``store``, oldest first.

    Args:
        store: Storage positioned at an incrementals location
        include_manifest: Keep the manifest name on every returned path

    Returns:
        Layer paths such as ``20240102/030405.00``

    Raises:
        StorageError: If the location cannot be listed
    """
    prev = []

    def visit(name):
        match = INC_BACKUP_MANIFEST_RE.match(name)
        if match:
            prev.append(name.lstrip("/") if include_manifest else match.group(1))

    try:
        store.list("", LISTING_DELIM_DATA_SLASH, visit)
    except (ListingUnsupportedError, StorageError) as e:
        raise StorageError("list", store.uri, f"reading previous backup layers: {e}") from e

    # Folder names encode the end time, so name order is chronological.
    prev.sort()
    logger.debug("Found %d prior layers in %r", len(prev), store)
    return prev


def resolve_incrementals_location(
    make_storage,
    user,
    explicit_incrementals,
    full_collections,
    subdir: str,
    cancel=None,
) -> list[str]:
    """Return the URIs holding the incremental layers of the backup at ``subdir``.

    Args:
        make_storage: Callable opening storage for (uri, user)
        user: Identity the storage is opened for
        explicit_incrementals: Incremental collection URIs chosen by the caller
        full_collections: URIs of the full backup collection
        subdir: Subdirectory of the full backup in the collection

    Returns:
        Incremental location URIs, locality parameters preserved
    """
    if explicit_incrementals:
        return append_paths(explicit_incrementals, subdir)

    # Older releases wrote incrementals next to the full backup. Every
    # locality holds a layer iff the default one does.
    legacy = append_paths(full_collections, subdir)
    legacy_default = get_uris_by_locality_kv(legacy).default_uri
    raise_if_cancelled(cancel, "probing legacy incrementals")
    with make_storage(legacy_default, user) as store:
        prior = find_prior_backups(store)
    if prior:
        logger.info("Using legacy incrementals location %s", legacy_default)
        return legacy

    return append_paths(full_collections, DEFAULT_INCREMENTALS_SUBDIR, subdir)
