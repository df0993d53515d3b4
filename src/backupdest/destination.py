"""Resolution of the destination of a backup.

A backup command may point at a collection, at a subdirectory of one
(explicitly or through the ``LATEST`` alias), or, with the legacy syntax,
at a location that auto-appends incremental layers. ``resolve_dest``
finds the directory the new backup is written to, decides whether it is a
full or an incremental backup and, for an incremental one, lists the
layers of the chain it extends.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from . import date_based_folder, join_uri
from .__logger__ import logger
from .chain import find_prior_backups, resolve_incrementals_location
from .config.schema import ResolverSettings
from .constants import (
    DATE_BASED_INC_FOLDER_FORMAT,
    DATE_BASED_INTO_FOLDER_FORMAT,
    FULL_BACKUP_WITH_SUBDIR_SETTING,
    LATEST_ALIAS,
)
from .errors import DeprecatedSubdirError, FullBackupCollisionError, raise_if_cancelled
from .latest import read_latest_file
from .locality import get_uris_by_locality_kv
from .manifest import contains_manifest
from .storage import choose_storage
from .versions import ClusterVersion


class BackupKind(Enum):
    """Kind of backup a resolution plans."""

    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class BackupRequest:
    """A requested backup.

    Attributes:
        target_uris: URIs of the collection (or legacy location), one per locality
        explicit_subdir: Subdirectory in the collection, ``LATEST`` for the
            most recent one, empty for the legacy ``BACKUP TO`` syntax
        incremental_from: Deprecated explicit list of prior backups
        subdir_known_to_exist: The caller believes the subdirectory holds a backup
        as_of_time: Logical end time of the backup
        incremental_storage: URIs incremental layers are redirected to
    """

    target_uris: tuple[str, ...]
    explicit_subdir: str = ""
    incremental_from: tuple[str, ...] = ()
    subdir_known_to_exist: bool = False
    as_of_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    incremental_storage: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "target_uris", tuple(self.target_uris))
        object.__setattr__(self, "incremental_from", tuple(self.incremental_from))
        object.__setattr__(self, "incremental_storage", tuple(self.incremental_storage))
        if not self.target_uris:
            raise ValueError("a backup needs at least one target URI")


@dataclass
class ResolvedDestination:
    """Where a backup is written and which layers it extends."""

    collection_uri: str
    planned_uri: str
    chosen_suffix: str
    uris_by_locality: dict[str, str]
    prior_backup_uris: list[str] = field(default_factory=list)
    kind: BackupKind = BackupKind.FULL

    @property
    def is_incremental(self) -> bool:
        return self.kind is BackupKind.INCREMENTAL


def new_full_backup_subdir(end_time: datetime) -> str:
    """Subdirectory a new full backup ending at ``end_time`` is written to."""
    return date_based_folder(DATE_BASED_INTO_FOLDER_FORMAT, end_time)


def incremental_part_name(end_time: datetime) -> str:
    """Folder of an incremental layer ending at ``end_time``."""
    return date_based_folder(DATE_BASED_INC_FOLDER_FORMAT, end_time)


def resolve_dest(
    request: BackupRequest,
    make_storage=choose_storage,
    settings: Optional[ResolverSettings] = None,
    user=None,
    cancel=None,
) -> ResolvedDestination:
    """Resolve the true destination of a backup.

    Args:
        request: The backup being planned
        make_storage: Callable opening storage for (uri, user); the result
            must be usable as a context manager
        settings: Version gate and deprecated-behaviour flag
        user: Identity storage is opened for
        cancel: Optional threading.Event; resolution stops once it is set

    Returns:
        ResolvedDestination; its prior chain is empty for a full backup

    Raises:
        LocalityError: If the target URIs are inconsistent
        LatestFileNotFoundError: If ``LATEST`` was requested on an empty collection
        FullBackupCollisionError: If a full backup would overwrite a backup
        DeprecatedSubdirError: If a full backup into a named subdirectory is disabled
        StorageError: On storage I/O failures
    """
    settings = settings or ResolverSettings()

    default_uri = get_uris_by_locality_kv(request.target_uris).default_uri

    collection_uri = ""
    chosen_suffix = request.explicit_subdir
    # The legacy BACKUP TO syntax has neither a subdirectory nor a collection.
    if chosen_suffix:
        collection_uri = default_uri
        if chosen_suffix == LATEST_ALIAS:
            chosen_suffix = read_latest_file(default_uri, make_storage, user, cancel)
            logger.debug("%s of %s resolved to %s", LATEST_ALIAS, default_uri, chosen_suffix)

    planned = get_uris_by_locality_kv(request.target_uris, chosen_suffix)

    if request.incremental_from:
        logger.info(
            "Incremental backup to %s from %d explicit prior backups",
            planned.default_uri,
            len(request.incremental_from),
        )
        return ResolvedDestination(
            collection_uri=collection_uri,
            planned_uri=planned.default_uri,
            chosen_suffix=chosen_suffix,
            uris_by_locality=planned.by_tag,
            prior_backup_uris=list(request.incremental_from),
            kind=BackupKind.INCREMENTAL,
        )

    raise_if_cancelled(cancel, "probing the backup manifest")
    with make_storage(planned.default_uri, user) as default_store:
        exists = contains_manifest(default_store)

    if (
        exists
        and not request.subdir_known_to_exist
        and chosen_suffix
        and settings.version_gate.is_active(ClusterVersion.START_22_1)
    ):
        raise FullBackupCollisionError(
            f"A full backup already exists in {planned.default_uri}. "
            "Consider running an incremental backup to this full backup via "
            f"`BACKUP INTO '{chosen_suffix}' IN '{request.target_uris[0]}'`"
        )

    if not exists:
        # A subdirectory was named, explicitly or through LATEST, but it
        # holds no backup.
        if request.subdir_known_to_exist and not settings.full_backup_with_subdir_enabled:
            raise DeprecatedSubdirError(
                f"A full backup cannot be written to {chosen_suffix!r}, a user defined "
                "subdirectory. To take a full backup, remove the subdirectory from the "
                "backup command (i.e. run 'BACKUP ... INTO <collectionURI>'). Or, to "
                "take a full backup at a specific subdirectory, enable the deprecated "
                f"syntax by switching the {FULL_BACKUP_WITH_SUBDIR_SETTING!r} setting "
                "to true; however, note this deprecated syntax will not be available "
                "in a future release."
            )
        logger.info("Full backup to %s", planned.default_uri)
        return ResolvedDestination(
            collection_uri=collection_uri,
            planned_uri=planned.default_uri,
            chosen_suffix=chosen_suffix,
            uris_by_locality=planned.by_tag,
        )

    # The planned location holds a full backup; append a new layer to it.
    incrementals_location = resolve_incrementals_location(
        make_storage,
        user,
        request.incremental_storage,
        request.target_uris,
        chosen_suffix,
        cancel=cancel,
    )
    priors_default_uri = get_uris_by_locality_kv(incrementals_location).default_uri

    raise_if_cancelled(cancel, "listing prior backups")
    with make_storage(priors_default_uri, user) as incremental_store:
        priors = find_prior_backups(incremental_store)

    prior_backup_uris = [planned.default_uri]
    prior_backup_uris += [join_uri(priors_default_uri, prior) for prior in priors]

    part_name = incremental_part_name(request.as_of_time)
    incremental = get_uris_by_locality_kv(incrementals_location, part_name)
    logger.info(
        "Incremental backup to %s on top of %d layers",
        incremental.default_uri,
        len(prior_backup_uris),
    )
    return ResolvedDestination(
        collection_uri=collection_uri,
        planned_uri=incremental.default_uri,
        chosen_suffix=chosen_suffix,
        uris_by_locality=incremental.by_tag,
        prior_backup_uris=prior_backup_uris,
        kind=BackupKind.INCREMENTAL,
    )
