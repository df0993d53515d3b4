"""The latest pointer of a backup collection.

The pointer records the subdirectory of the most recent backup. Two
encodings coexist:

- legacy: a single ``LATEST`` object in the collection root, overwritten
  by every backup;
- write-once: ``metadata/latest/LATEST-<version>`` objects, one per backup,
  never overwritten. ``<version>`` is the hex encoded, descending encoding
  of the write time, so an ascending listing returns the newest first.

Readers try an ordered chain of strategies until one locates a pointer.
"""

from datetime import datetime, timezone
from typing import BinaryIO, Optional

from . import as_utc
from .__logger__ import logger
from .constants import LATEST_FILE_NAME, LATEST_HISTORY_DIRECTORY
from .errors import (
    LatestFileNotFoundError,
    ListingUnsupportedError,
    MalformedDataError,
    NotFoundError,
    raise_if_cancelled,
)
from .storage.common import StorageProvider
from .versions import ClusterVersion

_BYTES_DESC_MARKER = 0x13
_ESCAPED_00_DESC = b"\xff\x00"
_ESCAPED_TERM_DESC = b"\xff\xfe"


def encode_string_descending(buf: bytearray, value: str) -> bytearray:
    """Append ``value`` to ``buf`` so that byte order is reversed.

    The encoding is a marker byte followed by the one's complement of the
    UTF-8 bytes (0x00 escaped) and a complemented terminator.
    """
    buf.append(_BYTES_DESC_MARKER)
    for b in value.encode("utf-8"):
        if b == 0x00:
            buf += _ESCAPED_00_DESC
        else:
            buf.append(~b & 0xFF)
    buf += _ESCAPED_TERM_DESC
    return buf


def format_timestamp(now: datetime) -> str:
    """Fixed-width UTC rendering of ``now``; string order equals time order."""
    return as_utc(now).strftime("%Y-%m-%d %H:%M:%S.%f +0000 UTC")


def new_timestamped_latest_file_name(now: Optional[datetime] = None) -> str:
    """Return ``metadata/latest/LATEST-<hex version>`` for a write at ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    encoded = encode_string_descending(bytearray(), format_timestamp(now))
    return f"{LATEST_HISTORY_DIRECTORY}/{LATEST_FILE_NAME}-{encoded.hex()}"


class LatestReadStrategy:
    """One place a latest pointer may live."""

    # Only tried when the history directory could not be listed.
    requires_listing_unsupported = False

    def locate(self, store) -> Optional[BinaryIO]:
        """Return an open reader for the pointer, or None if absent here."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return type(self).__name__


class HistoryListingStrategy(LatestReadStrategy):
    """First name listed in the history directory, i.e. the newest pointer."""

    def locate(self, store):
        name = store.first_name(LATEST_HISTORY_DIRECTORY)
        if name is None:
            return None
        return store.read_file(f"{LATEST_HISTORY_DIRECTORY}/{name.lstrip('/')}")


class FixedNameStrategy(LatestReadStrategy):
    """A non-timestamped pointer at a fixed object name."""

    def __init__(self, name: str, requires_listing_unsupported: bool = False) -> None:
        self.name = name
        self.requires_listing_unsupported = requires_listing_unsupported

    def locate(self, store):
        try:
            return store.read_file(self.name)
        except NotFoundError:
            return None

    def __repr__(self) -> str:
        return f"FixedNameStrategy({self.name!r})"


READ_STRATEGIES = (
    HistoryListingStrategy(),
    FixedNameStrategy(
        f"{LATEST_HISTORY_DIRECTORY}/{LATEST_FILE_NAME}",
        requires_listing_unsupported=True,
    ),
    FixedNameStrategy(LATEST_FILE_NAME),
)


def find_latest_file(store, strategies=READ_STRATEGIES) -> BinaryIO:
    """Open the most recent latest pointer of the collection in ``store``.

    Raises:
        LatestFileNotFoundError: If no strategy located a pointer.
        StorageError: On I/O failures other than absence.
    """
    listing_unsupported = False
    for strategy in strategies:
        if strategy.requires_listing_unsupported and not listing_unsupported:
            continue
        try:
            reader = strategy.locate(store)
        except ListingUnsupportedError:
            logger.warning(
                "%r does not support listing, reading a fixed-name latest pointer",
                store,
            )
            listing_unsupported = True
            continue
        if reader is not None:
            logger.debug("Latest pointer of %r located by %r", store, strategy)
            return reader
    raise LatestFileNotFoundError(
        f"{LATEST_FILE_NAME} file could not be read in base or metadata directory "
        f"of {store!r}"
    )


def read_latest_file(collection_uri, make_storage, user=None, cancel=None) -> str:
    """Return the subdirectory recorded by the latest pointer of a collection.

    Raises:
        LatestFileNotFoundError: If the collection holds no pointer.
        MalformedDataError: If the pointer is empty or not UTF-8.
    """
    raise_if_cancelled(cancel, "reading the latest pointer")
    with make_storage(collection_uri, user) as collection:
        try:
            reader = find_latest_file(collection)
        except LatestFileNotFoundError as e:
            raise LatestFileNotFoundError(
                f"{collection_uri} does not contain a completed latest backup"
            ) from e
        with reader:
            latest = reader.read()

    if not latest:
        raise MalformedDataError(f"malformed {LATEST_FILE_NAME} file in {collection_uri}")
    try:
        return latest.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedDataError(
            f"malformed {LATEST_FILE_NAME} file in {collection_uri}: {e}"
        ) from e


def check_for_latest_file_in_collection(store) -> bool:
    """Return whether the collection in ``store`` has any latest pointer."""
    try:
        reader = find_latest_file(store)
    except NotFoundError:
        return False
    reader.close()
    return True


def write_new_latest_file(version_gate, store, suffix: str, now=None, cancel=None) -> str:
    """Record ``suffix`` as the most recent backup of the collection in ``store``.

    Returns:
        Name of the pointer object written
    """
    raise_if_cancelled(cancel, "writing the latest pointer")

    # Older nodes of a mixed-version cluster only read the base directory.
    if not version_gate.is_active(
        ClusterVersion.BACKUP_DOES_NOT_OVERWRITE_LATEST_AND_CHECKPOINT
    ):
        name = LATEST_FILE_NAME
    # HTTP cannot list, so the newest timestamped pointer could not be found.
    elif store.provider == StorageProvider.HTTP:
        name = LATEST_FILE_NAME
    else:
        name = new_timestamped_latest_file_name(now)

    store.write_file(name, suffix)
    logger.info("Latest pointer %s of %r now names %s", name, store, suffix)
    return name
