# pyright: standard

"""backupdest: backupdest/storage/common.py
Common functionality among storage providers.
"""

import urllib.parse
from enum import Enum
from typing import BinaryIO, Callable, Iterable

from ..__logger__ import logger
from ..errors import ListingDone, UnsupportedStorageError


class StorageProvider(Enum):
    """Kinds of storage a backup collection can live in."""

    NODELOCAL = "nodelocal"
    HTTP = "http"

    @classmethod
    def from_scheme(cls, scheme: str) -> "StorageProvider":
        """Return the provider serving a URI scheme.

        Raises:
            UnsupportedStorageError: If no provider handles the scheme.
        """
        try:
            return _SCHEMES[scheme.lower()]
        except KeyError:
            raise UnsupportedStorageError(
                f"unsupported storage scheme: {scheme!r}"
            ) from None


_SCHEMES = {
    "": StorageProvider.NODELOCAL,
    "file": StorageProvider.NODELOCAL,
    "nodelocal": StorageProvider.NODELOCAL,
    "http": StorageProvider.HTTP,
    "https": StorageProvider.HTTP,
}


def collapse_names(names: Iterable[str], delimiter: str) -> list[str]:
    """Collapse names containing ``delimiter`` to their common prefix.

    Each collapsed prefix is reported once, at the position of its first
    member, mirroring the common-prefix behaviour of object stores.
    """
    if not delimiter:
        return list(names)
    result = []
    seen = set()
    for name in names:
        idx = name.find(delimiter)
        if idx >= 0:
            name = name[: idx + len(delimiter)]
            if name in seen:
                continue
            seen.add(name)
        result.append(name)
    return result


class ExternalStorage:
    """Generic structure of a storage location holding backups.

    Subclasses implement ``_read_file``, ``_write_file`` and ``_list_names``;
    this class adds delimiter handling, visitor dispatch and debug logging.
    """

    provider: StorageProvider

    def __init__(self, uri: str, user=None, config=None) -> None:
        """
        Initialize the storage for a URI.

        Args:
            uri (str): Location of the storage root.
            user (str): Identity the storage is opened for.
            config (StorageConfig): Storage client settings.
        """
        self.uri = uri
        self.user = user
        self.config = config
        self.parsed = urllib.parse.urlsplit(uri)
        self.closed = False

    def read_file(self, name: str) -> BinaryIO:
        """Open ``name`` for reading.

        Raises:
            NotFoundError: If the object does not exist.
            StorageError: On any other I/O failure.
        """
        logger.debug("Reading %s from %r", name, self)
        return self._read_file(name)

    def write_file(self, name: str, data) -> None:
        """Write ``data`` (bytes or str) as a single object named ``name``."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        logger.debug("Writing %d bytes to %s in %r", len(data), name, self)
        self._write_file(name, data)

    def list(
        self, prefix: str, delimiter: str, visit: Callable[[str], None]
    ) -> None:
        """Call ``visit`` for every name under ``prefix`` in ascending order.

        Names are relative to ``prefix``. ``visit`` may raise ``ListingDone``
        to stop early; the signal propagates to the caller.

        Raises:
            ListingUnsupportedError: If the provider cannot list.
            ListingDone: If ``visit`` stopped the listing.
        """
        logger.debug("Listing %r under %r (delimiter %r)", self, prefix, delimiter)
        names = sorted(self._list_names(prefix))
        for name in collapse_names(names, delimiter):
            visit(name)

    def list_all(self, prefix: str, delimiter: str = ""):
        """Return every name ``list`` would visit."""
        names = []
        self.list(prefix, delimiter, names.append)
        return names

    def first_name(self, prefix: str, delimiter: str = "") -> str | None:
        """Return the first name under ``prefix``, or None when empty."""
        found = []

        def visit(name):
            found.append(name)
            raise ListingDone

        try:
            self.list(prefix, delimiter, visit)
        except ListingDone:
            pass
        return found[0] if found else None

    def close(self) -> None:
        """Release resources held by the storage."""
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return self.uri

    # The following methods must be implemented by providers.

    def _read_file(self, name: str) -> BinaryIO:
        raise NotImplementedError

    def _write_file(self, name: str, data: bytes) -> None:
        raise NotImplementedError

    def _list_names(self, prefix: str) -> Iterable[str]:
        raise NotImplementedError
