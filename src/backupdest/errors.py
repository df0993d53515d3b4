"""Error types raised while resolving backup destinations."""


class BackupDestError(Exception):
    """Base class for all backupdest errors."""

    pass


class NotFoundError(BackupDestError, FileNotFoundError):
    """The requested object does not exist in storage."""

    pass


class LatestFileNotFoundError(NotFoundError):
    """A collection holds no readable latest pointer."""

    pass


class ListingUnsupportedError(BackupDestError):
    """The storage provider cannot list objects."""

    pass


class ListingDone(BackupDestError):
    """Raised by a listing visitor to stop the listing early."""

    pass


class MalformedDataError(BackupDestError):
    """Stored metadata exists but its content is unusable."""

    pass


class LocalityError(BackupDestError, ValueError):
    """Locality-aware URIs are missing, duplicated or malformed."""

    pass


class FullBackupCollisionError(BackupDestError):
    """A full backup was requested where a full backup already exists."""

    pass


class DeprecatedSubdirError(BackupDestError):
    """A full backup into a user named subdirectory was requested while disabled."""

    pass


class UnsupportedStorageError(BackupDestError, ValueError):
    """No storage implementation handles the given URI."""

    pass


class ResolutionCancelled(BackupDestError):
    """The caller cancelled a resolution in progress."""

    pass


class StorageError(BackupDestError):
    """An I/O failure from a storage provider.

    Attributes:
        operation: The storage operation that failed (read, write, list)
        path: Object name or prefix the operation targeted
    """

    def __init__(self, operation: str, path: str, message: str = "") -> None:
        self.operation = operation
        self.path = path
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} {path!r} failed{detail}")


def raise_if_cancelled(cancel, step: str) -> None:
    """Raise ResolutionCancelled if the ``cancel`` event has been set."""
    if cancel is not None and cancel.is_set():
        raise ResolutionCancelled(f"cancelled before {step}")
