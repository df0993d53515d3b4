# pyright: standard

"""backupdest: backupdest/storage/__init__.py."""

import urllib.parse

from ..__logger__ import logger
from ..errors import UnsupportedStorageError
from .common import ExternalStorage, StorageProvider
from .http import HttpStorage
from .local import LocalStorage

_PROVIDER_CLASSES = {
    StorageProvider.NODELOCAL: LocalStorage,
    StorageProvider.HTTP: HttpStorage,
}


def choose_storage(uri, user=None, config=None, **kwargs) -> ExternalStorage:
    """
    Chooses a suitable storage implementation based on the URI given.

    Args:
        uri (str): The storage location (e.g., "nodelocal://self/backups").
        user (str): Identity the storage is opened for.
        config (StorageConfig): Storage client settings.
        kwargs: Extra arguments for the storage class (e.g., an httpx transport).

    Returns:
        ExternalStorage: An instance of the appropriate subclass.

    Raises:
        UnsupportedStorageError: If no storage handles the URI scheme.
    """
    parsed = urllib.parse.urlsplit(uri)
    provider = StorageProvider.from_scheme(parsed.scheme)
    storage_class = _PROVIDER_CLASSES.get(provider)
    if storage_class is None:
        raise UnsupportedStorageError(f"No storage could be opened for: {uri}")

    logger.debug("Opening %s storage for %s as %s", provider.value, uri, user)
    return storage_class(uri, user=user, config=config, **kwargs)


__all__ = [
    "ExternalStorage",
    "HttpStorage",
    "LocalStorage",
    "StorageProvider",
    "choose_storage",
]
