# pyright: standard

"""backupdest: backupdest/storage/http.py
Backup collections served over plain HTTP(S).
"""

import io
import urllib.parse

import httpx

from ..__logger__ import logger
from ..errors import ListingUnsupportedError, NotFoundError, StorageError
from .common import ExternalStorage, StorageProvider


class HttpStorage(ExternalStorage):
    """Storage addressed by http:// or https:// URIs.

    Objects are fetched with GET and stored with PUT. HTTP offers no way
    to enumerate objects, so listing is unsupported.
    """

    provider = StorageProvider.HTTP

    def __init__(self, uri, user=None, config=None, transport=None) -> None:
        super().__init__(uri, user=user, config=config)
        timeout = getattr(config, "http_timeout", 30.0)
        # Query parameters (e.g. signatures) go on every request, not into the path.
        path = self.parsed.path if self.parsed.path.endswith("/") else self.parsed.path + "/"
        base_url = urllib.parse.urlunsplit(self.parsed._replace(path=path, query="", fragment=""))
        self.client = httpx.Client(
            base_url=base_url,
            params=urllib.parse.parse_qsl(self.parsed.query, keep_blank_values=True),
            timeout=timeout,
            transport=transport,
        )

    def _url(self, name: str) -> str:
        return name.lstrip("/")

    def _read_file(self, name):
        try:
            response = self.client.get(self._url(name))
        except httpx.HTTPError as e:
            raise StorageError("read", name, str(e)) from e
        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"{response.url} does not exist")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StorageError("read", name, str(e)) from e
        return io.BytesIO(response.content)

    def _write_file(self, name, data) -> None:
        try:
            response = self.client.put(self._url(name), content=data)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError("write", name, str(e)) from e

    def _list_names(self, prefix):
        raise ListingUnsupportedError(f"listing is not supported by {self.uri}")

    def close(self) -> None:
        if not self.closed:
            logger.debug("Closing HTTP client for %r", self)
            self.client.close()
        super().close()
