# pyright: standard

"""backupdest: backupdest/storage/local.py
Backup collections on a local (or locally mounted) filesystem.
"""

import hashlib
import os
import tempfile
import urllib.parse
from pathlib import Path, PurePosixPath

from filelock import FileLock

from ..__logger__ import logger
from ..errors import NotFoundError, StorageError
from .common import ExternalStorage, StorageProvider

# Objects being written carry this prefix until they are renamed in place.
TMP_PREFIX = ".backupdest-tmp-"


class LocalStorage(ExternalStorage):
    """Storage rooted at a directory, addressed by nodelocal:// or file:// URIs."""

    provider = StorageProvider.NODELOCAL

    def __init__(self, uri, user=None, config=None) -> None:
        """
        Initialize the LocalStorage for a URI.

        Args:
            uri (str): nodelocal://, file:// URI or a plain path.
            user (str): Identity the storage is opened for.
            config (StorageConfig): Storage client settings.
        """
        super().__init__(uri, user=user, config=config)

        path = urllib.parse.unquote(self.parsed.path)
        if not self.parsed.scheme:
            path = uri
        self.root = Path(path or "/").expanduser()

        digest = hashlib.sha1(str(self.root).encode("utf-8")).hexdigest()[:16]
        self.lock_path = Path(tempfile.gettempdir()) / f".backupdest.{digest}.lock"

    def _resolve(self, name: str) -> Path:
        relative = PurePosixPath(name.lstrip("/"))
        if ".." in relative.parts:
            raise StorageError("resolve", name, "path escapes the storage root")
        return self.root.joinpath(*relative.parts)

    def _read_file(self, name):
        path = self._resolve(name)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise NotFoundError(f"{path} does not exist") from e
        except OSError as e:
            raise StorageError("read", str(path), str(e)) from e

    def _write_file(self, name, data) -> None:
        path = self._resolve(name)
        with FileLock(self.lock_path):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=TMP_PREFIX, dir=path.parent)
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(data)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise StorageError("write", str(path), str(e)) from e

    def _list_names(self, prefix):
        base = self._resolve(prefix) if prefix else self.root
        if not base.is_dir():
            return []
        names = []
        try:
            for dirpath, _dirnames, filenames in os.walk(base):
                for filename in filenames:
                    if filename.startswith(TMP_PREFIX):
                        continue
                    full = Path(dirpath) / filename
                    names.append(full.relative_to(base).as_posix())
        except OSError as e:
            raise StorageError("list", str(base), str(e)) from e
        return names
