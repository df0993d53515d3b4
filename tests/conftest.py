"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from backupdest.constants import BACKUP_MANIFEST_NAME
from backupdest.storage import choose_storage


class TrackingStorageFactory:
    """Opens real storage and records every handle it hands out."""

    def __init__(self):
        self.opened = []

    def __call__(self, uri, user=None):
        store = choose_storage(uri, user)
        self.opened.append(store)
        return store

    @property
    def uris(self):
        return [s.uri for s in self.opened]

    @property
    def all_closed(self):
        return all(s.closed for s in self.opened)


def write_object(root: Path, name: str, content: str = "x") -> Path:
    """Create an object below ``root``."""
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def read_object(store, name: str) -> bytes:
    """Read the whole content of an object from ``store``."""
    with store.read_file(name) as reader:
        return reader.read()


def write_manifest(root: Path, subdir: str = "") -> Path:
    """Create a backup manifest in ``root/subdir``."""
    subdir = subdir.strip("/")
    name = f"{subdir}/{BACKUP_MANIFEST_NAME}" if subdir else BACKUP_MANIFEST_NAME
    return write_object(root, name, "manifest")


@pytest.fixture
def collection_dir(tmp_path):
    """Create an empty collection directory."""
    path = tmp_path / "collection"
    path.mkdir()
    return path


@pytest.fixture
def collection_uri(collection_dir):
    """URI of the collection directory."""
    return f"nodelocal://self{collection_dir}"


@pytest.fixture
def make_storage():
    """A storage factory recording every handle it opened."""
    return TrackingStorageFactory()


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
log_level = "debug"
log_file = "/var/log/backupdest.log"

[cluster]
version = "21.2-52"
full_backup_with_subdir_enabled = true

[storage]
http_timeout = 5
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[cluster]
version = "22.1"
"""


@pytest.fixture
def config_file(tmp_path, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_path, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_path / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
