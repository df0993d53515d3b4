"""Tests for backup destination resolution."""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from backupdest.config import ResolverSettings
from backupdest.constants import LOCALITY_URL_PARAM
from backupdest.destination import (
    BackupKind,
    BackupRequest,
    incremental_part_name,
    new_full_backup_subdir,
    resolve_dest,
)
from backupdest.errors import (
    DeprecatedSubdirError,
    FullBackupCollisionError,
    LatestFileNotFoundError,
    LocalityError,
    ResolutionCancelled,
)
from backupdest.latest import write_new_latest_file
from backupdest.storage import LocalStorage
from backupdest.versions import VersionGate

from conftest import write_manifest

END_TIME = datetime(2024, 1, 5, 1, 2, 3, 450000, tzinfo=timezone.utc)
SUBDIR = "/2024/01/02-030405.00"


def settings(version="22.1", enabled=False) -> ResolverSettings:
    return ResolverSettings(
        version_gate=VersionGate(version), full_backup_with_subdir_enabled=enabled
    )


class TestFolderNames:
    """Tests for the date-based folder names."""

    def test_incremental_part_name(self):
        """Test the folder name of an incremental layer."""
        assert incremental_part_name(END_TIME) == "/20240105/010203.45"

    def test_new_full_backup_subdir(self):
        """Test the subdirectory of a new full backup."""
        assert new_full_backup_subdir(END_TIME) == "/2024/01/05-010203.45"

    def test_naive_time_is_utc(self):
        """Test that naive end times are taken as UTC."""
        assert incremental_part_name(END_TIME.replace(tzinfo=None)) == "/20240105/010203.45"


class TestBackupRequest:
    """Tests for BackupRequest."""

    def test_sequences_become_tuples(self):
        """Test that URI lists are frozen into tuples."""
        request = BackupRequest(target_uris=["s3://b/p"], incremental_from=["s3://b/q"])
        assert request.target_uris == ("s3://b/p",)
        assert request.incremental_from == ("s3://b/q",)

    def test_requires_target(self):
        """Test that a request without targets is rejected."""
        with pytest.raises(ValueError):
            BackupRequest(target_uris=[])


class TestFullBackup:
    """Tests for resolutions that plan a full backup."""

    def test_new_subdirectory(self, collection_uri, make_storage):
        """Test that an empty subdirectory yields a full backup."""
        request = BackupRequest(
            target_uris=[collection_uri], explicit_subdir=SUBDIR, as_of_time=END_TIME
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.kind is BackupKind.FULL
        assert not result.is_incremental
        assert result.collection_uri == collection_uri
        assert result.planned_uri == f"{collection_uri}{SUBDIR}"
        assert result.chosen_suffix == SUBDIR
        assert result.uris_by_locality == {}
        assert result.prior_backup_uris == []
        assert make_storage.all_closed

    def test_legacy_backup_to(self, collection_uri, make_storage):
        """Test the legacy syntax without a collection."""
        result = resolve_dest(BackupRequest(target_uris=[collection_uri]), make_storage)

        assert result.kind is BackupKind.FULL
        assert result.collection_uri == ""
        assert result.planned_uri == collection_uri
        assert result.chosen_suffix == ""

    def test_named_subdir_without_backup_is_deprecated(self, collection_uri, make_storage):
        """Test that a full backup into a named subdirectory needs the setting."""
        request = BackupRequest(
            target_uris=[collection_uri], explicit_subdir="/mine", subdir_known_to_exist=True
        )
        with pytest.raises(DeprecatedSubdirError, match="deprecated_full_backup_with_subdir"):
            resolve_dest(request, make_storage, settings())
        assert make_storage.all_closed

    def test_named_subdir_without_backup_when_enabled(self, collection_uri, make_storage):
        """Test the deprecated behaviour behind its setting."""
        request = BackupRequest(
            target_uris=[collection_uri], explicit_subdir="/mine", subdir_known_to_exist=True
        )
        result = resolve_dest(request, make_storage, settings(enabled=True))

        assert result.kind is BackupKind.FULL
        assert result.planned_uri == f"{collection_uri}/mine"
        assert result.prior_backup_uris == []

    def test_partitioned(self, tmp_path, collection_uri, make_storage):
        """Test that locality URIs are planned at the same subdirectory."""
        other = f"nodelocal://self{tmp_path}/east"
        request = BackupRequest(
            target_uris=[
                f"{collection_uri}?{LOCALITY_URL_PARAM}=default",
                f"{other}?{LOCALITY_URL_PARAM}=dc=east",
            ],
            explicit_subdir=SUBDIR,
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.collection_uri == collection_uri
        assert result.planned_uri == f"{collection_uri}{SUBDIR}"
        assert result.uris_by_locality == {"dc=east": f"{other}{SUBDIR}"}


class TestCollision:
    """Tests for the full backup collision guard."""

    def test_existing_backup_rejected(self, collection_uri, collection_dir, make_storage):
        """Test that a full backup never lands on an existing one."""
        write_manifest(collection_dir, SUBDIR)
        request = BackupRequest(target_uris=[collection_uri], explicit_subdir=SUBDIR)

        with pytest.raises(FullBackupCollisionError, match="BACKUP INTO"):
            resolve_dest(request, make_storage, settings())
        assert make_storage.all_closed

    def test_old_version_appends_instead(self, collection_uri, collection_dir, make_storage):
        """Test that older clusters append instead of rejecting."""
        write_manifest(collection_dir, SUBDIR)
        request = BackupRequest(
            target_uris=[collection_uri], explicit_subdir=SUBDIR, as_of_time=END_TIME
        )
        result = resolve_dest(request, make_storage, settings(version="21.2-52"))
        assert result.kind is BackupKind.INCREMENTAL

    def test_legacy_backup_to_appends(self, collection_uri, collection_dir, make_storage):
        """Test that the legacy syntax auto-appends to an existing backup."""
        write_manifest(collection_dir)
        request = BackupRequest(target_uris=[collection_uri], as_of_time=END_TIME)

        result = resolve_dest(request, make_storage, settings())

        assert result.kind is BackupKind.INCREMENTAL
        assert result.planned_uri == f"{collection_uri}/incrementals/20240105/010203.45"
        assert result.prior_backup_uris == [collection_uri]


class TestIncrementalBackup:
    """Tests for resolutions that append an incremental layer."""

    def test_appends_to_chain(self, collection_uri, collection_dir, make_storage):
        """Test the chain starts at the full backup followed by earlier layers."""
        write_manifest(collection_dir, SUBDIR)
        incrementals = collection_dir / "incrementals" / SUBDIR.strip("/")
        write_manifest(incrementals, "20240103/000000.00")
        write_manifest(incrementals, "20240104/000000.00")

        request = BackupRequest(
            target_uris=[collection_uri],
            explicit_subdir=SUBDIR,
            subdir_known_to_exist=True,
            as_of_time=END_TIME,
        )
        result = resolve_dest(request, make_storage, settings())

        inc_uri = f"{collection_uri}/incrementals{SUBDIR}"
        assert result.kind is BackupKind.INCREMENTAL
        assert result.collection_uri == collection_uri
        assert result.chosen_suffix == SUBDIR
        assert result.planned_uri == f"{inc_uri}/20240105/010203.45"
        assert result.prior_backup_uris == [
            f"{collection_uri}{SUBDIR}",
            f"{inc_uri}/20240103/000000.00",
            f"{inc_uri}/20240104/000000.00",
        ]
        assert make_storage.all_closed

    def test_first_incremental(self, collection_uri, collection_dir, make_storage):
        """Test that the first layer extends only the full backup."""
        write_manifest(collection_dir, SUBDIR)
        request = BackupRequest(
            target_uris=[collection_uri],
            explicit_subdir=SUBDIR,
            subdir_known_to_exist=True,
            as_of_time=END_TIME,
        )
        result = resolve_dest(request, make_storage, settings())
        assert result.prior_backup_uris == [f"{collection_uri}{SUBDIR}"]

    def test_latest_alias(self, collection_uri, collection_dir, make_storage):
        """Test that LATEST is dereferenced through the latest pointer."""
        write_manifest(collection_dir, SUBDIR)
        write_new_latest_file(VersionGate(), LocalStorage(collection_uri), SUBDIR)

        request = BackupRequest(
            target_uris=[collection_uri],
            explicit_subdir="LATEST",
            subdir_known_to_exist=True,
            as_of_time=END_TIME,
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.chosen_suffix == SUBDIR
        assert result.prior_backup_uris[0] == f"{collection_uri}{SUBDIR}"
        assert make_storage.all_closed

    def test_latest_alias_without_pointer(self, collection_uri, make_storage):
        """Test that LATEST on a collection without a pointer fails."""
        request = BackupRequest(
            target_uris=[collection_uri], explicit_subdir="LATEST", subdir_known_to_exist=True
        )
        with pytest.raises(LatestFileNotFoundError):
            resolve_dest(request, make_storage, settings())
        assert make_storage.all_closed

    def test_explicit_incremental_storage(self, tmp_path, collection_uri, collection_dir, make_storage):
        """Test that incrementals can be redirected to another location."""
        write_manifest(collection_dir, SUBDIR)
        inc_root = tmp_path / "inc"
        write_manifest(inc_root, f"{SUBDIR}/20240103/000000.00")
        inc_uri = f"nodelocal://self{inc_root}"

        request = BackupRequest(
            target_uris=[collection_uri],
            explicit_subdir=SUBDIR,
            subdir_known_to_exist=True,
            as_of_time=END_TIME,
            incremental_storage=[inc_uri],
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.planned_uri == f"{inc_uri}{SUBDIR}/20240105/010203.45"
        assert result.prior_backup_uris == [
            f"{collection_uri}{SUBDIR}",
            f"{inc_uri}{SUBDIR}/20240103/000000.00",
        ]

    def test_partitioned_incremental(self, tmp_path, collection_uri, collection_dir, make_storage):
        """Test that locality URIs follow the new layer."""
        write_manifest(collection_dir, SUBDIR)
        other = f"nodelocal://self{tmp_path}/east"
        request = BackupRequest(
            target_uris=[
                f"{collection_uri}?{LOCALITY_URL_PARAM}=default",
                f"{other}?{LOCALITY_URL_PARAM}=dc=east",
            ],
            explicit_subdir=SUBDIR,
            subdir_known_to_exist=True,
            as_of_time=END_TIME,
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.planned_uri == f"{collection_uri}/incrementals{SUBDIR}/20240105/010203.45"
        assert result.uris_by_locality == {
            "dc=east": f"{other}/incrementals{SUBDIR}/20240105/010203.45"
        }
        for uri in result.prior_backup_uris:
            assert LOCALITY_URL_PARAM not in uri


class TestLegacyIncrementalFrom:
    """Tests for the deprecated explicit prior backup list."""

    def test_skips_storage(self, collection_uri, make_storage):
        """Test that explicit priors bypass every manifest check."""
        request = BackupRequest(
            target_uris=[collection_uri],
            incremental_from=["nodelocal://self/full", "nodelocal://self/inc1"],
        )
        result = resolve_dest(request, make_storage, settings())

        assert result.kind is BackupKind.INCREMENTAL
        assert result.planned_uri == collection_uri
        assert result.prior_backup_uris == ["nodelocal://self/full", "nodelocal://self/inc1"]
        assert make_storage.opened == []


class TestResolveDestErrors:
    """Tests for error propagation out of resolve_dest."""

    def test_locality_error(self, make_storage):
        """Test that bad locality tags fail before storage is opened."""
        request = BackupRequest(target_uris=[f"s3://b/p?{LOCALITY_URL_PARAM}=dc=east"])
        with pytest.raises(LocalityError):
            resolve_dest(request, make_storage, settings())
        assert make_storage.opened == []

    def test_cancelled_before_manifest_check(self, collection_uri, make_storage):
        """Test that a cancelled resolution opens no storage."""
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ResolutionCancelled):
            resolve_dest(
                BackupRequest(target_uris=[collection_uri]), make_storage, cancel=cancel
            )
        assert make_storage.opened == []

    def test_storage_error_propagates_and_closes(self):
        """Test that handles are released when the manifest check fails."""
        store = MagicMock()
        store.__enter__.return_value = store
        store.read_file.side_effect = OSError("boom")
        factory = MagicMock(return_value=store)

        with pytest.raises(OSError, match="boom"):
            resolve_dest(BackupRequest(target_uris=["s3://b/p"]), factory, settings(), user="u")
        factory.assert_called_once_with("s3://b/p", "u")
        store.__exit__.assert_called_once()
