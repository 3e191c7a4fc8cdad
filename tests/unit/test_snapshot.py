"""Tests for backup archive creation, listing and restore."""

import io
import json
import tarfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from sshwarden.core.errors import ArchiveReadError, BackupNotFoundError, SSHDirectoryMissingError
from sshwarden.core.snapshot import SnapshotManager, archive_name, is_backup_file
from sshwarden.schemas.backup import RestoreOptions

FILES = {
    "config": "Host a\n    HostName a.lan\n",
    "id_ed25519": "private\n",
    "id_ed25519.pub": "ssh-ed25519 AAAA me\n",
    "known_hosts": "a.lan ssh-ed25519 AAAA\n",
}


@pytest.fixture
def populated(ssh_dir):
    for name, content in FILES.items():
        (ssh_dir / name).write_text(content)
    (ssh_dir / "sockets").mkdir()
    return ssh_dir


@pytest.fixture
def manager(populated):
    return SnapshotManager(populated, "0.1.0", username="tester", computer_name="box")


def _members(path: str) -> list[str]:
    with tarfile.open(path, "r:gz") as tar:
        return sorted(tar.getnames())


def _write_archive(path: Path, members: dict[str, bytes]) -> None:
    with tarfile.open(path, "w:gz") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o600
            tar.addfile(info, io.BytesIO(data))


class TestArchiveName:
    def test_format(self):
        created = datetime(2026, 3, 4, 5, 6, 7, 89000, tzinfo=timezone.utc)
        assert archive_name(created) == "ssh_backup_2026-03-04T05-06-07-089Z.tar.gz"

    def test_suffix(self):
        created = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
        assert archive_name(created, "-1") == "ssh_backup_2026-03-04T05-06-07-000Z-1.tar.gz"

    def test_is_backup_file(self):
        assert is_backup_file("ssh_backup_2026-03-04T05-06-07-000Z.tar.gz")
        assert not is_backup_file("notes.tar.gz")
        assert not is_backup_file("ssh_backup_x.zip")


class TestCreate:
    @pytest.mark.asyncio
    async def test_archive_contents(self, manager, tmp_path):
        info = await manager.create(tmp_path / "backups")
        assert Path(info.path).parent == tmp_path / "backups"
        assert is_backup_file(Path(info.path).name)
        assert _members(info.path) == sorted([*FILES, "backup-metadata.json"])

    @pytest.mark.asyncio
    async def test_metadata(self, manager, tmp_path):
        info = await manager.create(tmp_path / "backups")
        assert info.metadata.files == sorted(FILES)
        assert info.metadata.file_count == len(FILES)
        assert info.metadata.username == "tester"
        assert info.metadata.computer_name == "box"
        assert info.metadata.app_version == "0.1.0"
        assert info.size == Path(info.path).stat().st_size

    @pytest.mark.asyncio
    async def test_metadata_member_uses_camel_case(self, manager, tmp_path):
        info = await manager.create(tmp_path / "backups")
        with tarfile.open(info.path, "r:gz") as tar:
            raw = json.loads(tar.extractfile("backup-metadata.json").read())
        assert set(raw) == {"createdAt", "username", "computerName", "appVersion", "files", "fileCount"}

    @pytest.mark.asyncio
    async def test_reserved_name_skipped(self, manager, populated, tmp_path):
        (populated / "backup-metadata.json").write_text("{}")
        info = await manager.create(tmp_path / "backups")
        assert info.skipped_files == ["backup-metadata.json"]
        assert "backup-metadata.json" not in info.metadata.files

    @pytest.mark.asyncio
    async def test_name_collision(self, manager, tmp_path):
        dest = tmp_path / "backups"
        first = await manager.create(dest)
        second = await manager.create(dest)
        assert first.path != second.path

    @pytest.mark.asyncio
    async def test_missing_ssh_directory(self, tmp_path):
        with pytest.raises(SSHDirectoryMissingError):
            await SnapshotManager(tmp_path / "absent", "0.1.0").create(tmp_path)


class TestListAndMetadata:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, manager, tmp_path):
        dest = tmp_path / "backups"
        first = await manager.create(dest)
        second = await manager.create(dest)
        (dest / "unrelated.txt").write_text("x")
        backups = await manager.list(dest)
        assert [b.path for b in backups] == [second.path, first.path]

    @pytest.mark.asyncio
    async def test_list_missing_directory(self, manager, tmp_path):
        assert await manager.list(tmp_path / "nowhere") == []

    @pytest.mark.asyncio
    async def test_archive_without_metadata(self, manager, tmp_path):
        archive = tmp_path / "ssh_backup_2020-01-01T00-00-00-000Z.tar.gz"
        _write_archive(archive, {"config": b"Host a\n"})
        assert await manager.metadata(archive) is None
        [info] = await manager.list(tmp_path)
        assert info.metadata.username == "Unknown"

    @pytest.mark.asyncio
    async def test_metadata_of_corrupt_file(self, manager, tmp_path):
        bogus = tmp_path / "ssh_backup_bogus.tar.gz"
        bogus.write_bytes(b"not gzip")
        assert await manager.metadata(bogus) is None

    @pytest.mark.asyncio
    async def test_delete(self, manager, tmp_path):
        info = await manager.create(tmp_path / "backups")
        await manager.delete(Path(info.path))
        assert not Path(info.path).exists()
        with pytest.raises(BackupNotFoundError):
            await manager.delete(Path(info.path))


class TestRestore:
    @pytest.mark.asyncio
    async def test_round_trip_into_empty_directory(self, manager, populated, tmp_path):
        info = await manager.create(tmp_path / "backups")
        target = tmp_path / "restored"
        restorer = SnapshotManager(target, "0.1.0")

        result = await restorer.restore(RestoreOptions(backup_path=info.path))

        assert sorted(result.restored) == sorted(FILES)
        assert result.safety_backup is None
        for name, content in FILES.items():
            assert (target / name).read_text() == content
        assert not (target / "backup-metadata.json").exists()

    @pytest.mark.asyncio
    async def test_existing_files_skipped_by_default(self, manager, populated, tmp_path):
        info = await manager.create(tmp_path / "backups")
        (populated / "config").write_text("changed\n")
        (populated / "id_ed25519").unlink()

        result = await manager.restore(RestoreOptions(backup_path=info.path, create_backup=False))

        assert result.restored == ["id_ed25519"]
        assert "config" in result.skipped
        assert (populated / "config").read_text() == "changed\n"
        assert (populated / "id_ed25519").read_text() == FILES["id_ed25519"]

    @pytest.mark.asyncio
    async def test_overwrite(self, manager, populated, tmp_path):
        info = await manager.create(tmp_path / "backups")
        (populated / "config").write_text("changed\n")

        result = await manager.restore(
            RestoreOptions(backup_path=info.path, overwrite_existing=True, create_backup=False)
        )

        assert "config" in result.overwritten
        assert (populated / "config").read_text() == FILES["config"]

    @pytest.mark.asyncio
    async def test_directory_in_the_way_fails_that_file(self, tmp_path):
        archive = tmp_path / "dir-clash.tar.gz"
        _write_archive(archive, {"config": b"Host a\n", "sockets": b"file"})
        target = tmp_path / "ssh"
        (target / "sockets").mkdir(parents=True)

        result = await SnapshotManager(target, "0.1.0").restore(
            RestoreOptions(backup_path=str(archive), overwrite_existing=True, create_backup=False)
        )

        assert result.failed == ["sockets"]
        assert result.restored == ["config"]
        assert result.overwritten == []
        assert list((target / "sockets").iterdir()) == []

    @pytest.mark.asyncio
    async def test_merge_keeps_both_copies(self, manager, populated, tmp_path):
        info = await manager.create(tmp_path / "backups")
        (populated / "config").write_text("changed\n")

        result = await manager.restore(
            RestoreOptions(backup_path=info.path, merge_duplicates=True, create_backup=False)
        )

        merged = result.merged["config"]
        assert merged.startswith("config.restored-")
        assert (populated / "config").read_text() == "changed\n"
        assert (populated / merged).read_text() == FILES["config"]

    @pytest.mark.asyncio
    async def test_safety_backup_next_to_archive(self, manager, tmp_path):
        dest = tmp_path / "backups"
        info = await manager.create(dest)

        result = await manager.restore(RestoreOptions(backup_path=info.path))

        assert result.safety_backup is not None
        assert Path(result.safety_backup.path).parent == dest
        assert len(await manager.list(dest)) == 2

    @pytest.mark.asyncio
    async def test_traversal_members_flattened(self, tmp_path):
        archive = tmp_path / "evil.tar.gz"
        _write_archive(archive, {"../../escape": b"x", "./sub/id_rsa": b"key"})
        target = tmp_path / "ssh"

        result = await SnapshotManager(target, "0.1.0").restore(
            RestoreOptions(backup_path=str(archive), create_backup=False)
        )

        assert sorted(result.restored) == ["escape", "id_rsa"]
        assert (target / "escape").exists()
        assert not (tmp_path.parent / "escape").exists()

    @pytest.mark.asyncio
    async def test_untracked_files_reported(self, tmp_path):
        archive = tmp_path / "extra.tar.gz"
        metadata = json.dumps({
            "createdAt": "2026-01-01T00:00:00Z",
            "username": "u",
            "computerName": "c",
            "appVersion": "0.1.0",
            "files": ["config"],
            "fileCount": 1,
        }).encode()
        _write_archive(archive, {"config": b"c", "stray": b"s", "backup-metadata.json": metadata})

        result = await SnapshotManager(tmp_path / "ssh", "0.1.0").restore(
            RestoreOptions(backup_path=str(archive), create_backup=False)
        )

        assert result.untracked == ["stray"]
        assert result.metadata.files == ["config"]

    @pytest.mark.asyncio
    async def test_missing_archive(self, manager, tmp_path):
        with pytest.raises(BackupNotFoundError):
            await manager.restore(RestoreOptions(backup_path=str(tmp_path / "nope.tar.gz")))

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, manager, tmp_path):
        bogus = tmp_path / "bogus.tar.gz"
        bogus.write_bytes(b"not gzip")
        with pytest.raises(ArchiveReadError):
            await manager.restore(RestoreOptions(backup_path=str(bogus), create_backup=False))
