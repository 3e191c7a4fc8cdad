"""Point-in-time backups of the SSH directory as gzip tar archives.

An archive holds a flat copy of the directory's regular files plus
``backup-metadata.json`` at its root. Restore goes through
Idle -> [SafetySnapshotting] -> Extracting -> ConflictResolving -> CleaningUp -> Done;
nothing is retried.
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import os
import shutil
import socket
import tarfile
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from sshwarden.config import BACKUP_FILE_EXTENSION, BACKUP_FILE_PREFIX, BACKUP_METADATA_FILENAME
from sshwarden.core.errors import (
    ArchiveReadError,
    ArchiveWriteError,
    BackupNotFoundError,
    SSHDirectoryMissingError,
    SSHWardenError,
)
from sshwarden.core.filesystem import SSH_DIR_MODE, LocalFS
from sshwarden.schemas.backup import BackupInfo, BackupMetadata, RestoreOptions, RestoreResult

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def archive_name(created_at: datetime, suffix: str = "") -> str:
    """``ssh_backup_2026-10-17T09-30-00-123Z.tar.gz`` for a UTC timestamp."""
    stamp = created_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    stamp += f".{created_at.microsecond // 1000:03d}Z"
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{BACKUP_FILE_PREFIX}{stamp}{suffix}{BACKUP_FILE_EXTENSION}"


def is_backup_file(filename: str) -> bool:
    return filename.startswith(BACKUP_FILE_PREFIX) and filename.endswith(BACKUP_FILE_EXTENSION)


def _current_username() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return UNKNOWN


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _member_name(member: tarfile.TarInfo) -> str:
    """Flatten a member path to its base name; archives made with ``tar -C dir .``
    carry a ``./`` prefix."""
    return os.path.basename(member.name.rstrip("/"))


def _read_metadata_member(tar: tarfile.TarFile) -> BackupMetadata | None:
    for member in tar:
        if member.isfile() and _member_name(member) == BACKUP_METADATA_FILENAME:
            f = tar.extractfile(member)
            if f is None:
                return None
            return BackupMetadata.model_validate_json(f.read())
    return None


def _extract_flat(tar: tarfile.TarFile, dest: Path) -> list[str]:
    """Extract regular files by base name only, so no member can land outside ``dest``."""
    names: list[str] = []
    for member in tar:
        if not member.isfile():
            continue
        name = _member_name(member)
        if name in ("", ".", "..") or name in names:
            continue
        source = tar.extractfile(member)
        if source is None:
            continue
        target = dest / name
        with source, open(target, "wb") as out:
            shutil.copyfileobj(source, out)
        os.chmod(target, member.mode & 0o777)
        os.utime(target, (member.mtime, member.mtime))
        names.append(name)
    return names


class SnapshotManager:
    """Creates, lists and restores backups of one SSH directory."""

    def __init__(
        self,
        ssh_dir: Path,
        app_version: str,
        username: str | None = None,
        computer_name: str | None = None,
    ):
        self.ssh_dir = Path(ssh_dir)
        self.app_version = app_version
        self.username = username
        self.computer_name = computer_name

    # -- create -------------------------------------------------------------

    def _unique_archive_path(self, destination: Path, created_at: datetime) -> Path:
        path = destination / archive_name(created_at)
        n = 1
        while path.exists():
            path = destination / archive_name(created_at, f"-{n}")
            n += 1
        return path

    def _create_sync(self, destination: Path, created_at: datetime) -> BackupInfo:
        files: list[str] = []
        skipped: list[str] = []

        with tempfile.TemporaryDirectory(prefix="sshwarden-backup-") as tmp:
            staging = Path(tmp)
            for name in sorted(os.listdir(self.ssh_dir)):
                source = self.ssh_dir / name
                if not source.is_file():
                    continue
                if name == BACKUP_METADATA_FILENAME:
                    logger.warning("Skipping %s: name is reserved for backup metadata", source)
                    skipped.append(name)
                    continue
                try:
                    shutil.copy2(source, staging / name)
                    files.append(name)
                except OSError as e:
                    logger.warning("Failed to copy file %s: %s", name, e)
                    skipped.append(name)

            metadata = BackupMetadata(
                created_at=created_at,
                username=self.username or _current_username(),
                computer_name=self.computer_name or socket.gethostname(),
                app_version=self.app_version,
                files=files,
                file_count=len(files),
            )
            (staging / BACKUP_METADATA_FILENAME).write_text(
                metadata.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
            )

            try:
                destination.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ArchiveWriteError(str(destination), str(e)) from e
            archive = self._unique_archive_path(destination, created_at)
            try:
                with tarfile.open(archive, "w:gz") as tar:
                    for name in [*files, BACKUP_METADATA_FILENAME]:
                        tar.add(staging / name, arcname=name)
            except (OSError, tarfile.TarError) as e:
                archive.unlink(missing_ok=True)
                raise ArchiveWriteError(str(archive), str(e)) from e

        return BackupInfo(
            path=str(archive),
            metadata=metadata,
            size=archive.stat().st_size,
            skipped_files=skipped,
        )

    async def create(self, destination_dir: Path) -> BackupInfo:
        """Archive the SSH directory into ``destination_dir``.

        Files that cannot be copied are left out of the archive and the
        manifest and listed in ``skipped_files``.
        """
        if not await LocalFS.directory_exists(self.ssh_dir):
            raise SSHDirectoryMissingError(str(self.ssh_dir))
        destination = Path(destination_dir).expanduser()
        logger.info("Creating backup in %s", destination)
        info = await asyncio.to_thread(self._create_sync, destination, datetime.now(timezone.utc))
        logger.info("Backup created: %s (%d bytes, %d files)", info.path, info.size, info.metadata.file_count)
        return info

    # -- inspect ------------------------------------------------------------

    async def metadata(self, path: Path) -> BackupMetadata | None:
        """Read only the metadata member. None when it is missing or unreadable."""

        def _read() -> BackupMetadata | None:
            with tarfile.open(path, "r:gz") as tar:
                return _read_metadata_member(tar)

        try:
            return await asyncio.to_thread(_read)
        except (OSError, tarfile.TarError, ValidationError) as e:
            logger.warning("Failed to read metadata from %s: %s", path, e)
            return None

    async def list(self, directory: Path) -> list[BackupInfo]:
        """Backups found in ``directory``, newest first."""
        directory = Path(directory).expanduser()
        if not await LocalFS.directory_exists(directory):
            return []

        backups: list[BackupInfo] = []
        for name in await LocalFS.list_dir(directory):
            path = directory / name
            if not is_backup_file(name) or not await LocalFS.file_exists(path):
                continue
            try:
                stats = await LocalFS.stat_file(path)
            except OSError as e:
                logger.warning("Failed to get info for backup %s: %s", name, e)
                continue
            metadata = await self.metadata(path) or BackupMetadata(
                created_at=stats.created_at,
                username=UNKNOWN,
                computer_name=UNKNOWN,
                app_version=UNKNOWN,
            )
            backups.append(BackupInfo(path=str(path), metadata=metadata, size=stats.size))

        backups.sort(key=lambda b: _as_utc(b.metadata.created_at), reverse=True)
        logger.info("Found %d backups in %s", len(backups), directory)
        return backups

    async def delete(self, path: Path) -> None:
        path = Path(path).expanduser()
        if not await LocalFS.file_exists(path):
            raise BackupNotFoundError(str(path))
        await LocalFS.delete_file(path)

    # -- restore ------------------------------------------------------------

    def _restore_sync(self, archive: Path, options: RestoreOptions, result: RestoreResult) -> None:
        with tempfile.TemporaryDirectory(prefix="sshwarden-restore-") as tmp:
            staging = Path(tmp)
            try:
                with tarfile.open(archive, "r:gz") as tar:
                    extracted = _extract_flat(tar, staging)
            except (OSError, tarfile.TarError) as e:
                raise ArchiveReadError(str(archive), str(e)) from e

            metadata_path = staging / BACKUP_METADATA_FILENAME
            if metadata_path.is_file():
                try:
                    result.metadata = BackupMetadata.model_validate_json(metadata_path.read_bytes())
                    logger.info("Restoring backup from %s", result.metadata.created_at.isoformat())
                except ValidationError as e:
                    logger.warning("Ignoring unreadable backup metadata: %s", e)
            tracked = set(result.metadata.files) if result.metadata else None

            try:
                self.ssh_dir.mkdir(mode=SSH_DIR_MODE, parents=True, exist_ok=True)
            except OSError as e:
                raise SSHDirectoryMissingError(str(self.ssh_dir)) from e

            stamp = int(time.time() * 1000)
            for name in extracted:
                if name == BACKUP_METADATA_FILENAME:
                    continue
                if tracked is not None and name not in tracked:
                    result.untracked.append(name)

                source = staging / name
                target = self.ssh_dir / name
                if target.is_dir():
                    logger.warning("Cannot restore %s: a directory of that name exists", name)
                    result.failed.append(name)
                    continue
                try:
                    if not target.exists():
                        shutil.copy2(source, target)
                        result.restored.append(name)
                        logger.info("Restored file: %s", name)
                    elif options.overwrite_existing:
                        shutil.copy2(source, target)
                        result.overwritten.append(name)
                        logger.info("Overwrote file: %s", name)
                    elif options.merge_duplicates:
                        new_name = f"{name}.restored-{stamp}"
                        shutil.copy2(source, self.ssh_dir / new_name)
                        result.merged[name] = new_name
                        logger.info("Merged file: %s -> %s", name, new_name)
                    else:
                        result.skipped.append(name)
                        logger.info("Skipped existing file: %s", name)
                except OSError as e:
                    logger.warning("Failed to restore file %s: %s", name, e)
                    result.failed.append(name)

    async def restore(self, options: RestoreOptions) -> RestoreResult:
        """Restore an archive into the SSH directory under the options' conflict policy.

        Per-file outcomes are reported in the result; only an unreadable
        archive or an uncreatable SSH directory raise.
        """
        archive = Path(options.backup_path).expanduser()
        if not await LocalFS.file_exists(archive):
            raise BackupNotFoundError(str(archive))
        logger.info("Restoring backup from %s", archive)
        result = RestoreResult(backup_path=str(archive))

        if options.create_backup and await LocalFS.directory_exists(self.ssh_dir):
            try:
                result.safety_backup = await self.create(archive.parent)
                logger.info("Pre-restore backup created: %s", result.safety_backup.path)
            except (SSHWardenError, OSError) as e:
                logger.warning("Failed to create pre-restore backup: %s", e)

        await asyncio.to_thread(self._restore_sync, archive, options, result)
        logger.info(
            "Backup restored: %d restored, %d overwritten, %d merged, %d skipped, %d failed",
            len(result.restored),
            len(result.overwritten),
            len(result.merged),
            len(result.skipped),
            len(result.failed),
        )
        return result
