"""Backup API endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Query

from sshwarden.config import settings
from sshwarden.core.errors import BackupNotFoundError
from sshwarden.core.filesystem import LocalFS
from sshwarden.dependencies import Snapshots
from sshwarden.schemas.backup import (
    BackupCreateRequest,
    BackupInfo,
    BackupMetadata,
    RestoreOptions,
    RestoreResult,
)
from sshwarden.schemas.response import APIResponse

router = APIRouter()


@router.get("", response_model=APIResponse[list[BackupInfo]])
async def list_backups(snapshots: Snapshots, directory: str | None = None):
    return APIResponse.ok(await snapshots.list(directory or settings.backup_dir))


@router.post("", response_model=APIResponse[BackupInfo], status_code=201)
async def create_backup(request: BackupCreateRequest, snapshots: Snapshots):
    return APIResponse.ok(await snapshots.create(request.destination_dir or settings.backup_dir))


@router.get("/metadata", response_model=APIResponse[BackupMetadata | None])
async def get_metadata(snapshots: Snapshots, path: str = Query(...)):
    """Metadata of one archive; data is null when the archive carries none."""
    if not await LocalFS.file_exists(Path(path)):
        raise BackupNotFoundError(path)
    return APIResponse.ok(await snapshots.metadata(path))


@router.post("/restore", response_model=APIResponse[RestoreResult])
async def restore_backup(request: RestoreOptions, snapshots: Snapshots):
    return APIResponse.ok(await snapshots.restore(request))


@router.delete("", response_model=APIResponse[None])
async def delete_backup(snapshots: Snapshots, path: str = Query(...)):
    await snapshots.delete(path)
    return APIResponse.ok()
