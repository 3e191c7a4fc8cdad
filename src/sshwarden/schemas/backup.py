"""Backup and restore schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BackupMetadata(BaseModel):
    """Manifest stored as JSON at the archive root (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    created_at: datetime
    username: str
    computer_name: str
    app_version: str
    files: list[str] = Field(default_factory=list)
    file_count: int = 0


class BackupInfo(BaseModel):
    path: str
    metadata: BackupMetadata
    size: int
    skipped_files: list[str] = Field(default_factory=list)


class BackupCreateRequest(BaseModel):
    destination_dir: str | None = None


class RestoreOptions(BaseModel):
    backup_path: str
    overwrite_existing: bool = False
    merge_duplicates: bool = False
    create_backup: bool = True


class RestoreResult(BaseModel):
    backup_path: str
    metadata: BackupMetadata | None = None
    restored: list[str] = Field(default_factory=list)
    overwritten: list[str] = Field(default_factory=list)
    merged: dict[str, str] = Field(default_factory=dict)  # original -> new name
    skipped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)
    safety_backup: BackupInfo | None = None
