"""Permission check schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class FileType(str, Enum):
    DIRECTORY = "directory"
    PRIVATE_KEY = "private-key"
    PUBLIC_KEY = "public-key"
    CONFIG = "config"
    OTHER = "other"


class PermissionRecord(BaseModel):
    path: str
    file_type: FileType
    current_permissions: str
    expected_permissions: str
    is_correct: bool


class FixAllResult(BaseModel):
    fixed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class FixRequest(BaseModel):
    path: str
    file_type: FileType | None = None
