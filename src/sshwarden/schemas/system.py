"""Connection test and prerequisite schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    auth_method: str | None = None
    connection_time_ms: int | None = None
    error: str | None = None
    error_details: str | None = None


class ConnectionTestRequest(BaseModel):
    hostname: str
    port: int = 22
    user: str | None = None
    identity_file: str | None = None


class PrerequisiteCheck(BaseModel):
    name: str
    status: Literal["pass", "fail", "warning"]
    message: str
    details: str | None = None
    fixable: bool = False


class PrerequisitesResult(BaseModel):
    openssh_installed: PrerequisiteCheck
    ssh_directory_exists: PrerequisiteCheck
    ssh_config_exists: PrerequisiteCheck
    permissions_correct: PrerequisiteCheck
    path_configured: PrerequisiteCheck
