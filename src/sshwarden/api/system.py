"""Environment checks and connection testing endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from sshwarden.config import settings
from sshwarden.core.connection_tester import check_port
from sshwarden.core.filesystem import ensure_ssh_config, ensure_ssh_directory
from sshwarden.core.prerequisites import check_prerequisites
from sshwarden.dependencies import Permissions, Tester
from sshwarden.schemas.response import APIResponse
from sshwarden.schemas.system import ConnectionTestRequest, ConnectionTestResult, PrerequisitesResult

router = APIRouter()


class SystemInfo(BaseModel):
    app_version: str
    ssh_dir: str
    ssh_config_path: str
    backup_dir: str
    acl_backend: str


class PortCheckResult(BaseModel):
    hostname: str
    port: int
    reachable: bool


@router.get("/info", response_model=APIResponse[SystemInfo])
async def system_info(engine: Permissions):
    return APIResponse.ok(
        SystemInfo(
            app_version=settings.app_version,
            ssh_dir=str(settings.ssh_dir),
            ssh_config_path=str(settings.ssh_config_path),
            backup_dir=str(settings.backup_dir),
            acl_backend=engine.backend.name,
        )
    )


@router.get("/prerequisites", response_model=APIResponse[PrerequisitesResult])
async def prerequisites(engine: Permissions):
    result = await check_prerequisites(
        settings.ssh_dir,
        settings.ssh_config_path,
        engine,
        ssh_binary=settings.ssh_binary,
        timeout=settings.tool_timeout,
    )
    return APIResponse.ok(result)


@router.post("/init", response_model=APIResponse[bool])
async def initialize_ssh_directory():
    """Create the SSH directory and an empty config file if they are missing."""
    ok = await ensure_ssh_directory(settings.ssh_dir) and await ensure_ssh_config(settings.ssh_config_path)
    return APIResponse.ok(ok)


@router.post("/test-connection", response_model=APIResponse[ConnectionTestResult])
async def test_connection(request: ConnectionTestRequest, tester: Tester):
    result = await tester.test_with_options(
        request.hostname, request.port, request.user, request.identity_file
    )
    return APIResponse.ok(result)


@router.post("/check-port", response_model=APIResponse[PortCheckResult])
async def check_ssh_port(request: ConnectionTestRequest):
    reachable = await check_port(request.hostname, request.port, timeout=settings.ssh_timeout)
    return APIResponse.ok(PortCheckResult(hostname=request.hostname, port=request.port, reachable=reachable))
