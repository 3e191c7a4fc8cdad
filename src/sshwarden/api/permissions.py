"""Permission check and fix API endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sshwarden.dependencies import Permissions
from sshwarden.schemas.permission import FixAllResult, FixRequest, PermissionRecord
from sshwarden.schemas.response import APIResponse

router = APIRouter()


@router.get("", response_model=APIResponse[list[PermissionRecord]])
async def check_all(engine: Permissions):
    return APIResponse.ok(await engine.check_all())


@router.post("/check", response_model=APIResponse[PermissionRecord])
async def check_path(request: FixRequest, engine: Permissions):
    return APIResponse.ok(await engine.check(request.path, request.file_type))


@router.post("/fix", response_model=APIResponse[PermissionRecord])
async def fix_path(request: FixRequest, engine: Permissions):
    """Fix one path and return its state afterwards."""
    await engine.fix(request.path, request.file_type)
    return APIResponse.ok(await engine.check(request.path, request.file_type))


@router.post("/fix-all", response_model=APIResponse[FixAllResult])
async def fix_all(engine: Permissions):
    return APIResponse.ok(await engine.fix_all())
