"""SSH Keys API endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter

from sshwarden.config import PUBLIC_KEY_SUFFIX, settings
from sshwarden.core.errors import KeyNotFoundError
from sshwarden.core.filesystem import LocalFS
from sshwarden.core.permissions import PermissionEngine
from sshwarden.dependencies import Inventory, Permissions
from sshwarden.schemas.response import APIResponse
from sshwarden.schemas.ssh_key import KeyExportRequest, KeyGenOptions, KeyImportRequest, KeyRecord

router = APIRouter()


async def _secure_key(engine: PermissionEngine, record: KeyRecord) -> None:
    if settings.auto_fix_permissions:
        await engine.fix_key_pair(
            Path(record.private_key_path),
            Path(record.public_key_path) if record.has_public_key else None,
        )


@router.get("", response_model=APIResponse[list[KeyRecord]])
async def list_keys(inventory: Inventory):
    return APIResponse.ok(await inventory.list())


@router.get("/{name}", response_model=APIResponse[KeyRecord])
async def get_key(name: str, inventory: Inventory):
    return APIResponse.ok(await inventory.get(name))


@router.post("/generate", response_model=APIResponse[KeyRecord], status_code=201)
async def generate_key(request: KeyGenOptions, inventory: Inventory, engine: Permissions):
    record = await inventory.generate(request)
    await _secure_key(engine, record)
    return APIResponse.ok(record)


@router.post("/import", response_model=APIResponse[KeyRecord], status_code=201)
async def import_key(request: KeyImportRequest, inventory: Inventory, engine: Permissions):
    record = await inventory.import_key(request.source_path)
    await _secure_key(engine, record)
    return APIResponse.ok(record)


@router.post("/{name}/export", response_model=APIResponse[list[str]])
async def export_key(name: str, request: KeyExportRequest, inventory: Inventory):
    return APIResponse.ok(await inventory.export(name, request.destination_path))


@router.delete("/{name}", response_model=APIResponse[None])
async def delete_key(name: str, inventory: Inventory):
    await inventory.delete(name)
    return APIResponse.ok()


@router.get("/{name}/public", response_model=APIResponse[str])
async def get_public_key(name: str, inventory: Inventory):
    """Public key text, for copying to authorized_keys."""
    record = await inventory.get(name)
    if not record.has_public_key:
        raise KeyNotFoundError(f"{name}{PUBLIC_KEY_SUFFIX}")
    text = await LocalFS.read_text(Path(record.public_key_path))
    return APIResponse.ok(text.strip())
