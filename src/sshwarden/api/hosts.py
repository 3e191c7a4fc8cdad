"""SSH config host API endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sshwarden.dependencies import Codec, Tester
from sshwarden.schemas.host import HostEntry, ValidationReport
from sshwarden.schemas.response import APIResponse
from sshwarden.schemas.system import ConnectionTestResult

router = APIRouter()


@router.get("", response_model=APIResponse[list[HostEntry]])
async def list_hosts(codec: Codec):
    return APIResponse.ok(await codec.parse())


@router.get("/validate", response_model=APIResponse[ValidationReport])
async def validate_config(codec: Codec):
    return APIResponse.ok(await codec.validate())


@router.get("/{alias}", response_model=APIResponse[HostEntry])
async def get_host(alias: str, codec: Codec):
    return APIResponse.ok(await codec.get(alias))


@router.post("", response_model=APIResponse[HostEntry], status_code=201)
async def add_host(request: HostEntry, codec: Codec):
    await codec.add(request)
    return APIResponse.ok(request)


@router.put("/{alias}", response_model=APIResponse[HostEntry])
async def update_host(alias: str, request: HostEntry, codec: Codec):
    await codec.update(alias, request)
    return APIResponse.ok(request)


@router.delete("/{alias}", response_model=APIResponse[None])
async def delete_host(alias: str, codec: Codec):
    await codec.delete(alias)
    return APIResponse.ok()


@router.post("/{alias}/test", response_model=APIResponse[ConnectionTestResult])
async def test_host(alias: str, codec: Codec, tester: Tester):
    await codec.get(alias)
    return APIResponse.ok(await tester.test(alias))
