"""FastAPI dependency injection.

Components in ``core/`` never read ``settings``; these factories hand them
paths, binaries and timeouts through their constructors.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from sshwarden.config import settings
from sshwarden.core.config_codec import ConfigCodec
from sshwarden.core.connection_tester import ConnectionTester
from sshwarden.core.key_inventory import KeyInventory
from sshwarden.core.permissions import PermissionEngine, make_backend
from sshwarden.core.snapshot import SnapshotManager


def get_codec() -> ConfigCodec:
    return ConfigCodec(settings.ssh_config_path)


def get_inventory(codec: Annotated[ConfigCodec, Depends(get_codec)]) -> KeyInventory:
    return KeyInventory(
        settings.ssh_dir,
        codec,
        keygen_binary=settings.keygen_binary,
        tool_timeout=settings.tool_timeout,
    )


def get_permission_engine() -> PermissionEngine:
    return PermissionEngine(
        settings.ssh_dir,
        make_backend(settings.acl_backend),
        principal=settings.acl_principal,
        tool_timeout=settings.tool_timeout,
    )


def get_snapshot_manager() -> SnapshotManager:
    return SnapshotManager(settings.ssh_dir, settings.app_version)


def get_connection_tester() -> ConnectionTester:
    return ConnectionTester(settings.ssh_config_path, timeout=settings.ssh_timeout)


# Common dependency aliases
Codec = Annotated[ConfigCodec, Depends(get_codec)]
Inventory = Annotated[KeyInventory, Depends(get_inventory)]
Permissions = Annotated[PermissionEngine, Depends(get_permission_engine)]
Snapshots = Annotated[SnapshotManager, Depends(get_snapshot_manager)]
Tester = Annotated[ConnectionTester, Depends(get_connection_tester)]
