"""Environment checks shown before the user starts managing keys."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from sshwarden.core.errors import DelegateFailureError
from sshwarden.core.filesystem import LocalFS
from sshwarden.core.permissions import PermissionEngine
from sshwarden.core.runner import run_tool
from sshwarden.schemas.permission import FileType
from sshwarden.schemas.system import PrerequisiteCheck, PrerequisitesResult

logger = logging.getLogger(__name__)


def check_openssh(ssh_binary: str = "ssh") -> PrerequisiteCheck:
    found = shutil.which(ssh_binary)
    if found:
        return PrerequisiteCheck(
            name="OpenSSH Client",
            status="pass",
            message="OpenSSH client is installed",
            details=f"Found at: {found}",
        )
    return PrerequisiteCheck(
        name="OpenSSH Client",
        status="fail",
        message="OpenSSH client not found",
        details="Install the OpenSSH client package for your platform",
    )


async def check_ssh_directory(ssh_dir: Path) -> PrerequisiteCheck:
    if await LocalFS.directory_exists(ssh_dir):
        return PrerequisiteCheck(
            name=".ssh Directory", status="pass", message=".ssh directory exists", details=str(ssh_dir)
        )
    return PrerequisiteCheck(
        name=".ssh Directory",
        status="warning",
        message=".ssh directory not found",
        details=f"Expected at: {ssh_dir}",
        fixable=True,
    )


async def check_ssh_config(config_path: Path) -> PrerequisiteCheck:
    if await LocalFS.file_exists(config_path):
        return PrerequisiteCheck(
            name="SSH Config File", status="pass", message="SSH config file exists", details=str(config_path)
        )
    return PrerequisiteCheck(
        name="SSH Config File",
        status="warning",
        message="SSH config file not found",
        details=f"Expected at: {config_path}",
        fixable=True,
    )


async def check_directory_permissions(engine: PermissionEngine) -> PrerequisiteCheck:
    if not await LocalFS.directory_exists(engine.ssh_dir):
        return PrerequisiteCheck(
            name="Directory Permissions",
            status="warning",
            message="Cannot check permissions - directory does not exist",
            fixable=True,
        )
    record = await engine.check(engine.ssh_dir, FileType.DIRECTORY)
    if record.is_correct:
        return PrerequisiteCheck(
            name="Directory Permissions",
            status="pass",
            message="Directory is restricted to the current user",
            details=record.current_permissions,
            fixable=True,
        )
    return PrerequisiteCheck(
        name="Directory Permissions",
        status="warning",
        message="Directory permissions are broader than expected",
        details=f"{record.current_permissions} (expected {record.expected_permissions})",
        fixable=True,
    )


async def check_path(ssh_binary: str = "ssh", timeout: float = 10) -> PrerequisiteCheck:
    try:
        result = await run_tool([ssh_binary, "-V"], timeout=timeout)
    except DelegateFailureError:
        result = None
    if result is None or not result.ok:
        return PrerequisiteCheck(
            name="PATH Configuration",
            status="warning",
            message="SSH not found in PATH",
            details="OpenSSH may be installed but not in system PATH",
        )
    # ssh -V prints its version on stderr
    return PrerequisiteCheck(
        name="PATH Configuration",
        status="pass",
        message="SSH is accessible from PATH",
        details=(result.stderr or result.stdout).strip(),
    )


async def check_prerequisites(
    ssh_dir: Path,
    config_path: Path,
    engine: PermissionEngine,
    ssh_binary: str = "ssh",
    timeout: float = 10,
) -> PrerequisitesResult:
    logger.info("Checking prerequisites")
    result = PrerequisitesResult(
        openssh_installed=check_openssh(ssh_binary),
        ssh_directory_exists=await check_ssh_directory(ssh_dir),
        ssh_config_exists=await check_ssh_config(config_path),
        permissions_correct=await check_directory_permissions(engine),
        path_configured=await check_path(ssh_binary, timeout),
    )
    logger.info("Prerequisites check completed")
    return result
