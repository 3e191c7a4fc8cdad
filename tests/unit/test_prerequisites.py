"""Tests for environment prerequisite checks."""

from unittest.mock import AsyncMock, patch

import pytest

from sshwarden.core.errors import DelegateFailureError
from sshwarden.core.permissions import PermissionEngine, PosixAclBackend
from sshwarden.core.prerequisites import (
    check_directory_permissions,
    check_openssh,
    check_path,
    check_prerequisites,
    check_ssh_config,
    check_ssh_directory,
)
from sshwarden.core.runner import ToolResult

WHICH = "sshwarden.core.prerequisites.shutil.which"
RUN_TOOL = "sshwarden.core.prerequisites.run_tool"
ACL_RUN_TOOL = "sshwarden.core.permissions.run_tool"


def _engine(ssh_dir):
    return PermissionEngine(ssh_dir, PosixAclBackend(), principal="tester")


class TestIndividualChecks:
    def test_openssh_found(self):
        with patch(WHICH, return_value="/usr/bin/ssh"):
            check = check_openssh()
        assert check.status == "pass"
        assert check.details == "Found at: /usr/bin/ssh"

    def test_openssh_missing(self):
        with patch(WHICH, return_value=None):
            assert check_openssh().status == "fail"

    @pytest.mark.asyncio
    async def test_directory(self, ssh_dir, tmp_path):
        assert (await check_ssh_directory(ssh_dir)).status == "pass"
        missing = await check_ssh_directory(tmp_path / "absent")
        assert missing.status == "warning"
        assert missing.fixable

    @pytest.mark.asyncio
    async def test_config(self, ssh_dir, config_path):
        assert (await check_ssh_config(config_path)).status == "pass"
        assert (await check_ssh_config(ssh_dir / "other")).status == "warning"

    @pytest.mark.asyncio
    async def test_directory_permissions(self, ssh_dir):
        owner_only = ToolResult(0, "user::rwx\ngroup::---\nother::---\n", "")
        with patch(ACL_RUN_TOOL, AsyncMock(return_value=owner_only)):
            assert (await check_directory_permissions(_engine(ssh_dir))).status == "pass"

        broad = ToolResult(0, "user::rwx\ngroup::r-x\nother::r-x\n", "")
        with patch(ACL_RUN_TOOL, AsyncMock(return_value=broad)):
            assert (await check_directory_permissions(_engine(ssh_dir))).status == "warning"

    @pytest.mark.asyncio
    async def test_path_reports_version_from_stderr(self):
        version = ToolResult(0, "", "OpenSSH_9.6p1, OpenSSL 3.0.13\n")
        with patch(RUN_TOOL, AsyncMock(return_value=version)):
            check = await check_path()
        assert check.status == "pass"
        assert check.details == "OpenSSH_9.6p1, OpenSSL 3.0.13"

    @pytest.mark.asyncio
    async def test_path_missing(self):
        with patch(RUN_TOOL, AsyncMock(side_effect=DelegateFailureError("ssh", None, "not found"))):
            assert (await check_path()).status == "warning"


class TestCheckPrerequisites:
    @pytest.mark.asyncio
    async def test_fresh_machine(self, tmp_path):
        missing = tmp_path / ".ssh"
        with patch(WHICH, return_value=None), \
             patch(RUN_TOOL, AsyncMock(side_effect=DelegateFailureError("ssh"))):
            result = await check_prerequisites(missing, missing / "config", _engine(missing))

        assert result.openssh_installed.status == "fail"
        assert result.ssh_directory_exists.status == "warning"
        assert result.ssh_config_exists.status == "warning"
        assert result.permissions_correct.status == "warning"
        assert result.path_configured.status == "warning"
