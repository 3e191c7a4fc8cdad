"""Tests for file classification, ACL backends and the permission engine (mocked ACL tools)."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from sshwarden.core.errors import (
    DelegateFailureError,
    IdentityResolutionError,
    InvalidInputError,
    PermissionFixError,
    SSHDirectoryMissingError,
)
from sshwarden.core.permissions import (
    EXPECTED_PERMISSIONS,
    UNKNOWN,
    IcaclsBackend,
    PermissionEngine,
    PosixAclBackend,
    classify,
    make_backend,
    resolve_principal,
)
from sshwarden.core.runner import ToolResult
from sshwarden.schemas.permission import FileType

RUN_TOOL = "sshwarden.core.permissions.run_tool"

OWNER_ONLY_ACL = "user::rw-\ngroup::---\nother::---\n"
BROAD_ACL = "user::rw-\ngroup::r--\nother::r--\n"


class TestClassify:
    def test_directory(self, ssh_dir):
        assert classify(ssh_dir, ssh_dir) == FileType.DIRECTORY
        assert classify(ssh_dir / "sub", ssh_dir, is_dir=True) == FileType.DIRECTORY

    def test_public_key(self, ssh_dir):
        assert classify(ssh_dir / "id_rsa.pub", ssh_dir) == FileType.PUBLIC_KEY

    def test_config(self, ssh_dir):
        assert classify(ssh_dir / "config", ssh_dir) == FileType.CONFIG

    def test_anything_else_in_directory_is_private(self, ssh_dir):
        assert classify(ssh_dir / "id_rsa", ssh_dir) == FileType.PRIVATE_KEY
        assert classify(ssh_dir / "notes.txt", ssh_dir) == FileType.PRIVATE_KEY

    def test_outside_directory(self, ssh_dir, tmp_path):
        assert classify(tmp_path / "elsewhere", ssh_dir) == FileType.OTHER

    def test_expected_strings(self):
        assert EXPECTED_PERMISSIONS[FileType.DIRECTORY] == "Full Control (Current User Only)"
        assert EXPECTED_PERMISSIONS[FileType.PRIVATE_KEY] == "Read (Current User Only)"
        assert EXPECTED_PERMISSIONS[FileType.PUBLIC_KEY] == "Read (Current User + Everyone)"
        assert EXPECTED_PERMISSIONS[FileType.CONFIG] == "Read (Current User Only)"


class TestResolvePrincipal:
    def test_explicit(self):
        assert resolve_principal("alice") == "alice"

    def test_environment(self, monkeypatch):
        monkeypatch.delenv("USERNAME", raising=False)
        monkeypatch.setenv("USER", "bob")
        assert resolve_principal() == "bob"

    def test_unresolvable(self, monkeypatch):
        monkeypatch.delenv("USERNAME", raising=False)
        monkeypatch.delenv("USER", raising=False)
        with patch("sshwarden.core.permissions.getpass.getuser", side_effect=OSError("no user")):
            with pytest.raises(IdentityResolutionError):
                resolve_principal()


class TestIcaclsBackend:
    backend = IcaclsBackend()

    def test_single_owner_grant(self):
        path = Path(r"C:\Users\alice\.ssh\id_rsa")
        output = f"{path} DESKTOP\\alice:(R)\n\nSuccessfully processed 1 files; Failed processing 0 files\n"
        assert self.backend.summarize(output, path, "alice") == "Read"

    def test_multiple_grants(self):
        path = Path(r"C:\Users\alice\.ssh\id_rsa")
        output = f"{path} DESKTOP\\alice:(F)\n    BUILTIN\\Users:(RX)\n\nSuccessfully processed 1 files\n"
        summary = self.backend.summarize(output, path, "alice")
        assert summary == "DESKTOP\\alice:(F), BUILTIN\\Users:(RX)"
        assert self.backend.has_broader_grant(summary)

    def test_fix_commands(self):
        path = Path("id_rsa")
        assert self.backend.fix_command(path, FileType.DIRECTORY, "alice") == [
            "icacls", "id_rsa", "/inheritance:r", "/grant:r", "alice:(OI)(CI)F",
        ]
        assert self.backend.fix_command(path, FileType.PUBLIC_KEY, "alice") == [
            "icacls", "id_rsa", "/inheritance:r", "/grant:r", "alice:R", "/grant:r", "Everyone:R",
        ]
        assert self.backend.fix_command(path, FileType.PRIVATE_KEY, "alice")[-1] == "alice:R"

    def test_processed_notice_is_informational(self):
        assert self.backend.is_informational("Successfully processed 1 files")


class TestPosixAclBackend:
    backend = PosixAclBackend()

    def test_summary(self):
        output = "# file: x\nuser::rw-\ngroup::---\nother::---\ndefault:user::rwx\n"
        assert self.backend.summarize(output, Path("x"), None) == "user::rw-, group::---, other::---"

    def test_owner_only_is_not_broad(self):
        assert not self.backend.has_broader_grant("user::rw-, group::---, mask::rwx, other::---")

    def test_named_user_is_broad(self):
        assert self.backend.has_broader_grant("user::rw-, user:bob:r--, group::---, other::---")

    def test_other_read_is_broad(self):
        assert self.backend.has_broader_grant("user::rw-, group::---, other::r--")

    def test_fix_commands(self):
        assert self.backend.fix_command(Path("d"), FileType.DIRECTORY, "u") == [
            "setfacl", "-b", "-m", "u::rwx,g::---,o::---", "d",
        ]
        assert self.backend.fix_command(Path("k.pub"), FileType.PUBLIC_KEY, "u")[3] == "u::r--,g::r--,o::r--"
        assert self.backend.fix_command(Path("k"), FileType.PRIVATE_KEY, "u")[3] == "u::r--,g::---,o::---"


class TestMakeBackend:
    def test_explicit(self):
        assert isinstance(make_backend("icacls"), IcaclsBackend)
        assert isinstance(make_backend("posix"), PosixAclBackend)

    def test_auto_on_linux(self):
        with patch("sshwarden.core.permissions.sys.platform", "linux"):
            assert isinstance(make_backend("auto"), PosixAclBackend)

    def test_unknown(self):
        with pytest.raises(InvalidInputError):
            make_backend("selinux")


def _engine(ssh_dir: Path) -> PermissionEngine:
    return PermissionEngine(ssh_dir, PosixAclBackend(), principal="tester")


class TestCheck:
    @pytest.mark.asyncio
    async def test_owner_only_is_correct(self, ssh_dir):
        key = ssh_dir / "id_rsa"
        key.write_text("k")
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(0, OWNER_ONLY_ACL, ""))):
            record = await _engine(ssh_dir).check(key)
        assert record.file_type == FileType.PRIVATE_KEY
        assert record.is_correct
        assert record.current_permissions == "user::rw-, group::---, other::---"

    @pytest.mark.asyncio
    async def test_broad_grant_is_incorrect(self, ssh_dir):
        key = ssh_dir / "id_rsa"
        key.write_text("k")
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(0, BROAD_ACL, ""))):
            record = await _engine(ssh_dir).check(key)
        assert not record.is_correct

    @pytest.mark.asyncio
    async def test_public_key_accepted_as_is(self, ssh_dir):
        pub = ssh_dir / "id_rsa.pub"
        pub.write_text("ssh-rsa AAAA")
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(0, BROAD_ACL, ""))):
            record = await _engine(ssh_dir).check(pub)
        assert record.is_correct

    @pytest.mark.asyncio
    async def test_tool_failure_gives_unknown(self, ssh_dir):
        with patch(RUN_TOOL, AsyncMock(side_effect=DelegateFailureError("getfacl", None, "not found"))):
            record = await _engine(ssh_dir).check(ssh_dir)
        assert record.current_permissions == UNKNOWN
        assert not record.is_correct

    @pytest.mark.asyncio
    async def test_non_zero_exit_gives_unknown(self, ssh_dir):
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(1, "", "Operation not supported"))):
            record = await _engine(ssh_dir).check(ssh_dir)
        assert record.current_permissions == UNKNOWN

    @pytest.mark.asyncio
    async def test_check_all_skips_known_hosts(self, ssh_dir):
        for name in ("config", "id_rsa", "id_rsa.pub", "known_hosts", "known_hosts.old"):
            (ssh_dir / name).write_text("x")
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(0, OWNER_ONLY_ACL, ""))):
            records = await _engine(ssh_dir).check_all()
        assert [Path(r.path).name for r in records] == [ssh_dir.name, "config", "id_rsa", "id_rsa.pub"]
        assert records[0].file_type == FileType.DIRECTORY

    @pytest.mark.asyncio
    async def test_check_all_missing_directory(self, tmp_path):
        with pytest.raises(SSHDirectoryMissingError):
            await _engine(tmp_path / "absent").check_all()


class TestFix:
    @pytest.mark.asyncio
    async def test_fix_runs_backend_command(self, ssh_dir):
        key = ssh_dir / "id_rsa"
        key.write_text("k")
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(0, "", ""))) as run:
            await _engine(ssh_dir).fix(key)
        assert run.call_args.args[0] == ["setfacl", "-b", "-m", "u::r--,g::---,o::---", str(key)]

    @pytest.mark.asyncio
    async def test_fix_failure(self, ssh_dir):
        with patch(RUN_TOOL, AsyncMock(return_value=ToolResult(1, "", "Operation not permitted"))):
            with pytest.raises(PermissionFixError):
                await _engine(ssh_dir).fix(ssh_dir)

    @pytest.mark.asyncio
    async def test_fix_key_pair_collects_errors(self, ssh_dir):
        key, pub = ssh_dir / "id_rsa", ssh_dir / "id_rsa.pub"

        async def fake_run(args, timeout=None):
            return ToolResult(1 if args[-1] == str(pub) else 0, "", "denied")

        with patch(RUN_TOOL, AsyncMock(side_effect=fake_run)) as run:
            errors = await _engine(ssh_dir).fix_key_pair(key, pub)
        assert run.call_count == 2
        assert len(errors) == 1
        assert str(pub) in errors[0]

    @pytest.mark.asyncio
    async def test_fix_all_counts_and_names_failures(self, ssh_dir):
        for name in ("config", "id_rsa", "id_ed25519", "id_ed25519.pub", "notes"):
            (ssh_dir / name).write_text("x")
        failing = str(ssh_dir / "id_rsa")

        async def fake_run(args, timeout=None):
            if args[0] == "getfacl":
                return ToolResult(0, BROAD_ACL, "")
            return ToolResult(1 if args[-1] == failing else 0, "", "Operation not permitted")

        with patch(RUN_TOOL, AsyncMock(side_effect=fake_run)):
            result = await _engine(ssh_dir).fix_all()

        # directory, config, id_ed25519, notes fixed; the public key needs nothing
        assert result.fixed == 4
        assert result.failed == 1
        assert result.errors[0].startswith(failing)

    @pytest.mark.asyncio
    async def test_fix_all_requires_identity(self, ssh_dir, monkeypatch):
        monkeypatch.delenv("USERNAME", raising=False)
        monkeypatch.delenv("USER", raising=False)
        engine = PermissionEngine(ssh_dir, PosixAclBackend())
        with patch("sshwarden.core.permissions.getpass.getuser", side_effect=KeyError("uid")):
            with pytest.raises(IdentityResolutionError):
                await engine.fix_all()
