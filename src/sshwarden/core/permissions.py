"""Permission policy for the SSH directory, enforced through the platform ACL tool."""

from __future__ import annotations

import getpass
import logging
import os
import sys
from pathlib import Path

from sshwarden.config import KNOWN_HOSTS_FILENAME, PUBLIC_KEY_SUFFIX, SSH_CONFIG_FILENAME
from sshwarden.core.errors import (
    DelegateFailureError,
    IdentityResolutionError,
    InvalidInputError,
    PermissionFixError,
    SSHDirectoryMissingError,
    SSHWardenError,
)
from sshwarden.core.filesystem import LocalFS
from sshwarden.core.runner import run_tool
from sshwarden.schemas.permission import FileType, FixAllResult, PermissionRecord

logger = logging.getLogger(__name__)

USER_ONLY = "Current User Only"

EXPECTED_PERMISSIONS: dict[FileType, str] = {
    FileType.DIRECTORY: f"Full Control ({USER_ONLY})",
    FileType.PRIVATE_KEY: f"Read ({USER_ONLY})",
    FileType.PUBLIC_KEY: "Read (Current User + Everyone)",
    FileType.CONFIG: f"Read ({USER_ONLY})",
    FileType.OTHER: f"Read ({USER_ONLY})",
}

UNKNOWN = "Unknown"


def classify(path: Path, ssh_dir: Path, is_dir: bool = False) -> FileType:
    """File class used to pick the expected permissions."""
    path = Path(path)
    if is_dir or path == Path(ssh_dir):
        return FileType.DIRECTORY
    if path.name.endswith(PUBLIC_KEY_SUFFIX):
        return FileType.PUBLIC_KEY
    if path.name == SSH_CONFIG_FILENAME:
        return FileType.CONFIG
    if path.parent == Path(ssh_dir):
        return FileType.PRIVATE_KEY
    return FileType.OTHER


def resolve_principal(explicit: str | None = None) -> str:
    """The account ACL grants are made for.

    Raises IdentityResolutionError when nothing identifies the current user.
    """
    if explicit:
        return explicit
    for var in ("USERNAME", "USER"):
        if os.environ.get(var):
            return os.environ[var]
    try:
        return getpass.getuser()
    except (OSError, KeyError) as e:
        raise IdentityResolutionError() from e


class IcaclsBackend:
    """Windows ACLs through icacls."""

    name = "icacls"

    def __init__(self, binary: str = "icacls"):
        self.binary = binary

    def inspect_command(self, path: Path) -> list[str]:
        return [self.binary, str(path)]

    def summarize(self, output: str, path: Path, principal: str | None) -> str:
        """Condense icacls output to a grant list, or a single label when the
        principal is the only grantee."""
        aces = []
        for line in output.splitlines():
            line = line.strip()
            if not line or line.startswith(("Successfully processed", "Failed processing")):
                continue
            if line.startswith(str(path)):
                line = line[len(str(path)):].strip()
            if line:
                aces.append(line)
        if not aces:
            return UNKNOWN
        if len(aces) == 1 and principal and principal.lower() in aces[0].lower():
            if "(F)" in aces[0]:
                return "Full Control"
            if "(M)" in aces[0]:
                return "Modify"
            if "(R)" in aces[0]:
                return "Read"
        return ", ".join(aces)

    def has_broader_grant(self, summary: str) -> bool:
        lowered = summary.lower()
        return "everyone" in lowered or "users" in lowered

    def fix_command(self, path: Path, file_type: FileType, principal: str) -> list[str]:
        args = [self.binary, str(path), "/inheritance:r"]
        if file_type == FileType.DIRECTORY:
            return args + ["/grant:r", f"{principal}:(OI)(CI)F"]
        if file_type == FileType.PUBLIC_KEY:
            return args + ["/grant:r", f"{principal}:R", "/grant:r", "Everyone:R"]
        return args + ["/grant:r", f"{principal}:R"]

    def is_informational(self, stderr: str) -> bool:
        return "processed" in stderr


class PosixAclBackend:
    """POSIX ACLs through getfacl/setfacl. "Everyone" maps to the other class.

    The owner entry always stands for the current user, so the principal is
    not part of the commands.
    """

    name = "posix"

    _MODES = {
        FileType.DIRECTORY: "u::rwx,g::---,o::---",
        FileType.PUBLIC_KEY: "u::r--,g::r--,o::r--",
    }
    _DEFAULT_MODE = "u::r--,g::---,o::---"

    def __init__(self, getfacl: str = "getfacl", setfacl: str = "setfacl"):
        self.getfacl = getfacl
        self.setfacl = setfacl

    def inspect_command(self, path: Path) -> list[str]:
        return [self.getfacl, "--omit-header", "--absolute-names", str(path)]

    def summarize(self, output: str, path: Path, principal: str | None) -> str:
        entries = [
            line.strip()
            for line in output.splitlines()
            if line.strip() and not line.startswith(("#", "default:"))
        ]
        return ", ".join(entries) if entries else UNKNOWN

    def has_broader_grant(self, summary: str) -> bool:
        for entry in summary.split(","):
            parts = entry.strip().split(":")
            if len(parts) != 3:
                continue
            tag, qualifier, perms = parts
            # Owner and mask don't grant anything to other principals
            if (tag == "user" and not qualifier) or tag == "mask":
                continue
            if perms.strip("-"):
                return True
        return False

    def fix_command(self, path: Path, file_type: FileType, principal: str) -> list[str]:
        return [self.setfacl, "-b", "-m", self._MODES.get(file_type, self._DEFAULT_MODE), str(path)]

    def is_informational(self, stderr: str) -> bool:
        return "Removing leading" in stderr


def make_backend(name: str = "auto") -> IcaclsBackend | PosixAclBackend:
    if name == "auto":
        name = "icacls" if sys.platform == "win32" else "posix"
    if name == "icacls":
        return IcaclsBackend()
    if name == "posix":
        return PosixAclBackend()
    raise InvalidInputError(f"Unknown ACL backend: {name}")


class PermissionEngine:
    """Checks and fixes the SSH directory against ``EXPECTED_PERMISSIONS``."""

    def __init__(
        self,
        ssh_dir: Path,
        backend: IcaclsBackend | PosixAclBackend,
        principal: str | None = None,
        tool_timeout: float = 30,
    ):
        self.ssh_dir = Path(ssh_dir)
        self.backend = backend
        self.principal = principal
        self.tool_timeout = tool_timeout

    async def classify(self, path: Path) -> FileType:
        return classify(Path(path), self.ssh_dir, await LocalFS.directory_exists(path))

    def _principal_or_none(self) -> str | None:
        try:
            return resolve_principal(self.principal)
        except IdentityResolutionError:
            return None

    async def check(self, path: Path, file_type: FileType | None = None) -> PermissionRecord:
        path = Path(path)
        file_type = file_type or await self.classify(path)
        expected = EXPECTED_PERMISSIONS[file_type]

        try:
            result = await run_tool(self.backend.inspect_command(path), timeout=self.tool_timeout)
            if not result.ok:
                raise DelegateFailureError(self.backend.name, result.returncode, result.output)
            current = self.backend.summarize(result.stdout, path, self._principal_or_none())
        except DelegateFailureError as e:
            logger.error("Failed to check permissions for %s: %s", path, e.output)
            return PermissionRecord(
                path=str(path),
                file_type=file_type,
                current_permissions=UNKNOWN,
                expected_permissions=expected,
                is_correct=False,
            )

        # Public keys are accepted as they are; only user-only policies are checked
        is_correct = True
        if USER_ONLY in expected:
            is_correct = current != UNKNOWN and not self.backend.has_broader_grant(current)

        return PermissionRecord(
            path=str(path),
            file_type=file_type,
            current_permissions=current,
            expected_permissions=expected,
            is_correct=is_correct,
        )

    async def check_all(self) -> list[PermissionRecord]:
        if not await LocalFS.directory_exists(self.ssh_dir):
            raise SSHDirectoryMissingError(str(self.ssh_dir))

        records = [await self.check(self.ssh_dir, FileType.DIRECTORY)]
        for filename in await LocalFS.list_dir(self.ssh_dir):
            if KNOWN_HOSTS_FILENAME in filename:
                continue
            records.append(await self.check(self.ssh_dir / filename))

        logger.info("Checked %d files/directories", len(records))
        return records

    async def fix(self, path: Path, file_type: FileType | None = None) -> None:
        path = Path(path)
        principal = resolve_principal(self.principal)
        file_type = file_type or await self.classify(path)
        logger.info("Fixing permissions for %s (%s)", path, file_type.value)

        result = await run_tool(
            self.backend.fix_command(path, file_type, principal), timeout=self.tool_timeout
        )
        if not result.ok:
            logger.error("Failed to fix permissions for %s: %s", path, result.output)
            raise PermissionFixError(self.backend.name, result.returncode, result.output)
        if result.stderr.strip() and not self.backend.is_informational(result.stderr):
            logger.warning("Permission fix warning for %s: %s", path, result.stderr.strip())

    async def fix_key_pair(self, private_path: Path, public_path: Path | None = None) -> list[str]:
        """Apply the key policies to a freshly written pair. Returns error messages."""
        targets = [(Path(private_path), FileType.PRIVATE_KEY)]
        if public_path is not None:
            targets.append((Path(public_path), FileType.PUBLIC_KEY))
        errors = []
        for path, file_type in targets:
            try:
                await self.fix(path, file_type)
            except SSHWardenError as e:
                logger.warning("Could not fix permissions for %s: %s", path, e)
                errors.append(f"{path}: {e}")
        return errors

    async def fix_all(self) -> FixAllResult:
        """Fix every non-conforming file; failures are collected, not raised."""
        resolve_principal(self.principal)
        summary = FixAllResult()

        for record in await self.check_all():
            if record.is_correct:
                continue
            try:
                await self.fix(Path(record.path), record.file_type)
                summary.fixed += 1
            except SSHWardenError as e:
                summary.failed += 1
                summary.errors.append(f"{record.path}: {e}")
                logger.warning("Failed to fix permissions for %s: %s", record.path, e)

        logger.info("Fixed %d files, %d failed", summary.fixed, summary.failed)
        return summary
