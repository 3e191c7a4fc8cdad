"""Key discovery in the SSH directory and key/host association."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sshwarden.config import KNOWN_HOSTS_FILENAME, PUBLIC_KEY_SUFFIX, SSH_CONFIG_FILENAME
from sshwarden.core.config_codec import ConfigCodec
from sshwarden.core.errors import (
    ConfigReadError,
    FingerprintError,
    InvalidInputError,
    KeyExistsError,
    KeyGenerationError,
    KeyNotFoundError,
    SSHDirectoryMissingError,
    SSHWardenError,
)
from sshwarden.core.filesystem import LocalFS, ensure_ssh_directory
from sshwarden.core.fingerprint import (
    FingerprintInfo,
    is_passphrase_protected,
    is_private_key_header,
    matches_key_name,
    parse_keygen_output,
)
from sshwarden.core.runner import run_tool
from sshwarden.schemas.host import HostEntry
from sshwarden.schemas.ssh_key import KeyGenOptions, KeyRecord

logger = logging.getLogger(__name__)


def _is_excluded(filename: str) -> bool:
    return (
        filename.endswith(PUBLIC_KEY_SUFFIX)
        or KNOWN_HOSTS_FILENAME in filename
        or filename == SSH_CONFIG_FILENAME
    )


def _check_key_name(name: str) -> None:
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise InvalidInputError(f"Invalid key name: {name!r}")


class KeyInventory:
    """Lists and manages the private keys of one SSH directory."""

    def __init__(
        self,
        ssh_dir: Path,
        codec: ConfigCodec,
        keygen_binary: str = "ssh-keygen",
        tool_timeout: float = 30,
    ):
        self.ssh_dir = Path(ssh_dir)
        self.codec = codec
        self.keygen_binary = keygen_binary
        self.tool_timeout = tool_timeout

    # -- association --------------------------------------------------------

    def _normalize(self, path: str) -> str:
        """Expand ~, anchor relative paths at the SSH directory and lowercase."""
        expanded = os.path.expanduser(path)
        if not os.path.isabs(expanded):
            expanded = os.path.join(self.ssh_dir, expanded)
        return os.path.normpath(expanded).lower()

    def associated_hosts(self, key_path: Path, entries: list[HostEntry]) -> list[str]:
        """Aliases whose IdentityFile resolves to ``key_path``, in config order."""
        key_full = self._normalize(str(key_path))
        key_base = key_path.name.lower()
        aliases: list[str] = []
        for entry in entries:
            if not entry.identity_file:
                continue
            identity = self._normalize(entry.identity_file)
            if identity == key_full or os.path.basename(identity) == key_base:
                if entry.alias not in aliases:
                    aliases.append(entry.alias)
        return aliases

    async def _config_entries(self) -> list[HostEntry]:
        try:
            return await self.codec.parse()
        except ConfigReadError as e:
            logger.warning("Cannot resolve key associations: %s", e)
            return []

    # -- per-key metadata ---------------------------------------------------

    async def fingerprint(self, path: Path) -> FingerprintInfo:
        result = await run_tool([self.keygen_binary, "-lf", str(path)], timeout=self.tool_timeout)
        if not result.ok:
            logger.error("Fingerprint failed for %s: %s", path, result.output)
            raise FingerprintError(self.keygen_binary, result.returncode, result.output)
        info = parse_keygen_output(result.stdout)
        if info is None:
            logger.error("Unparseable fingerprint output for %s: %s", path, result.output)
            raise FingerprintError(self.keygen_binary, result.returncode, result.output)
        return info

    async def _is_private_key(self, path: Path) -> bool:
        if not await LocalFS.file_exists(path):
            return False
        if matches_key_name(path.name):
            return True
        try:
            return is_private_key_header(await LocalFS.read_head(path, 256))
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return False

    async def _build_record(self, path: Path, entries: list[HostEntry]) -> KeyRecord:
        info = await self.fingerprint(path)
        public_path = Path(str(path) + PUBLIC_KEY_SUFFIX)
        has_passphrase = is_passphrase_protected(await LocalFS.read_head(path, 65536))
        stats = await LocalFS.stat_file(path)
        return KeyRecord(
            name=path.name,
            type=info.type,
            fingerprint=info.fingerprint,
            bits=info.bits,
            comment=info.comment,
            has_passphrase=has_passphrase,
            private_key_path=str(path),
            public_key_path=str(public_path),
            has_public_key=await LocalFS.file_exists(public_path),
            size=stats.size,
            created_at=stats.created_at,
            modified_at=stats.modified_at,
            associated_hosts=self.associated_hosts(path, entries),
        )

    # -- operations ---------------------------------------------------------

    async def list(self) -> list[KeyRecord]:
        """All private keys in the SSH directory with their host associations.

        A key whose metadata cannot be read is left out with a warning.
        """
        if not await LocalFS.directory_exists(self.ssh_dir):
            raise SSHDirectoryMissingError(str(self.ssh_dir))

        entries = await self._config_entries()
        keys: list[KeyRecord] = []
        seen: set[str] = set()

        for filename in await LocalFS.list_dir(self.ssh_dir):
            if filename in seen or _is_excluded(filename):
                continue
            path = self.ssh_dir / filename
            if not await self._is_private_key(path):
                continue
            try:
                keys.append(await self._build_record(path, entries))
                seen.add(filename)
            except (SSHWardenError, OSError) as e:
                logger.warning("Failed to get info for key %s: %s", filename, e)

        logger.info("Found %d SSH keys", len(keys))
        return keys

    async def get(self, name: str) -> KeyRecord:
        _check_key_name(name)
        path = self.ssh_dir / name
        if not await LocalFS.file_exists(path):
            raise KeyNotFoundError(name)
        return await self._build_record(path, await self._config_entries())

    async def generate(self, options: KeyGenOptions) -> KeyRecord:
        """Create a key pair with ssh-keygen."""
        path = Path(options.output_path).expanduser() if options.output_path else self.ssh_dir / options.name
        if await LocalFS.file_exists(path):
            raise KeyExistsError(path.name)
        if path.parent == self.ssh_dir:
            await ensure_ssh_directory(self.ssh_dir)

        args = [self.keygen_binary, "-t", options.type]
        if options.type in ("rsa", "ecdsa") and options.bits:
            args += ["-b", str(options.bits)]
        if options.comment:
            args += ["-C", options.comment]
        args += ["-f", str(path), "-N", options.passphrase, "-q"]

        logger.info("Generating %s key: %s", options.type, path)
        result = await run_tool(args, timeout=self.tool_timeout)
        if not result.ok:
            logger.error("ssh-keygen failed for %s: %s", path, result.output)
            raise KeyGenerationError(self.keygen_binary, result.returncode, result.output)

        logger.info("SSH key generated: %s", path)
        return await self._build_record(path, await self._config_entries())

    async def delete(self, name: str) -> None:
        _check_key_name(name)
        private_path = self.ssh_dir / name
        public_path = Path(str(private_path) + PUBLIC_KEY_SUFFIX)
        removed = False
        for path in (private_path, public_path):
            if await LocalFS.file_exists(path):
                await LocalFS.delete_file(path)
                removed = True
        if not removed:
            raise KeyNotFoundError(name)
        logger.info("SSH key deleted: %s", name)

    async def import_key(self, source_path: str | Path) -> KeyRecord:
        """Copy a key (and its .pub, if any) into the SSH directory.

        The source is fingerprinted first so a file that is not a key is
        rejected before anything is copied.
        """
        source = Path(source_path).expanduser()
        if not await LocalFS.file_exists(source):
            raise KeyNotFoundError(str(source))
        destination = self.ssh_dir / source.name
        if await LocalFS.file_exists(destination):
            raise KeyExistsError(source.name)

        await self.fingerprint(source)
        await ensure_ssh_directory(self.ssh_dir)

        await LocalFS.copy_file(source, destination)
        logger.info("Copied private key to %s", destination)
        source_public = Path(str(source) + PUBLIC_KEY_SUFFIX)
        if await LocalFS.file_exists(source_public):
            await LocalFS.copy_file(source_public, Path(str(destination) + PUBLIC_KEY_SUFFIX))
            logger.info("Copied public key to %s%s", destination, PUBLIC_KEY_SUFFIX)

        return await self._build_record(destination, await self._config_entries())

    async def export(self, name: str, destination_path: str | Path) -> list[str]:
        """Copy a key pair out of the SSH directory. Returns the written paths."""
        _check_key_name(name)
        private_path = self.ssh_dir / name
        if not await LocalFS.file_exists(private_path):
            raise KeyNotFoundError(name)

        destination = Path(destination_path).expanduser()
        if await LocalFS.directory_exists(destination):
            destination = destination / name

        written = [str(destination)]
        await LocalFS.copy_file(private_path, destination)
        public_path = Path(str(private_path) + PUBLIC_KEY_SUFFIX)
        if await LocalFS.file_exists(public_path):
            public_destination = Path(str(destination) + PUBLIC_KEY_SUFFIX)
            await LocalFS.copy_file(public_path, public_destination)
            written.append(str(public_destination))

        logger.info("SSH key %s exported to %s", name, destination)
        return written
