"""Round-trip parsing and serialization of the SSH host configuration file.

Only ``Host`` blocks are modelled. Writes regenerate the whole file from the
parsed entries: directives this module does not model are carried in
``HostEntry.additional_options`` and survive, comments and blank-line layout
do not.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from sshwarden.core.errors import (
    ConfigReadError,
    ConfigWriteError,
    DuplicateHostError,
    HostNotFoundError,
)
from sshwarden.core.filesystem import LocalFS
from sshwarden.schemas.host import MODELLED_DIRECTIVES, HostEntry, ValidationReport, valid_port

logger = logging.getLogger(__name__)

CONFIG_HEADER = "# SSH Config File\n# Generated by sshwarden\n\n"
INDENT = "    "

# Keyword, then either "=" (optionally padded) or whitespace, then the value
_DIRECTIVE_RE = re.compile(r"^(\S+?)(?:\s*=\s*|\s+)(.*)$")

_FIELD_NAMES = {
    "hostname": "hostname",
    "port": "port",
    "user": "user",
    "identityfile": "identity_file",
    "preferredauthentications": "preferred_authentications",
}


def _tokenize(text: str) -> Iterator[tuple[int, str, str]]:
    """Yield (line number, keyword, value) for every directive line."""
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        m = _DIRECTIVE_RE.match(line)
        if m:
            yield lineno, m.group(1), m.group(2).strip()
        else:
            yield lineno, line, ""


def parse_text(text: str) -> list[HostEntry]:
    """Parse config text into complete entries, in file order.

    Blocks without a HostName are dropped. Duplicate aliases are kept.
    For the typed directives the first occurrence in a block wins, as it
    does for ssh itself, and the same holds for any other keyword, compared
    case-insensitively. A Port that is not a usable number stays in
    additional_options so a rewrite does not lose it.

    IdentityFile is kept exactly as written, so "~/" is not expanded here;
    use HostEntry.expanded_identity_file for the resolved path.
    """
    entries: list[HostEntry] = []
    current: dict | None = None
    seen: set[str] = set()

    def commit() -> None:
        if current is None or not current["alias"] or not current.get("hostname"):
            if current is not None:
                logger.debug("Dropping incomplete host block '%s'", current["alias"])
            return
        try:
            entries.append(HostEntry(**current))
        except ValidationError as e:
            logger.warning("Dropping invalid host block '%s': %s", current["alias"], e)

    for _lineno, keyword, value in _tokenize(text):
        lowered = keyword.lower()

        if lowered == "host":
            commit()
            current = {"alias": value, "additional_options": {}}
            seen = set()
            continue

        # Global directives before the first Host are not modelled
        if current is None:
            continue

        if lowered in seen:
            continue
        seen.add(lowered)

        if lowered in MODELLED_DIRECTIVES and (lowered != "port" or valid_port(value)):
            field = _FIELD_NAMES[lowered]
            current[field] = int(value) if field == "port" else value
        else:
            current["additional_options"][keyword] = value

    commit()
    return entries


def serialize(entries: list[HostEntry]) -> str:
    """Render entries as config text. Pure and deterministic."""
    lines = [CONFIG_HEADER]
    for entry in entries:
        lines.append(f"Host {entry.alias}\n")
        lines.append(f"{INDENT}HostName {entry.hostname}\n")
        if entry.port:
            lines.append(f"{INDENT}Port {entry.port}\n")
        if entry.user:
            lines.append(f"{INDENT}User {entry.user}\n")
        if entry.identity_file:
            lines.append(f"{INDENT}IdentityFile {entry.identity_file}\n")
        if entry.preferred_authentications:
            lines.append(f"{INDENT}PreferredAuthentications {entry.preferred_authentications}\n")
        for key, value in entry.additional_options.items():
            lines.append(f"{INDENT}{key} {value}".rstrip() + "\n")
        lines.append("\n")
    return "".join(lines)


def validate_text(text: str) -> ValidationReport:
    """Report problems that parse_text silently tolerates."""
    errors: list[str] = []
    warnings: list[str] = []
    seen_aliases: set[str] = set()
    alias: str | None = None
    has_hostname = False
    seen_fields: set[str] = set()

    def close_block() -> None:
        if alias is not None and not has_hostname:
            errors.append(f"Host {alias}: Missing HostName")

    for lineno, keyword, value in _tokenize(text):
        lowered = keyword.lower()
        if lowered == "host":
            close_block()
            alias, has_hostname, seen_fields = value, False, set()
            if not value:
                errors.append(f"Line {lineno}: Host directive without alias")
            elif value in seen_aliases:
                errors.append(f"Line {lineno}: Duplicate Host alias '{value}'")
            seen_aliases.add(value)
            continue
        if lowered == "match":
            warnings.append(f"Line {lineno}: Match blocks are not supported and will not be preserved")
        if alias is None:
            warnings.append(f"Line {lineno}: '{keyword}' outside any Host block will not be preserved")
            continue
        if lowered == "hostname" and value:
            has_hostname = True
        if lowered == "port" and not valid_port(value):
            errors.append(f"Host {alias}: Invalid Port '{value}'")
        if lowered in MODELLED_DIRECTIVES:
            if lowered in seen_fields:
                warnings.append(f"Line {lineno}: repeated {keyword} in Host {alias}; only the first is kept")
            seen_fields.add(lowered)

    close_block()
    return ValidationReport(valid=not errors, errors=errors, warnings=warnings)


class ConfigCodec:
    """Read-modify-write access to one SSH config file."""

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)

    async def _read(self) -> str | None:
        if not await LocalFS.file_exists(self.config_path):
            return None
        try:
            return await LocalFS.read_text(self.config_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read SSH config %s: %s", self.config_path, e)
            raise ConfigReadError(str(self.config_path), str(e)) from e

    async def parse(self) -> list[HostEntry]:
        """Parse the config file. A missing file yields an empty list."""
        text = await self._read()
        if text is None:
            logger.info("SSH config file %s does not exist", self.config_path)
            return []
        entries = parse_text(text)
        logger.info("Parsed %d SSH host configurations", len(entries))
        return entries

    async def write(self, entries: list[HostEntry]) -> None:
        try:
            await LocalFS.write_text_atomic(self.config_path, serialize(entries))
        except OSError as e:
            logger.error("Failed to write SSH config %s: %s", self.config_path, e)
            raise ConfigWriteError(str(self.config_path), str(e)) from e
        logger.info("SSH config written with %d hosts", len(entries))

    async def get(self, alias: str) -> HostEntry:
        for entry in await self.parse():
            if entry.alias == alias:
                return entry
        raise HostNotFoundError(alias)

    async def add(self, entry: HostEntry) -> None:
        entries = await self.parse()
        if any(e.alias == entry.alias for e in entries):
            raise DuplicateHostError(entry.alias)
        entries.append(entry)
        await self.write(entries)
        logger.info("Host configuration added: %s", entry.alias)

    async def update(self, alias: str, entry: HostEntry) -> None:
        """Replace the first entry with ``alias``; entry.alias may rename it."""
        entries = await self.parse()
        index = next((i for i, e in enumerate(entries) if e.alias == alias), None)
        if index is None:
            raise HostNotFoundError(alias)
        if entry.alias != alias and any(e.alias == entry.alias for e in entries):
            raise DuplicateHostError(entry.alias)
        entries[index] = entry
        await self.write(entries)
        logger.info("Host configuration updated: %s", alias)

    async def delete(self, alias: str) -> None:
        """Remove every entry with ``alias``."""
        entries = await self.parse()
        remaining = [e for e in entries if e.alias != alias]
        if len(remaining) == len(entries):
            raise HostNotFoundError(alias)
        await self.write(remaining)
        logger.info("Host configuration deleted: %s", alias)

    async def validate(self) -> ValidationReport:
        text = await self._read()
        if text is None:
            return ValidationReport(valid=True, warnings=["SSH config file does not exist"])
        return validate_text(text)
