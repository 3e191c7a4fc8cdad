"""Local file access for the SSH directory. Pure I/O, no policy."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

SSH_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


@dataclass
class FileInfo:
    """File metadata from os.stat."""

    size: int
    created_at: datetime
    modified_at: datetime
    permissions: str  # Octal string like "0600"
    is_dir: bool = False


class LocalFS:
    """Async wrappers around pathlib/shutil; blocking calls run in a thread."""

    @staticmethod
    async def file_exists(path: Path) -> bool:
        return await asyncio.to_thread(Path(path).is_file)

    @staticmethod
    async def directory_exists(path: Path) -> bool:
        return await asyncio.to_thread(Path(path).is_dir)

    @staticmethod
    async def list_dir(path: Path) -> list[str]:
        """Entry names in a directory, sorted."""
        entries = await asyncio.to_thread(os.listdir, path)
        return sorted(entries)

    @staticmethod
    async def read_text(path: Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    @staticmethod
    async def read_head(path: Path, max_bytes: int = 4096) -> str:
        """First bytes of a file decoded leniently; used for content sniffing."""

        def _read() -> str:
            with open(path, "rb") as f:
                return f.read(max_bytes).decode("utf-8", errors="replace")

        return await asyncio.to_thread(_read)

    @staticmethod
    async def write_text_atomic(path: Path, content: str, mode: int = PRIVATE_FILE_MODE) -> None:
        """Write via a temp file in the same directory and os.replace."""

        def _write() -> None:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                    f.write(content)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, mode)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        await asyncio.to_thread(_write)
        logger.info("Wrote file: %s", path)

    @staticmethod
    async def copy_file(source: Path, destination: Path) -> None:
        await asyncio.to_thread(shutil.copy2, source, destination)

    @staticmethod
    async def delete_file(path: Path) -> None:
        await asyncio.to_thread(Path(path).unlink)
        logger.info("Deleted file: %s", path)

    @staticmethod
    async def stat_file(path: Path) -> FileInfo:
        st = await asyncio.to_thread(os.stat, path)
        # st_birthtime only exists on some platforms
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return FileInfo(
            size=st.st_size,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc),
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            permissions=oct(stat.S_IMODE(st.st_mode))[2:].zfill(4),
            is_dir=stat.S_ISDIR(st.st_mode),
        )


async def ensure_ssh_directory(ssh_dir: Path) -> bool:
    """Create the SSH directory (0700) if missing. Returns False on failure."""
    if await LocalFS.directory_exists(ssh_dir):
        return True
    try:
        await asyncio.to_thread(Path(ssh_dir).mkdir, mode=SSH_DIR_MODE, parents=True, exist_ok=True)
        logger.info("Created SSH directory: %s", ssh_dir)
        return True
    except OSError as e:
        logger.error("Failed to create SSH directory %s: %s", ssh_dir, e)
        return False


async def ensure_ssh_config(config_path: Path) -> bool:
    """Create an empty SSH config file (0600) if missing. Returns False on failure."""
    if await LocalFS.file_exists(config_path):
        return True
    try:
        await LocalFS.write_text_atomic(config_path, "# SSH Config File\n")
        logger.info("Created SSH config file: %s", config_path)
        return True
    except OSError as e:
        logger.error("Failed to create SSH config file %s: %s", config_path, e)
        return False
