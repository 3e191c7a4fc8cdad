"""Invocation of external command-line tools (ssh-keygen, icacls, setfacl...)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sshwarden.core.errors import DelegateFailureError

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Completed external process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined output for logging."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


async def run_tool(
    args: list[str],
    timeout: float | None = 30,
    input: str | None = None,
) -> ToolResult:
    """Run a tool without a shell and wait for it.

    Raises DelegateFailureError if the binary cannot be started or the
    timeout expires. A non-zero exit status is returned, not raised; callers
    decide what it means.
    """
    tool = args[0]
    logger.debug("Executing: %s", " ".join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("Failed to start %s: %s", tool, e)
        raise DelegateFailureError(tool, None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(input.encode() if input is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        logger.error("%s timed out after %ss", tool, timeout)
        raise DelegateFailureError(tool, None, f"timed out after {timeout}s") from e

    return ToolResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
