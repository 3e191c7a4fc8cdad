"""Connectivity checks for configured hosts using asyncssh."""

from __future__ import annotations

import asyncio
import logging
import socket
import time
from pathlib import Path
from typing import Any

import asyncssh

from sshwarden.schemas.system import ConnectionTestResult

logger = logging.getLogger(__name__)

SSH_ERROR_MESSAGES = {
    "Connection refused": (
        "The server refused the connection. Check if SSH is running on the target "
        "server and the port is correct."
    ),
    "Connection timed out": (
        "The connection attempt timed out. Check your network connection and ensure "
        "the server is reachable."
    ),
    "Permission denied (publickey)": (
        "Authentication failed. The server rejected your SSH key. Verify the public key "
        "is added to the server's authorized_keys file."
    ),
    "Host key verification failed": (
        "The server's host key doesn't match the stored key. This could indicate a "
        "security issue or server change."
    ),
    "No route to host": (
        "Cannot reach the server. Check the hostname/IP address and your network connection."
    ),
    "Name or service not known": (
        "Cannot resolve the hostname. Check the hostname spelling and DNS configuration."
    ),
    "Bad owner or permissions": (
        'SSH key file has incorrect permissions. Use the "Fix Permissions" feature.'
    ),
}

GENERIC_FAILURE = "Connection failed. Check the error details for more information."

# Fallback substrings -> (message key, reported error type)
_LOOSE_PATTERNS = [
    (("timed out", "timeout"), "Connection timed out", "Connection timed out"),
    (("refused",), "Connection refused", "Connection refused"),
    (("Permission denied",), "Permission denied (publickey)", "Permission denied"),
    (("No route to host",), "No route to host", "No route to host"),
    (
        ("Could not resolve hostname", "Name or service not known", "nodename nor servname"),
        "Name or service not known",
        "DNS resolution failed",
    ),
    (("Host key verification failed", "Host key is not trusted"), "Host key verification failed",
     "Host key verification failed"),
    (("Bad owner or permissions",), "Bad owner or permissions", "Bad permissions"),
]


def classify_ssh_error(error_text: str) -> tuple[str, str]:
    """Map raw error text to (friendly message, error type)."""
    for pattern, message in SSH_ERROR_MESSAGES.items():
        if pattern in error_text:
            return message, pattern
    for needles, key, error_type in _LOOSE_PATTERNS:
        if any(n in error_text for n in needles):
            return SSH_ERROR_MESSAGES[key], error_type
    return GENERIC_FAILURE, "Unknown error"


def _describe(exc: BaseException) -> str:
    """Error text in the wording the classifier knows."""
    if isinstance(exc, asyncio.TimeoutError):
        return "Connection timed out"
    if isinstance(exc, asyncssh.PermissionDenied):
        return f"Permission denied (publickey): {exc}"
    if isinstance(exc, asyncssh.HostKeyNotVerifiable):
        return f"Host key verification failed: {exc}"
    if isinstance(exc, ConnectionRefusedError):
        return f"Connection refused: {exc}"
    if isinstance(exc, socket.gaierror):
        return f"Name or service not known: {exc}"
    return str(exc) or type(exc).__name__


class ConnectionTester:
    """Opens and immediately closes an SSH session to prove a host is usable.

    Only key-based authentication is attempted and host keys are not checked,
    so the test never prompts.
    """

    def __init__(self, config_path: Path, timeout: float = 10):
        self.config_path = Path(config_path)
        self.timeout = timeout

    async def _attempt(self, target: str, auth_method: str, **options: Any) -> ConnectionTestResult:
        start = time.monotonic()
        try:
            conn = await asyncio.wait_for(
                asyncssh.connect(
                    target,
                    known_hosts=None,
                    password_auth=False,
                    kbdint_auth=False,
                    **options,
                ),
                timeout=self.timeout,
            )
            conn.close()
            await conn.wait_closed()
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            elapsed = int((time.monotonic() - start) * 1000)
            details = _describe(e)
            message, error_type = classify_ssh_error(details)
            logger.warning("SSH connection failed to %s: %s", target, details)
            return ConnectionTestResult(
                success=False,
                message=message,
                connection_time_ms=elapsed,
                error=error_type,
                error_details=details,
            )

        elapsed = int((time.monotonic() - start) * 1000)
        logger.info("SSH connection successful to %s (%dms)", target, elapsed)
        return ConnectionTestResult(
            success=True,
            message="Connection successful",
            auth_method=auth_method,
            connection_time_ms=elapsed,
        )

    async def test(self, alias: str) -> ConnectionTestResult:
        """Connect using everything the SSH config says about ``alias``."""
        logger.info("Testing SSH connection to %s", alias)
        config = [str(self.config_path)] if self.config_path.is_file() else []
        return await self._attempt(alias, "publickey", config=config)

    async def test_with_options(
        self,
        hostname: str,
        port: int = 22,
        user: str | None = None,
        identity_file: str | None = None,
    ) -> ConnectionTestResult:
        target = f"{user}@{hostname}:{port}" if user else f"{hostname}:{port}"
        logger.info("Testing SSH connection to %s", target)
        options: dict[str, Any] = {"port": port, "config": []}
        if user:
            options["username"] = user
        if identity_file:
            options["client_keys"] = [str(Path(identity_file).expanduser())]
        return await self._attempt(
            hostname, "publickey" if identity_file else "default", **options
        )


async def check_port(hostname: str, port: int = 22, timeout: float = 5) -> bool:
    """True if a TCP connection to hostname:port opens within ``timeout``."""
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(hostname, port), timeout=timeout
        )
    except (OSError, asyncio.TimeoutError) as e:
        logger.info("SSH port not reachable on %s:%d: %s", hostname, port, e)
        return False
    writer.close()
    await writer.wait_closed()
    logger.info("SSH port reachable on %s:%d", hostname, port)
    return True
