"""Test fixtures and configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from sshwarden.config import settings
from sshwarden.core.runner import ToolResult

SAMPLE_CONFIG = """\
# personal hosts
Host github
    HostName github.com
    User git
    IdentityFile ~/.ssh/id_ed25519

Host work
    HostName 10.0.0.5
    Port 2222
    User deploy
    IdentityFile ~/.ssh/work_rsa
    ForwardAgent yes
    ServerAliveInterval 60

Host incomplete
    User nobody
"""


@pytest.fixture
def ssh_dir(tmp_path) -> Path:
    d = tmp_path / ".ssh"
    d.mkdir(mode=0o700)
    return d


@pytest.fixture
def sample_config() -> str:
    return SAMPLE_CONFIG


@pytest.fixture
def config_path(ssh_dir) -> Path:
    path = ssh_dir / "config"
    path.write_text(SAMPLE_CONFIG)
    return path


@pytest.fixture
def keygen_line():
    """Build the ToolResult ssh-keygen -lf would return."""

    def _make(
        bits: int = 256,
        fingerprint: str = "SHA256:abc123",
        comment: str = "user@host",
        key_type: str = "ED25519",
    ) -> ToolResult:
        return ToolResult(returncode=0, stdout=f"{bits} {fingerprint} {comment} ({key_type})\n", stderr="")

    return _make


@pytest.fixture
def app_settings(monkeypatch, ssh_dir, tmp_path):
    """Point the global settings at a temporary SSH directory."""
    monkeypatch.setattr(settings, "ssh_dir", ssh_dir)
    monkeypatch.setattr(settings, "backup_dir", tmp_path / "backups")
    monkeypatch.setattr(settings, "acl_backend", "posix")
    monkeypatch.setattr(settings, "acl_principal", "tester")
    monkeypatch.setattr(settings, "auto_fix_permissions", False)
    return settings
