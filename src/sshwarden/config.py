"""Application configuration via pydantic-settings."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

APP_NAME = "sshwarden"
APP_VERSION = "0.1.0"

# Names inside the SSH directory
SSH_CONFIG_FILENAME = "config"
KNOWN_HOSTS_FILENAME = "known_hosts"
PUBLIC_KEY_SUFFIX = ".pub"

# Backup archive naming
BACKUP_FILE_PREFIX = "ssh_backup_"
BACKUP_FILE_EXTENSION = ".tar.gz"
BACKUP_METADATA_FILENAME = "backup-metadata.json"


class Settings(BaseSettings):
    model_config = {"env_prefix": "SSHWARDEN_", "case_sensitive": False}

    # Paths
    ssh_dir: Path = Path("~/.ssh")
    backup_dir: Path = Path("~/ssh-backups")

    @field_validator("ssh_dir", "backup_dir", mode="after")
    @classmethod
    def expand_home(cls, v: Path) -> Path:
        return v.expanduser()

    # External tools
    keygen_binary: str = "ssh-keygen"
    ssh_binary: str = "ssh"
    tool_timeout: int = 30

    # Connection testing
    ssh_timeout: int = 10

    # Permissions
    acl_backend: str = "auto"  # auto | icacls | posix
    acl_principal: str | None = None
    auto_fix_permissions: bool = True

    @field_validator("acl_backend")
    @classmethod
    def check_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("auto", "icacls", "posix"):
            raise ValueError(f"Unknown ACL backend: {v}")
        return v

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return json.loads(v)
        return v

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    # Recorded in backup metadata
    app_version: str = APP_VERSION

    @property
    def ssh_config_path(self) -> Path:
        return self.ssh_dir / SSH_CONFIG_FILENAME


settings = Settings()
