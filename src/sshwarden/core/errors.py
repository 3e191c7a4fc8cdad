"""Exception hierarchy shared by the core components and the API layer."""

from __future__ import annotations


class SSHWardenError(Exception):
    """Base class for all expected failures."""

    status_code = 500


# Not found


class NotFoundError(SSHWardenError):
    status_code = 404


class KeyNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"Private key not found: {name}")
        self.name = name


class HostNotFoundError(NotFoundError):
    def __init__(self, alias: str):
        super().__init__(f"Host configuration not found: {alias}")
        self.alias = alias


class BackupNotFoundError(NotFoundError):
    def __init__(self, path: str):
        super().__init__(f"Backup file does not exist: {path}")
        self.path = path


# Conflicts


class ConflictError(SSHWardenError):
    status_code = 409


class DuplicateHostError(ConflictError):
    def __init__(self, alias: str):
        super().__init__(f"Host configuration already exists: {alias}")
        self.alias = alias


class KeyExistsError(ConflictError):
    def __init__(self, name: str):
        super().__init__(f"Key already exists: {name}")
        self.name = name


# Delegated tools


class DelegateFailureError(SSHWardenError):
    """An external tool exited non-zero, timed out or printed unparseable output.

    ``str()`` stays generic; the raw output is kept on ``output`` for logging.
    """

    status_code = 502
    message = "External tool failed"

    def __init__(self, tool: str, returncode: int | None = None, output: str = ""):
        super().__init__(f"{self.message} ({tool})")
        self.tool = tool
        self.returncode = returncode
        self.output = output


class FingerprintError(DelegateFailureError):
    message = "Failed to read key fingerprint"


class KeyGenerationError(DelegateFailureError):
    message = "Failed to generate SSH key"


class PermissionFixError(DelegateFailureError):
    message = "Failed to fix permissions"


# Preconditions


class PreconditionError(SSHWardenError):
    status_code = 412


class SSHDirectoryMissingError(PreconditionError):
    def __init__(self, path: str):
        super().__init__(f"SSH directory does not exist: {path}")
        self.path = path


class IdentityResolutionError(PreconditionError):
    def __init__(self):
        super().__init__("Could not determine current username")


class ArchiveReadError(PreconditionError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read backup archive {path}: {reason}")
        self.path = path


class ArchiveWriteError(SSHWardenError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to create backup archive {path}: {reason}")
        self.path = path


# Config file I/O


class ConfigReadError(SSHWardenError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to read SSH config {path}: {reason}")
        self.path = path


class ConfigWriteError(SSHWardenError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to write SSH config {path}: {reason}")
        self.path = path


class InvalidInputError(SSHWardenError):
    status_code = 422
