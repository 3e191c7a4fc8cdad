"""SSH host configuration schemas."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator, model_validator

# Directives modelled as typed fields, keyed by their lowercase keyword
MODELLED_DIRECTIVES = {
    "hostname": "HostName",
    "port": "Port",
    "user": "User",
    "identityfile": "IdentityFile",
    "preferredauthentications": "PreferredAuthentications",
}


def valid_port(value: str) -> bool:
    return value.isdecimal() and 1 <= int(value) <= 65535


def _reject_newlines(v: str | None) -> str | None:
    if v is not None and ("\n" in v or "\r" in v):
        raise ValueError("value must be a single line")
    return v


class HostEntry(BaseModel):
    """One ``Host`` block of the SSH config file."""

    alias: str = Field(min_length=1)
    hostname: str = Field(min_length=1)
    port: int | None = Field(default=None, ge=1, le=65535)
    user: str | None = None
    identity_file: str | None = None
    preferred_authentications: str | None = None
    additional_options: dict[str, str] = Field(default_factory=dict)

    @field_validator("alias", "hostname", "user", "identity_file", "preferred_authentications")
    @classmethod
    def single_line(cls, v: str | None) -> str | None:
        return _reject_newlines(v)

    @field_validator("additional_options")
    @classmethod
    def check_options(cls, v: dict[str, str]) -> dict[str, str]:
        for key, value in v.items():
            if not key or any(c.isspace() for c in key) or "=" in key:
                raise ValueError(f"invalid directive name: {key!r}")
            lowered = key.lower()
            reserved = lowered == "host" or lowered in MODELLED_DIRECTIVES
            # An unusable Port is carried verbatim so a rewrite keeps it
            if reserved and not (lowered == "port" and not valid_port(value)):
                raise ValueError(f"{key} must be set through its own field")
            _reject_newlines(value)
        return v

    @model_validator(mode="after")
    def single_port(self) -> HostEntry:
        if self.port is not None and any(k.lower() == "port" for k in self.additional_options):
            raise ValueError("Port given both as a field and as an option")
        return self

    @property
    def expanded_identity_file(self) -> str | None:
        """IdentityFile with the home-directory shorthand expanded."""
        if not self.identity_file:
            return None
        return os.path.expanduser(self.identity_file)


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
