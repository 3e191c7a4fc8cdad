"""SSH key schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator

KeyType = Literal["ed25519", "rsa", "ecdsa", "dsa"]

KEY_TYPE_BITS: dict[str, list[int]] = {
    "rsa": [2048, 3072, 4096],
    "ed25519": [256],
    "ecdsa": [256, 384, 521],
    "dsa": [1024],
}


class KeyRecord(BaseModel):
    """A private key found in the SSH directory, with its config associations."""

    name: str
    type: KeyType
    fingerprint: str
    bits: int | None = None
    comment: str | None = None
    has_passphrase: bool
    private_key_path: str
    public_key_path: str
    has_public_key: bool
    size: int
    created_at: datetime
    modified_at: datetime
    associated_hosts: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_mapped(self) -> bool:
        return bool(self.associated_hosts)


class KeyGenOptions(BaseModel):
    type: KeyType = "ed25519"
    bits: int | None = None
    name: str = Field(min_length=1)
    passphrase: str = ""
    comment: str | None = None
    output_path: str | None = None

    @field_validator("name")
    @classmethod
    def plain_filename(cls, v: str) -> str:
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("key name must be a plain file name")
        return v


class KeyImportRequest(BaseModel):
    source_path: str


class KeyExportRequest(BaseModel):
    destination_path: str
