"""Vault data models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class IdentityRecord(BaseModel):
    """A secret key from the key tool's listing: key id plus its user ids."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""

    def __str__(self) -> str:
        return f"({self.id}, {self.name})"


class IdentityBinding(BaseModel):
    """Contents of the vault's binding file."""

    id: str


class PlainSecret(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str


class OtpProvisioningUri(BaseModel):
    """A parsed ``otpauth://`` URI. Validation of the parameters is deferred
    to code generation so that a malformed URI can still be classified."""

    model_config = ConfigDict(frozen=True)

    uri: str
    type: str = "totp"
    issuer: str | None = None
    account: str | None = None
    shared_secret: str | None = None
    parameters: dict[str, str] = {}


class SecretRecord(BaseModel):
    """A logical name and the plaintext to be encrypted under it."""

    name: str
    payload: str
