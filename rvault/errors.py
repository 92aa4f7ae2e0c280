"""Error types raised by the vault engine.

Engine components raise these; only the command layer turns them into
user-facing messages and exit codes.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for every error the vault engine raises."""


class NotInitialized(VaultError):
    pass


class InvalidName(VaultError):
    pass


class NotFound(VaultError):
    pass


class _EngineFailure(VaultError):
    """A subprocess exited non-zero; keeps its diagnostic output."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        detail = self.stderr.strip()
        return f"{base}\n{detail}" if detail else base


class EncryptionFailed(_EngineFailure):
    pass


class DecryptionFailed(_EngineFailure):
    pass


class KeyToolError(_EngineFailure):
    pass


class OtpComputationError(VaultError):
    pass


class InvalidOtpUri(VaultError):
    pass


class OtpDecodeError(VaultError):
    pass


class ClipboardUnavailable(VaultError):
    pass


class VaultIOError(VaultError):
    """Filesystem fault while reading or writing the vault."""
