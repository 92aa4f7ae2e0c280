"""
Encryption gateway: encrypt and decrypt secrets through an external engine.

The engine is an abstract collaborator; ``GpgEngine`` runs the ``gpg`` binary,
one subprocess per call. A passphrase, when one is needed, is handed to gpg on
its standard input (``--passphrase-fd 0``) so it never shows up in process
listings.

Usage:
    gateway = EncryptionGateway(GpgEngine())
    blob = gateway.encrypt(b"hunter2", "0123456789ABCDEF")
    gateway.decrypt_text(Path("~/.vault/mail.gpg"))
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from rvault.errors import DecryptionFailed, EncryptionFailed

logger = logging.getLogger(__name__)

PassphraseSource = Callable[[], str | None]


class EncryptionEngine(ABC):
    """Asymmetric encryption engine contract."""

    @abstractmethod
    def encrypt(self, data: bytes, recipient: str) -> bytes:
        """Encrypt ``data`` for ``recipient``. Raises EncryptionFailed."""

    @abstractmethod
    def decrypt(self, path: Path, passphrase: str | None = None) -> bytes:
        """Decrypt the file at ``path``. Raises DecryptionFailed."""


class GpgEngine(EncryptionEngine):
    """Run GnuPG as a subprocess."""

    def __init__(self, executable: str = "gpg"):
        self.executable = executable

    def encrypt(self, data: bytes, recipient: str) -> bytes:
        cmd = [self.executable, "--batch", "--encrypt", "--recipient", recipient]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, input=data, capture_output=True)
        except OSError as e:
            raise EncryptionFailed(f"Failed to run {self.executable}: {e}") from e
        if result.returncode != 0:
            raise EncryptionFailed(
                "Failed to encrypt secret.", result.stderr.decode("utf-8", "replace")
            )
        return result.stdout

    def decrypt(self, path: Path, passphrase: str | None = None) -> bytes:
        cmd = [self.executable, "--decrypt"]
        stdin_data = None
        if passphrase is not None:
            cmd += ["--batch", "--pinentry-mode", "loopback", "--passphrase-fd", "0"]
            stdin_data = passphrase.encode("utf-8")
        cmd.append(str(path))
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, input=stdin_data, capture_output=True)
        except OSError as e:
            raise DecryptionFailed(f"Failed to run {self.executable}: {e}") from e
        if result.returncode != 0:
            raise DecryptionFailed(
                "Failed to decrypt file.", result.stderr.decode("utf-8", "replace")
            )
        return result.stdout


class EncryptionGateway:
    """Front door for encryption; asks ``passphrase_source`` only when decrypting."""

    def __init__(
        self,
        engine: EncryptionEngine,
        passphrase_source: PassphraseSource | None = None,
    ):
        self.engine = engine
        self.passphrase_source = passphrase_source

    def encrypt(self, data: bytes, recipient: str) -> bytes:
        logger.info("Encrypting %d bytes for %s", len(data), recipient)
        return self.engine.encrypt(data, recipient)

    def decrypt(self, path: Path, passphrase: str | None = None) -> bytes:
        if passphrase is None and self.passphrase_source is not None:
            passphrase = self.passphrase_source()
        logger.info("Decrypting %s", path)
        return self.engine.decrypt(path, passphrase)

    def decrypt_text(self, path: Path, passphrase: str | None = None) -> str:
        data = self.decrypt(path, passphrase)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed(f"Decrypted content of {path} is not UTF-8 text.") from e
