"""
Vault engine: composes the store, the encryption gateway, the key directory
and the OTP resolver into the operations the command line exposes.

Interactive decisions (which key, which secret) are passed in as callables so
the engine never prompts on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from rvault.clipboard import ClipboardSession
from rvault.config import VaultConfig
from rvault.errors import EncryptionFailed, NotFound, NotInitialized
from rvault.gpg import EncryptionGateway, GpgEngine, PassphraseSource
from rvault.identity import read_identity, write_identity
from rvault.keys import GpgKeyTool, KeyDirectory
from rvault.models import IdentityRecord, OtpProvisioningUri
from rvault.otp import (
    QrDecoder,
    ZbarDecoder,
    classify,
    current_code,
    parse_uri,
    provision,
    read_enrollment,
)
from rvault.store import SecretStore, validate_name

logger = logging.getLogger(__name__)


class Vault:
    """All vault operations against one vault directory."""

    def __init__(
        self,
        config: VaultConfig,
        *,
        store: SecretStore | None = None,
        gateway: EncryptionGateway | None = None,
        keys: KeyDirectory | None = None,
        decoder: QrDecoder | None = None,
        passphrase_source: PassphraseSource | None = None,
    ):
        self.config = config
        self.store = store or SecretStore(config.vault)
        self.gateway = gateway or EncryptionGateway(
            GpgEngine(config.gpg), passphrase_source=passphrase_source
        )
        self.keys = keys or KeyDirectory(GpgKeyTool(config.gpg))
        self.decoder = decoder or ZbarDecoder(config.zbarimg)
        self._key_id: str | None = None

    @property
    def root(self) -> Path:
        return self.store.root

    @property
    def key_id(self) -> str:
        """The bound key id. Raises NotInitialized."""
        if self._key_id is None:
            self._key_id = read_identity(self.root)
        return self._key_id

    def ensure_initialized(self) -> str:
        """Return the bound key id, or raise NotInitialized."""
        return self.key_id

    def is_initialized(self) -> bool:
        try:
            self.ensure_initialized()
        except NotInitialized:
            return False
        return True

    def init(self, choose_key: Callable[[list[IdentityRecord]], IdentityRecord]) -> IdentityRecord:
        """Bind the vault to a secret key picked by ``choose_key``."""
        identities = self.keys.list_identities()
        if not identities:
            raise NotFound("No secret keys found. Create one with `gpg --full-generate-key`.")
        chosen = choose_key(identities)
        write_identity(self.root, chosen.id)
        self._key_id = chosen.id
        return chosen

    def names(self) -> list[str]:
        return sorted(self.store.list())

    def add(self, name: str, secret: str) -> Path:
        validate_name(name)
        return self._write(name, secret)

    def remove(self, name: str) -> None:
        self.ensure_initialized()
        self.store.remove(name)

    def reveal(self, name: str, passphrase: str | None = None) -> str:
        """Decrypt a secret; OTP records yield their current code."""
        self.ensure_initialized()
        path = self.store.resolve(name)
        if not path.is_file():
            raise NotFound(f"Secret not found: {name}")
        plaintext = self.gateway.decrypt_text(path, passphrase)
        kind = classify(plaintext)
        if isinstance(kind, OtpProvisioningUri):
            logger.debug("Secret %s is an OTP provisioning URI", name)
            return current_code(kind)
        return kind.value

    def copy(
        self,
        name: str,
        session: ClipboardSession,
        on_exposed: Callable[[float], None] | None = None,
    ) -> bool:
        """Reveal a secret onto the clipboard. True if the window was cut short."""
        return session.expose(self.reveal(name), on_exposed)

    def enroll_otp(self, source: str) -> str:
        """Store an OTP provisioning URI given directly or as a barcode image.

        Returns the logical name it was stored under.
        """
        uri = read_enrollment(source, self.decoder)
        record = provision(uri)
        current_code(parse_uri(record.payload))
        self._write(record.name, record.payload)
        return record.name

    def _write(self, name: str, plaintext: str) -> Path:
        recipient = self.key_id
        encrypted = self.gateway.encrypt(plaintext.encode("utf-8"), recipient)
        if not encrypted:
            raise EncryptionFailed(f"Encryption produced no output for {name}")
        path = self.store.write(name, encrypted)
        logger.info("Wrote secret %s", name)
        return path
