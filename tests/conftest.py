"""Shared fixtures and in-memory collaborators for rvault tests."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from rvault.clipboard import CancelSignal, Clipboard
from rvault.config import VaultConfig, reset_config
from rvault.errors import ClipboardUnavailable, DecryptionFailed, EncryptionFailed
from rvault.gpg import EncryptionEngine, EncryptionGateway
from rvault.identity import write_identity
from rvault.keys import KeyDirectory, KeyTool
from rvault.otp import QrDecoder
from rvault.vault import Vault

KEY_ID = "0123456789ABCDEF"

# RFC 6238 appendix B: ASCII "12345678901234567890", SHA1
RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class InMemoryEngine(EncryptionEngine):
    """Reversible stand-in for gpg. Only recipients in ``secret_keys`` can decrypt."""

    MAGIC = b"rvault-test"

    def __init__(self, secret_keys=(KEY_ID,), passphrase: str | None = None):
        self.secret_keys = set(secret_keys)
        self.passphrase = passphrase
        self.calls: list[tuple] = []

    def encrypt(self, data: bytes, recipient: str) -> bytes:
        self.calls.append(("encrypt", recipient))
        if not recipient:
            raise EncryptionFailed("Failed to encrypt secret.", "gpg: no recipient")
        return b":".join([self.MAGIC, recipient.encode(), base64.b64encode(data)])

    def decrypt(self, path: Path, passphrase: str | None = None) -> bytes:
        self.calls.append(("decrypt", str(path), passphrase))
        magic, recipient, body = Path(path).read_bytes().split(b":", 2)
        if magic != self.MAGIC or recipient.decode() not in self.secret_keys:
            raise DecryptionFailed("Failed to decrypt file.", "gpg: decryption failed: No secret key")
        if self.passphrase is not None and passphrase != self.passphrase:
            raise DecryptionFailed("Failed to decrypt file.", "gpg: Bad passphrase")
        return base64.b64decode(body)


class FakeKeyTool(KeyTool):
    def __init__(self, listing: bytes = b""):
        self.listing = listing

    def list_secret_keys(self) -> bytes:
        return self.listing


class FakeDecoder(QrDecoder):
    def __init__(self, payloads: list[str] | None = None):
        self.payloads = payloads or []
        self.decoded: list[Path] = []

    def decode(self, path: Path) -> list[str]:
        self.decoded.append(path)
        return list(self.payloads)


class FakeClipboard(Clipboard):
    def __init__(self, fail_copy: bool = False, fail_clear: bool = False):
        self.contents = "previous clipboard text"
        self.fail_copy = fail_copy
        self.fail_clear = fail_clear
        self.clears = 0

    def copy(self, text: str) -> None:
        if self.fail_copy:
            raise ClipboardUnavailable("no display")
        self.contents = text

    def clear(self) -> None:
        self.clears += 1
        if self.fail_clear:
            raise ClipboardUnavailable("clipboard went away")
        self.contents = ""


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class ScriptedSignal(CancelSignal):
    """Advances a fake clock instead of sleeping; cancels at ``cancel_after`` seconds."""

    def __init__(self, clock: FakeClock, clipboard: FakeClipboard, cancel_after: float | None = None):
        self.clock = clock
        self.clipboard = clipboard
        self.start = clock.now
        self.cancel_after = cancel_after
        self.timeouts: list[float] = []
        self.seen: list[str] = []

    def wait(self, timeout: float) -> bool:
        self.timeouts.append(timeout)
        self.seen.append(self.clipboard.contents)
        if self.cancel_after is not None:
            cancel_at = self.start + self.cancel_after
            if self.clock.now + timeout >= cancel_at:
                self.clock.now = cancel_at
                return True
        self.clock.now += timeout
        return False


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Reset the config singleton and drop RVAULT_* env vars between tests."""
    for key in [
        "RVAULT_DIR",
        "RVAULT_GPG",
        "RVAULT_ZBARIMG",
        "RVAULT_CLIP_SECONDS",
        "RVAULT_ASK_PASSWORD",
        "RVAULT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    return tmp_path / "vault"


@pytest.fixture
def config(vault_dir: Path) -> VaultConfig:
    return VaultConfig(vault=vault_dir)


@pytest.fixture
def engine() -> InMemoryEngine:
    return InMemoryEngine()


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def make_vault(config: VaultConfig, engine: InMemoryEngine, decoder: FakeDecoder):
    def _make(listing: bytes = b"", passphrase_source=None) -> Vault:
        return Vault(
            config,
            gateway=EncryptionGateway(engine, passphrase_source=passphrase_source),
            keys=KeyDirectory(FakeKeyTool(listing)),
            decoder=decoder,
        )

    return _make


@pytest.fixture
def vault(make_vault, vault_dir: Path) -> Vault:
    """A vault already bound to KEY_ID."""
    write_identity(vault_dir, KEY_ID)
    return make_vault()
