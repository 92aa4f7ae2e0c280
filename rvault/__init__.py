"""
rvault: a local secret vault built on GnuPG.

Each secret is a separately encrypted file under the vault directory; the vault
is bound to one GnuPG secret key chosen at ``rvault init``.

Public API:
    Vault(config)                 → engine facade over the components below
    SecretStore(root)             → logical name ↔ file path mapping
    EncryptionGateway(engine)     → encrypt/decrypt through an external engine
    KeyDirectory(tool)            → secret key identities for ``init``
    read_identity / write_identity → the vault's key binding
    classify / current_code       → plain secret vs. OTP provisioning URI
    ClipboardSession              → time-boxed clipboard exposure
"""

from __future__ import annotations

__version__ = "0.1.0"

from rvault.clipboard import ClipboardSession
from rvault.config import VaultConfig, get_config
from rvault.gpg import EncryptionGateway
from rvault.identity import read_identity, write_identity
from rvault.keys import KeyDirectory
from rvault.otp import classify, current_code
from rvault.store import SecretStore
from rvault.vault import Vault

__all__ = [
    "__version__",
    "ClipboardSession",
    "EncryptionGateway",
    "KeyDirectory",
    "SecretStore",
    "Vault",
    "VaultConfig",
    "classify",
    "current_code",
    "get_config",
    "read_identity",
    "write_identity",
]
