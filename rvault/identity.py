"""
Vault identity: the binding between a vault directory and one secret key.

The binding lives at ``<vault>/.rvault`` as ``{"id": "<key id>"}``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from rvault.config import BINDING_FILE
from rvault.errors import NotInitialized, VaultIOError
from rvault.models import IdentityBinding

logger = logging.getLogger(__name__)

NOT_INITIALIZED = "No key ID found. Please run `rvault init` first."


def read_identity(vault: Path | str) -> str:
    """Return the key id the vault is bound to. Raises NotInitialized."""
    vault = Path(vault)
    if not vault.exists():
        raise NotInitialized(f"Vault is not initialized: {vault} does not exist. {NOT_INITIALIZED}")
    if not vault.is_dir():
        raise NotInitialized(f"Vault is not a directory: {vault}")

    binding_path = vault / BINDING_FILE
    try:
        raw = binding_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotInitialized(NOT_INITIALIZED) from e
    except UnicodeDecodeError as e:
        raise NotInitialized(f"ID file {binding_path} is not UTF-8 text. {NOT_INITIALIZED}") from e
    except OSError as e:
        raise VaultIOError(f"Failed to read {binding_path}: {e}") from e

    try:
        binding = IdentityBinding.model_validate_json(raw)
    except ValidationError as e:
        raise NotInitialized(f"Failed to parse ID file {binding_path}. {NOT_INITIALIZED}") from e
    if not binding.id:
        raise NotInitialized(NOT_INITIALIZED)
    return binding.id


def write_identity(vault: Path | str, key_id: str) -> Path:
    """Bind the vault to ``key_id``, creating the vault directory if needed."""
    vault = Path(vault)
    binding_path = vault / BINDING_FILE
    try:
        vault.mkdir(parents=True, exist_ok=True)
        binding_path.write_text(json.dumps({"id": key_id}), encoding="utf-8")
    except OSError as e:
        raise VaultIOError(f"Failed to write {binding_path}: {e}") from e
    logger.info("Bound vault %s to key %s", vault, key_id)
    return binding_path
