"""
Centralized configuration for rvault.

All configuration is loaded from environment variables with sensible defaults.
Command-line flags override individual fields with ``dataclasses.replace``.

Usage:
    from rvault.config import get_config
    cfg = get_config()
    print(cfg.vault)          # "/home/user/.vault" or $RVAULT_DIR
    print(cfg.clip_seconds)   # 10.0
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

SECRET_SUFFIX = ".gpg"
BINDING_FILE = ".rvault"
DEFAULT_CLIP_SECONDS = 10.0

_TRUTHY = {"1", "true", "yes", "on"}


def default_vault_dir() -> Path:
    return Path.home() / ".vault"


@dataclass(frozen=True)
class VaultConfig:
    """Top-level rvault configuration."""

    vault: Path = field(default_factory=default_vault_dir)

    # External collaborators
    gpg: str = "gpg"
    zbarimg: str = "zbarimg"

    # Clipboard exposure window, in seconds
    clip_seconds: float = DEFAULT_CLIP_SECONDS

    # Prompt for the key passphrase instead of relying on gpg-agent
    ask_password: bool = False

    log_level: str = "WARNING"

    @property
    def binding_path(self) -> Path:
        return self.vault / BINDING_FILE


# Singleton
_config: VaultConfig | None = None


def get_config() -> VaultConfig:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = _load_from_env()
    return _config


def _load_from_env() -> VaultConfig:
    """Load configuration from environment variables."""
    vault = Path(os.environ.get("RVAULT_DIR", default_vault_dir())).expanduser()
    clip_seconds = float(os.environ.get("RVAULT_CLIP_SECONDS", str(DEFAULT_CLIP_SECONDS)))
    if clip_seconds <= 0:
        raise ValueError(f"RVAULT_CLIP_SECONDS must be positive, got {clip_seconds}")
    log_level = os.environ.get("RVAULT_LOG_LEVEL", "WARNING").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"RVAULT_LOG_LEVEL is not a logging level: {log_level!r}")

    return VaultConfig(
        vault=vault,
        gpg=os.environ.get("RVAULT_GPG", "gpg"),
        zbarimg=os.environ.get("RVAULT_ZBARIMG", "zbarimg"),
        clip_seconds=clip_seconds,
        ask_password=os.environ.get("RVAULT_ASK_PASSWORD", "").strip().lower() in _TRUTHY,
        log_level=log_level,
    )


def reset_config() -> None:
    """Reset the singleton config (for testing)."""
    global _config
    _config = None
