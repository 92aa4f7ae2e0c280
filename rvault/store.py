"""
Secret store: maps logical secret names to encrypted files under the vault root.

User-supplied names for new secrets are a single segment of letters, digits,
space, underscore and dash. Any name already in the vault (nested ones such as
``otp/<issuer>/<account>`` included) can be resolved, as long as it cannot
escape the vault root.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path, PurePath

from rvault.config import SECRET_SUFFIX
from rvault.errors import InvalidName, NotFound, VaultIOError

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_\- ]+$")
OTP_NAMESPACE = "otp"

_FORBIDDEN_SEGMENT_CHARS = ("/", "\\", "\0")


def validate_name(name: str) -> str:
    """Validate a user-supplied logical name. Returns it unchanged."""
    if "/" in name:
        raise InvalidName("Filename cannot contain slashes.")
    if not NAME_PATTERN.match(name) or not name.strip():
        raise InvalidName(
            "Filename can only contain alphanumeric characters, spaces, underscores and dashes."
        )
    return name


def validate_segment(segment: str) -> str:
    """Validate one path segment of a system-generated name."""
    if not segment.strip() or segment in (".", ".."):
        raise InvalidName(f"Invalid name segment: {segment!r}")
    if any(ch in segment for ch in _FORBIDDEN_SEGMENT_CHARS):
        raise InvalidName(f"Name segment cannot contain path separators: {segment!r}")
    return segment


def otp_name(issuer: str, account: str) -> str:
    """Logical name for an OTP record."""
    return "/".join((OTP_NAMESPACE, validate_segment(issuer), validate_segment(account)))


def check_name(name: str) -> str:
    """Reject a name that would escape the vault root once joined onto it."""
    if not name:
        raise InvalidName("Name cannot be empty.")
    for segment in name.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidName(f"Name cannot leave the vault directory: {name!r}")
        if "\\" in segment or "\0" in segment:
            raise InvalidName(f"Name cannot contain backslashes or NUL: {name!r}")
    return name


class SecretStore:
    """Filesystem layout of a vault: ``<root>/<name><suffix>``."""

    def __init__(self, root: Path | str, suffix: str = SECRET_SUFFIX):
        self.root = Path(root)
        self.suffix = suffix

    def resolve(self, name: str) -> Path:
        """Return the file path for ``name``. Does not check existence."""
        check_name(name)
        path = self.root.joinpath(*name.split("/"))
        return path.with_name(path.name + self.suffix)

    def exists(self, name: str) -> bool:
        return self.resolve(name).is_file()

    def list(self) -> Iterator[str]:
        """Yield every stored logical name, in filesystem traversal order.

        Symbolic links are neither followed nor reported.
        """
        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=False):
            base = Path(dirpath)
            for filename in filenames:
                if not filename.endswith(self.suffix) or filename == self.suffix:
                    continue
                path = base / filename
                if path.is_symlink() or not path.is_file():
                    continue
                relative = PurePath(path.relative_to(self.root)).as_posix()
                yield relative[: -len(self.suffix)]

    def write(self, name: str, data: bytes) -> Path:
        """Write encrypted bytes for ``name``, replacing any existing record."""
        path = self.resolve(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            path.chmod(0o600)
        except OSError as e:
            raise VaultIOError(f"Failed to write {path}: {e}") from e
        logger.debug("Stored secret %s", name)
        return path

    def remove(self, name: str) -> None:
        path = self.resolve(name)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFound(f"Secret not found: {name}") from e
        except OSError as e:
            raise VaultIOError(f"Failed to remove {path}: {e}") from e
        logger.debug("Removed secret %s", name)
