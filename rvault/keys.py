"""
Key directory: secret key identities from the key tool's colon listing.

``gpg --list-secret-keys --with-colons`` emits one record per line. A ``sec``
record opens a key (key id in field 5); each following ``uid`` record adds a
user id (field 10) to that key. Every other record type is ignored, and a
record missing its field is dropped without aborting the parse.
"""

from __future__ import annotations

import enum
import logging
import re
import subprocess
from abc import ABC, abstractmethod

from rvault.errors import KeyToolError
from rvault.models import IdentityRecord

logger = logging.getLogger(__name__)

SECRET_KEY_MARKER = "sec"
USER_ID_MARKER = "uid"
KEY_ID_FIELD = 4
USER_ID_FIELD = 9
NAME_SEPARATOR = ", "

_ESCAPE = re.compile(r"\\x([0-9a-fA-F]{2})")


class KeyTool(ABC):
    """Source of the raw machine-readable secret key listing."""

    @abstractmethod
    def list_secret_keys(self) -> bytes:
        """Return the colon-delimited listing. Raises KeyToolError."""


class GpgKeyTool(KeyTool):
    def __init__(self, executable: str = "gpg"):
        self.executable = executable

    def list_secret_keys(self) -> bytes:
        cmd = [self.executable, "--list-secret-keys", "--with-colons"]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            raise KeyToolError(f"Failed to run {self.executable}: {e}") from e
        if result.returncode != 0:
            raise KeyToolError(
                "Failed to list secret keys.", result.stderr.decode("utf-8", "replace")
            )
        return result.stdout


class ParserState(enum.Enum):
    BEFORE_FIRST_RECORD = "before_first_record"
    ACCUMULATING_RECORD = "accumulating_record"


class KeyListingParser:
    """Line-at-a-time parser that emits completed identity records.

    ``feed`` returns the record closed by a new ``sec`` line, if any;
    ``finish`` returns the last open record.
    """

    def __init__(self) -> None:
        self.state = ParserState.BEFORE_FIRST_RECORD
        self._key_id: str | None = None
        self._names: list[str] = []

    def feed(self, line: str) -> IdentityRecord | None:
        fields = line.rstrip("\r\n").split(":")
        marker = fields[0]

        if marker == SECRET_KEY_MARKER:
            emitted = self._flush()
            self.state = ParserState.ACCUMULATING_RECORD
            self._key_id = _field(fields, KEY_ID_FIELD)
            if self._key_id is None:
                logger.debug("Skipping secret key record without a key id")
            return emitted

        if marker == USER_ID_MARKER and self.state is ParserState.ACCUMULATING_RECORD:
            name = _field(fields, USER_ID_FIELD)
            if name is not None:
                self._names.append(_unescape(name))
        return None

    def finish(self) -> IdentityRecord | None:
        emitted = self._flush()
        self.state = ParserState.BEFORE_FIRST_RECORD
        return emitted

    def _flush(self) -> IdentityRecord | None:
        if self.state is ParserState.BEFORE_FIRST_RECORD:
            return None
        key_id, names = self._key_id, self._names
        self._key_id, self._names = None, []
        # A sec line without a key id still owns the uid lines after it.
        if not key_id:
            return None
        return IdentityRecord(id=key_id, name=NAME_SEPARATOR.join(names))


def _field(fields: list[str], index: int) -> str | None:
    if len(fields) <= index:
        return None
    return fields[index]


def _unescape(value: str) -> str:
    return _ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), value)


def parse_key_listing(listing: bytes) -> list[IdentityRecord]:
    """Parse a complete listing. Lines that are not valid UTF-8 are skipped."""
    parser = KeyListingParser()
    records: list[IdentityRecord] = []
    for raw in listing.split(b"\n"):
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping undecodable key listing line")
            continue
        record = parser.feed(line)
        if record is not None:
            records.append(record)
    record = parser.finish()
    if record is not None:
        records.append(record)
    return records


class KeyDirectory:
    """Identities available for binding a vault."""

    def __init__(self, tool: KeyTool):
        self.tool = tool

    def list_identities(self) -> list[IdentityRecord]:
        records = parse_key_listing(self.tool.list_secret_keys())
        logger.info("Found %d secret key(s)", len(records))
        return records
