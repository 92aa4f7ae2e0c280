"""Tests for rvault.keys: parsing the secret key listing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rvault.errors import KeyToolError
from rvault.keys import GpgKeyTool, KeyDirectory, KeyListingParser, ParserState, parse_key_listing
from tests.conftest import FakeKeyTool


def sec(key_id: str) -> str:
    return f"sec:u:255:22:{key_id}:1700000000:::u:::scESC:::+:::ed25519:::0:"


def uid(name: str) -> str:
    return f"uid:u::::1700000000::HASH::{name}::::::::::0:"


def listing(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode()


class TestParseKeyListing:
    def test_two_keys_are_not_cross_contaminated(self):
        records = parse_key_listing(
            listing(sec("AAAA"), uid("Alice <alice@example.com>"), sec("BBBB"), uid("Bob <bob@example.com>"))
        )
        assert [(r.id, r.name) for r in records] == [
            ("AAAA", "Alice <alice@example.com>"),
            ("BBBB", "Bob <bob@example.com>"),
        ]

    def test_multiple_uids_are_joined(self):
        records = parse_key_listing(listing(sec("AAAA"), uid("Alice"), uid("Alice at work")))
        assert records[0].name == "Alice, Alice at work"

    def test_ignores_other_record_types(self):
        records = parse_key_listing(
            listing(
                "tru::1:1700000000:0:3:1:5",
                sec("AAAA"),
                "fpr:::::::::0123456789ABCDEF0123456789ABCDEFAAAA:",
                "grp:::::::::1234567890ABCDEF:",
                uid("Alice"),
                "ssb:u:255:18:CCCC:1700000000::::::e:::+:::cv25519::",
            )
        )
        assert [(r.id, r.name) for r in records] == [("AAAA", "Alice")]

    def test_empty_listing(self):
        assert parse_key_listing(b"") == []

    def test_uid_before_first_key_is_ignored(self):
        records = parse_key_listing(listing(uid("Orphan"), sec("AAAA"), uid("Alice")))
        assert [(r.id, r.name) for r in records] == [("AAAA", "Alice")]

    def test_key_without_uid(self):
        records = parse_key_listing(listing(sec("AAAA")))
        assert [(r.id, r.name) for r in records] == [("AAAA", "")]

    def test_truncated_uid_line_is_skipped(self):
        records = parse_key_listing(listing(sec("AAAA"), "uid:u::", uid("Alice")))
        assert records[0].name == "Alice"

    def test_truncated_sec_line_does_not_absorb_into_previous(self):
        records = parse_key_listing(
            listing(sec("AAAA"), uid("Alice"), "sec:u:255", uid("Nobody"), sec("BBBB"), uid("Bob"))
        )
        assert [(r.id, r.name) for r in records] == [("AAAA", "Alice"), ("BBBB", "Bob")]

    def test_undecodable_line_is_skipped(self):
        data = listing(sec("AAAA")) + b"uid:u::::::::\xff\xfe::\n" + listing(uid("Alice"))
        records = parse_key_listing(data)
        assert [(r.id, r.name) for r in records] == [("AAAA", "Alice")]

    def test_escaped_colon_in_uid(self):
        records = parse_key_listing(listing(sec("AAAA"), uid("Team\\x3a Ops")))
        assert records[0].name == "Team: Ops"

    def test_crlf_line_endings(self):
        data = f"{sec('AAAA')}\r\n{uid('Alice')}\r\n".encode()
        assert parse_key_listing(data)[0].name == "Alice"


class TestKeyListingParser:
    def test_state_transitions(self):
        parser = KeyListingParser()
        assert parser.state is ParserState.BEFORE_FIRST_RECORD
        assert parser.feed(sec("AAAA")) is None
        assert parser.state is ParserState.ACCUMULATING_RECORD
        parser.feed(uid("Alice"))
        flushed = parser.feed(sec("BBBB"))
        assert flushed is not None and flushed.id == "AAAA"
        last = parser.finish()
        assert last is not None and last.id == "BBBB"
        assert parser.state is ParserState.BEFORE_FIRST_RECORD

    def test_finish_without_records(self):
        assert KeyListingParser().finish() is None

    def test_record_display(self):
        parser = KeyListingParser()
        parser.feed(sec("AAAA"))
        parser.feed(uid("Alice"))
        assert str(parser.finish()) == "(AAAA, Alice)"


class TestKeyDirectory:
    def test_lists_identities_from_tool(self):
        directory = KeyDirectory(FakeKeyTool(listing(sec("AAAA"), uid("Alice"))))
        assert [r.id for r in directory.list_identities()] == ["AAAA"]


class TestGpgKeyTool:
    @patch("subprocess.run")
    def test_invokes_colon_listing(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=b"sec:...", stderr=b"")
        assert GpgKeyTool("gpg2").list_secret_keys() == b"sec:..."
        cmd = mock_run.call_args.args[0]
        assert cmd == ["gpg2", "--list-secret-keys", "--with-colons"]

    @patch("subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = MagicMock(returncode=2, stdout=b"", stderr=b"gpg: keybox locked")
        with pytest.raises(KeyToolError, match="keybox locked") as exc:
            GpgKeyTool().list_secret_keys()
        assert exc.value.stderr == "gpg: keybox locked"

    @patch("subprocess.run", side_effect=FileNotFoundError("gpg"))
    def test_missing_executable(self, mock_run):
        with pytest.raises(KeyToolError, match="Failed to run"):
            GpgKeyTool().list_secret_keys()

    def test_real_subprocess_failure_is_wrapped(self):
        with pytest.raises(KeyToolError):
            GpgKeyTool("/nonexistent/rvault-test-gpg").list_secret_keys()
