"""
rvault CLI: entry point for all operations.

Usage:
    rvault init             # Bind the vault to a GnuPG secret key
    rvault list             # List stored secrets
    rvault add [name]       # Encrypt a new secret
    rvault remove [name]    # Delete a secret
    rvault show [name]      # Print a secret (or its current OTP code)
    rvault clip [name]      # Copy a secret to the clipboard for a few seconds
    rvault otp [uri|image]  # Enroll an otpauth:// URI or QR code image
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from rvault import prompts
from rvault.clipboard import ClipboardSession, StdinCancelSignal, SystemClipboard
from rvault.config import VaultConfig, get_config
from rvault.errors import NotFound, VaultError
from rvault.vault import Vault

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rvault",
        description="rvault, a directory of GnuPG-encrypted secrets.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument(
        "--vault", "-v", type=Path, help="Use a specific vault path instead of the default"
    )
    parser.add_argument(
        "--ask-password",
        "-a",
        action="store_true",
        help="Ask for the key passphrase instead of relying on gpg-agent",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init", aliases=["i"], help="Initialize a new vault")
    init_parser.set_defaults(func=_cmd_init)

    list_parser = subparsers.add_parser("list", aliases=["l"], help="List all secrets in the vault")
    list_parser.set_defaults(func=_cmd_list)

    add_parser = subparsers.add_parser("add", aliases=["a"], help="Add a new secret to the vault")
    add_parser.add_argument("name", nargs="?", help="Name of the secret (prompted if omitted)")
    add_parser.set_defaults(func=_cmd_add)

    remove_parser = subparsers.add_parser(
        "remove", aliases=["r"], help="Remove a secret from the vault"
    )
    remove_parser.add_argument("name", nargs="?", help="Secret to remove (picked if omitted)")
    remove_parser.set_defaults(func=_cmd_remove)

    clip_parser = subparsers.add_parser("clip", aliases=["c"], help="Copy a secret to the clipboard")
    clip_parser.add_argument("name", nargs="?", help="Secret to copy (picked if omitted)")
    clip_parser.set_defaults(func=_cmd_clip)

    show_parser = subparsers.add_parser(
        "show", aliases=["s"], help="Show a secret on stdout (not recommended)"
    )
    show_parser.add_argument("name", nargs="?", help="Secret to show (picked if omitted)")
    show_parser.set_defaults(func=_cmd_show)

    otp_parser = subparsers.add_parser(
        "otp", help="Add a one-time password shared token to the vault"
    )
    otp_parser.add_argument(
        "share_token",
        nargs="?",
        help="An otpauth://... URI or a QR code image path (prompted if omitted)",
    )
    otp_parser.set_defaults(func=_cmd_otp)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from rvault import __version__

        print(f"rvault {__version__}")
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = _config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    vault = Vault(
        config,
        passphrase_source=prompts.prompt_for_passphrase if config.ask_password else None,
    )

    try:
        if args.func is not _cmd_init:
            vault.ensure_initialized()
        return args.func(vault, args)
    except VaultError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print("Aborted.", file=sys.stderr)
        return 130


def _config_from_args(args: argparse.Namespace) -> VaultConfig:
    config = get_config()
    overrides: dict = {}
    if args.vault is not None:
        overrides["vault"] = args.vault.expanduser()
    if args.ask_password:
        overrides["ask_password"] = True
    return dataclasses.replace(config, **overrides) if overrides else config


def _pick_secret(vault: Vault, name: str | None) -> str:
    if name is not None:
        return name
    names = vault.names()
    if not names:
        raise NotFound(f"No secrets in {vault.root}.")
    return prompts.pick("Pick a secret", names)


def _cmd_init(vault: Vault, args: argparse.Namespace) -> int:
    chosen = vault.init(prompts.pick_key)
    print(f"Vault initialized with key {chosen.id}.")
    return 0


def _cmd_list(vault: Vault, args: argparse.Namespace) -> int:
    for name in vault.names():
        print(name)
    return 0


def _cmd_add(vault: Vault, args: argparse.Namespace) -> int:
    name = args.name if args.name is not None else prompts.prompt_for_filename()
    secret = prompts.prompt_for_password()
    vault.add(name, secret)
    return 0


def _cmd_remove(vault: Vault, args: argparse.Namespace) -> int:
    vault.remove(_pick_secret(vault, args.name))
    return 0


def _cmd_show(vault: Vault, args: argparse.Namespace) -> int:
    print(vault.reveal(_pick_secret(vault, args.name)))
    return 0


def _cmd_clip(vault: Vault, args: argparse.Namespace) -> int:
    name = _pick_secret(vault, args.name)
    session = ClipboardSession(
        SystemClipboard(), StdinCancelSignal(), duration=vault.config.clip_seconds
    )

    def announce(duration: float) -> None:
        print(
            f"Copied to clipboard for {duration:g} seconds - press any key to terminate early."
        )

    vault.copy(name, session, on_exposed=announce)
    if session.clear_error is not None:
        print(f"Warning: {session.clear_error}", file=sys.stderr)
    print("Done.")
    return 0


def _cmd_otp(vault: Vault, args: argparse.Namespace) -> int:
    source = args.share_token if args.share_token is not None else prompts.prompt_for_otpauth()
    name = vault.enroll_otp(source)
    print(f"Stored {name}.")
    return 0
