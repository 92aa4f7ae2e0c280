"""Interactive prompts used by the command line when an argument is missing."""

from __future__ import annotations

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.validation import ValidationError, Validator

from rvault.errors import InvalidName
from rvault.models import IdentityRecord
from rvault.store import validate_name


class FilenameValidator(Validator):
    """Only letters, digits, space, underscore and dash."""

    def validate(self, document) -> None:
        try:
            validate_name(document.text)
        except InvalidName as e:
            raise ValidationError(message=str(e), cursor_position=len(document.text)) from e


class ChoiceValidator(Validator):
    def __init__(self, choices: list[str]):
        self.choices = set(choices)

    def validate(self, document) -> None:
        if document.text not in self.choices:
            raise ValidationError(
                message="Pick one of the listed entries (tab completes).",
                cursor_position=len(document.text),
            )


def prompt_for_filename() -> str:
    return prompt("Filename: ", validator=FilenameValidator(), validate_while_typing=False)


def prompt_for_password() -> str:
    """Ask for a new secret twice until both entries match."""
    while True:
        password = prompt("Password: ", is_password=True)
        confirmation = prompt("Confirm password: ", is_password=True)
        if password == confirmation:
            return password
        print("Passwords do not match, try again.")


def prompt_for_passphrase() -> str:
    return prompt("Key passphrase: ", is_password=True)


def prompt_for_otpauth() -> str:
    return prompt("otpauth: ").strip()


def pick(message: str, choices: list[str]) -> str:
    """Let the user pick one of ``choices`` with tab completion."""
    for choice in choices:
        print(f"  {choice}")
    return prompt(
        f"{message}: ",
        completer=WordCompleter(choices, sentence=True, match_middle=True),
        complete_while_typing=True,
        validator=ChoiceValidator(choices),
        validate_while_typing=False,
    )


def pick_key(keys: list[IdentityRecord]) -> IdentityRecord:
    labels = [str(key) for key in keys]
    chosen = pick("Pick a key", labels)
    return keys[labels.index(chosen)]
