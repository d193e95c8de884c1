# ABOUTME: Interactive prompts for the Bifrost CLI
# ABOUTME: Thin questionary wrappers that turn an aborted prompt into a user-input error

"""Prompt helpers."""

from collections.abc import Callable

import questionary

from bifrost.errors import UserInputError
from bifrost.sso.client import Account, Role


def _answer(question: questionary.Question):
    # ask() returns None when the user aborts with Ctrl+C
    answer = question.ask()
    if answer is None:
        raise UserInputError("Prompt cancelled")
    return answer


def select(message: str, choices: list[str]) -> str:
    if not choices:
        raise UserInputError(f"Nothing to choose from: {message}")
    return _answer(questionary.select(message, choices=choices))


def text(message: str, validate: Callable[[str], bool | str] | None = None, default: str = "") -> str:
    if validate is None:
        return _answer(questionary.text(message, default=default))
    return _answer(questionary.text(message, default=default, validate=validate))


def confirm(message: str, default: bool = False) -> bool:
    return _answer(questionary.confirm(message, default=default))


def select_account(accounts: list[Account]) -> Account:
    """Prompt for one of ``accounts`` shown as "name (id)"."""
    by_label = {account.display_name: account for account in accounts}
    return by_label[select("Select an AWS account", list(by_label))]


def select_role(roles: list[Role]) -> str:
    return select("Select a role", [role.role_name for role in roles])
