"""Confirmation providers for the interactive y/n gates."""

from __future__ import annotations

from typing import List, Protocol

import click

__all__ = ["ConfirmationProvider", "ClickConfirmation", "StaticConfirmation"]


class ConfirmationProvider(Protocol):
    """Anything that can answer a yes/no question or a free-text prompt."""

    def confirm(self, message: str) -> bool: ...

    def ask(self, message: str) -> str: ...


class ClickConfirmation:
    """Prompt the operator on the terminal. Blocks until answered."""

    def confirm(self, message: str) -> bool:
        return click.confirm(message, default=False)

    def ask(self, message: str) -> str:
        return click.prompt(message, default="", show_default=False).strip()


class StaticConfirmation:
    """
    Answer every prompt the same way without a terminal.

    Used for ``--yes`` runs and in tests. Questions are recorded in
    ``asked`` in the order they were posed.
    """

    def __init__(self, answer: bool = True, response: str = ""):
        self.answer = answer
        self.response = response
        self.asked: List[str] = []

    def confirm(self, message: str) -> bool:
        self.asked.append(message)
        return self.answer

    def ask(self, message: str) -> str:
        self.asked.append(message)
        return self.response
