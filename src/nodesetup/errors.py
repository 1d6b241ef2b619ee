"""Exceptions raised by setup stages and gates."""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    "NodeSetupError",
    "PrerequisiteFailure",
    "ExternalCommandFailure",
    "UserAbort",
]


class NodeSetupError(Exception):
    """Base class for failures that end a run with a specific exit code."""

    exit_code: int = 1

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class PrerequisiteFailure(NodeSetupError):
    """The host is below a threshold or is missing something a flow needs."""


class ExternalCommandFailure(NodeSetupError):
    """A wrapped external command exited non-zero (or could not be started)."""

    def __init__(
        self,
        argv: Sequence[str],
        exit_code: int,
        stderr: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.argv = list(argv)
        self.stderr = stderr
        super().__init__(
            message or f"Command failed with exit code {exit_code}: {self.command}",
            exit_code=exit_code,
        )

    @property
    def command(self) -> str:
        return " ".join(self.argv)


class UserAbort(NodeSetupError):
    """The operator declined a confirmation prompt."""
