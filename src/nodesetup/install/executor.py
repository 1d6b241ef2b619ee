"""
External command execution and file writes.

Every side effect a stage has on the host goes through ``CommandExecutor``:
commands, privileged file writes, and the few reads stages make. That keeps
``sudo`` handling and dry-run mode in one place, and gives tests a single
seam to replace.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from nodesetup.errors import ExternalCommandFailure

__all__ = ["CommandExecutor", "CommandResult", "COMMAND_NOT_FOUND", "COMMAND_NOT_EXECUTABLE"]

logger = logging.getLogger(__name__)

# Shell conventions: "command not found", "found but not executable"
COMMAND_NOT_FOUND = 127
COMMAND_NOT_EXECUTABLE = 126


@dataclass
class CommandResult:
    """Exit code and captured output of one command."""

    argv: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class CommandExecutor:
    """
    Run external commands and write files on the local host.

    Attributes:
        use_sudo: Prefix ``sudo=True`` calls with sudo when not already root
        dry_run: Log commands and writes without performing them
        timeout: Per-command timeout in seconds (None waits forever)
    """

    use_sudo: bool = True
    dry_run: bool = False
    timeout: Optional[int] = None
    history: List[List[str]] = field(default_factory=list, repr=False)

    def _needs_sudo(self, sudo: bool) -> bool:
        return sudo and self.use_sudo and os.geteuid() != 0

    def build_argv(self, args: Sequence[str], sudo: bool = False) -> List[str]:
        argv = [str(a) for a in args]
        if self._needs_sudo(sudo):
            argv = ["sudo"] + argv
        return argv

    def run(
        self,
        args: Sequence[str],
        sudo: bool = False,
        check: bool = True,
        input: Optional[str] = None,
        quiet: bool = False,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Command and arguments (no shell interpretation)
            sudo: Run with elevated privileges
            check: Raise ExternalCommandFailure on a non-zero exit
            input: Text fed to the command's stdin
            quiet: Log the command at DEBUG instead of INFO

        Returns:
            CommandResult with exit code, stdout and stderr

        Raises:
            ExternalCommandFailure: If ``check`` and the command failed or
                could not be started
        """
        argv = self.build_argv(args, sudo)
        self.history.append(argv)
        logger.log(logging.DEBUG if quiet else logging.INFO, "Running: %s", " ".join(argv))

        if self.dry_run:
            return CommandResult(argv=argv, exit_code=0)

        result = self._spawn(argv, input)

        if result.stdout.strip():
            logger.debug("stdout: %s", result.stdout.strip())
        if not result.ok:
            if result.stderr.strip():
                logger.debug("stderr: %s", result.stderr.strip())
            if check:
                raise ExternalCommandFailure(argv, result.exit_code, result.stderr.strip())
        return result

    def _spawn(self, argv: List[str], input: Optional[str]) -> CommandResult:
        try:
            completed = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return CommandResult(argv=argv, exit_code=COMMAND_NOT_FOUND, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.error("Command timed out after %ss: %s", self.timeout, " ".join(argv))
            return CommandResult(argv=argv, exit_code=124, stderr="timed out")
        except OSError as e:
            return CommandResult(argv=argv, exit_code=COMMAND_NOT_EXECUTABLE, stderr=f"{argv[0]}: {e}")

        return CommandResult(
            argv=argv,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def succeeds(self, args: Sequence[str], sudo: bool = False) -> bool:
        """Run a probe command; True when it exits 0. Never raises."""
        return self.run(args, sudo=sudo, check=False, quiet=True).ok

    def write_file(
        self,
        path: Path,
        content: str,
        sudo: bool = True,
        append: bool = False,
        mode: Optional[int] = None,
    ) -> None:
        """
        Write (or append) ``content`` to ``path``, creating parent directories.

        Privileged writes go through ``tee`` so they pick up sudo the same
        way any other command does.
        """
        path = Path(path)
        action = "Appending to" if append else "Writing"
        logger.info("%s %s", action, path)
        if self.dry_run:
            logger.debug("Content for %s:\n%s", path, content)
            return

        if self._needs_sudo(sudo):
            self.run(["mkdir", "-p", str(path.parent)], sudo=True, quiet=True)
            tee = ["tee", "-a", str(path)] if append else ["tee", str(path)]
            self.run(tee, sudo=True, input=content, quiet=True)
            if mode is not None:
                self.run(["chmod", format(mode, "o"), str(path)], sudo=True, quiet=True)
            return

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a" if append else "w", encoding="utf-8") as f:
                f.write(content)
            if mode is not None:
                os.chmod(path, mode)
        except OSError as e:
            raise ExternalCommandFailure(
                ["write", str(path)], e.errno or 1, str(e), message=f"Cannot write {path}: {e}"
            ) from e

    def read_file(self, path: Path) -> str:
        """Read a text file; a missing file reads as empty."""
        try:
            return Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def path_exists(self, path: Path) -> bool:
        return Path(path).exists()

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)
