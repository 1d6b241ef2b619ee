"""
Pytest configuration and fixtures for nodesetup tests.

Nothing here touches the host: commands go through ``RecordingExecutor``,
which answers from a script of canned results, and file writes land in an
in-memory dict.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from nodesetup.config import NodeSetupConfig, RunContext, reset_config
from nodesetup.install.executor import CommandExecutor, CommandResult
from nodesetup.install.prerequisites import SystemResources
from nodesetup.install.prompts import StaticConfirmation


# ============================================================================
# Fakes
# ============================================================================


class RecordingExecutor(CommandExecutor):
    """
    CommandExecutor that never spawns a process.

    Commands exit 0 with no output unless a response was registered for a
    matching argv prefix. Later registrations win over earlier ones.
    """

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        binaries: Sequence[str] = (),
        dry_run: bool = False,
    ):
        super().__init__(use_sudo=False, dry_run=dry_run)
        self.responses: List[Tuple[Tuple[str, ...], int, str, str]] = []
        self.inputs: Dict[Tuple[str, ...], Optional[str]] = {}
        self.files: Dict[str, str] = dict(files or {})
        self.modes: Dict[str, int] = {}
        self.writes: List[str] = []
        self.binaries = set(binaries)

    def respond(self, prefix: Sequence[str], exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses.insert(0, (tuple(prefix), exit_code, stdout, stderr))

    def _spawn(self, argv: List[str], input: Optional[str]) -> CommandResult:
        self.inputs[tuple(argv)] = input
        for prefix, exit_code, stdout, stderr in self.responses:
            if tuple(argv[:len(prefix)]) == prefix:
                return CommandResult(argv=argv, exit_code=exit_code, stdout=stdout, stderr=stderr)
        return CommandResult(argv=argv, exit_code=0)

    def write_file(self, path, content, sudo=True, append=False, mode=None):
        key = str(path)
        self.writes.append(key)
        if self.dry_run:
            return
        self.files[key] = self.files.get(key, "") + content if append else content
        if mode is not None:
            self.modes[key] = mode

    def read_file(self, path) -> str:
        return self.files.get(str(path), "")

    def path_exists(self, path) -> bool:
        return str(path) in self.files

    def which(self, name: str) -> Optional[str]:
        return f"/usr/bin/{name}" if name in self.binaries else None

    def ran(self, *prefix: str) -> bool:
        return any(argv[:len(prefix)] == list(prefix) for argv in self.history)

    def commands(self) -> List[str]:
        return [" ".join(argv) for argv in self.history]


class FakeResources(SystemResources):
    """Fixed host capacity."""

    def __init__(self, ram_mb: int = 8192, cores: int = 4, disk_gb: int = 100):
        super().__init__()
        self.ram_mb = ram_mb
        self.cores = cores
        self.disk_gb = disk_gb

    def memory_mb(self) -> int:
        return self.ram_mb

    def cpu_cores(self) -> int:
        return self.cores

    def free_disk_gb(self) -> int:
        return self.disk_gb


IP_ADDR_OUTPUT = (
    "1: lo    inet 127.0.0.1/8 scope host lo\\       valid_lft forever preferred_lft forever\n"
    "2: enp0s3    inet 192.168.1.23/24 brd 192.168.1.255 scope global dynamic enp0s3\\"
    "       valid_lft 86000sec preferred_lft 86000sec\n"
)

NODE_BINARIES = ("kubeadm", "kubelet", "kubectl", "ufw", "iptables")


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    """Drop NODESETUP_* variables and the cached config; reset logging."""
    for key in list(os.environ):
        if key.startswith("NODESETUP_"):
            monkeypatch.delenv(key)
    reset_config()

    yield

    reset_config()
    root = logging.getLogger("nodesetup")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def settings(tmp_path: Path) -> NodeSetupConfig:
    """Settings that keep state and logs under tmp_path."""
    return NodeSetupConfig(
        state_dir=str(tmp_path / "state"),
        log_dir=str(tmp_path / "log"),
        use_sudo=False,
    )


@pytest.fixture
def make_context(settings: NodeSetupConfig) -> Callable[..., RunContext]:
    """Factory for RunContext objects, with optional settings overrides."""

    def _make(role: str, resume: bool = False, dry_run: bool = False, **overrides) -> RunContext:
        config = settings.model_copy(update=overrides) if overrides else settings
        return RunContext.build(role, config, resume=resume, dry_run=dry_run)

    return _make


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor(binaries=NODE_BINARIES)


@pytest.fixture
def yes() -> StaticConfirmation:
    return StaticConfirmation(answer=True)


@pytest.fixture
def no() -> StaticConfirmation:
    return StaticConfirmation(answer=False)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path
