"""
Staged, resumable provisioning.

Stage runner, progress marker store, prerequisite and connectivity gates,
command execution and failure reporting shared by every setup flow.
"""

from nodesetup.install.executor import CommandExecutor, CommandResult
from nodesetup.install.progress import ProgressStore
from nodesetup.install.prompts import ClickConfirmation, ConfirmationProvider, StaticConfirmation
from nodesetup.install.runner import RunResult, StageRunner
from nodesetup.install.stages import Stage, build_stages

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "ProgressStore",
    "ConfirmationProvider",
    "ClickConfirmation",
    "StaticConfirmation",
    "StageRunner",
    "RunResult",
    "Stage",
    "build_stages",
]
