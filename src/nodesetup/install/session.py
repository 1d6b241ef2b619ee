"""
Setup sessions: one CLI invocation of one flow.

A ``SetupPlan`` owns a flow's stage enumeration, the actions bound to it,
the gate that runs before a fresh start and the message shown once every
stage has completed. ``run_setup`` wires a plan to the progress store,
the stage runner and the error reporter and returns the process exit code.
"""

from __future__ import annotations

import abc
import logging
from enum import Enum
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Sequence, Type

from nodesetup.config import RunContext
from nodesetup.errors import NodeSetupError
from nodesetup.install.executor import CommandExecutor
from nodesetup.install.progress import ProgressStore
from nodesetup.install.prompts import ConfirmationProvider
from nodesetup.install.reporter import ErrorReporter
from nodesetup.install.runner import StageRunner
from nodesetup.install.stages import Stage, StageAction, build_stages
from nodesetup.logger import log_banner

__all__ = ["SetupPlan", "run_setup"]

logger = logging.getLogger(__name__)


class SetupPlan(abc.ABC):
    """Base class for the master, worker, ssh-access and remote-admin flows."""

    role: ClassVar[str]
    title: ClassVar[str]
    intro: ClassVar[Sequence[str]] = ()
    stage_enum: ClassVar[Type[Enum]]

    def __init__(
        self,
        context: RunContext,
        executor: CommandExecutor,
        confirm: ConfirmationProvider,
        home: Optional[Path] = None,
    ):
        if context.role != self.role:
            raise ValueError(f"{type(self).__name__} cannot run with a {context.role!r} context")
        self.context = context
        self.settings = context.settings
        self.executor = executor
        self.confirm = confirm
        self.home = home or Path.home()

    @abc.abstractmethod
    def actions(self) -> Dict[Enum, StageAction]:
        """Map every member of ``stage_enum`` to the callable that performs it."""

    def descriptions(self) -> Dict[Enum, str]:
        return {}

    def stages(self) -> List[Stage]:
        return build_stages(self.stage_enum, self.actions(), self.descriptions())

    def preflight(self) -> None:
        """Checks run before stage 0. Raise a NodeSetupError to stop the run."""

    def on_complete(self) -> None:
        """Log what the operator should do next."""


def run_setup(plan: SetupPlan) -> int:
    """
    Run a plan end to end.

    Returns:
        0 on success, otherwise the exit code of whatever stopped the run
    """
    context = plan.context
    log_banner(logger, plan.title, "-" * 47, *plan.intro, f"Log file: {context.log_file}")
    if context.dry_run:
        logger.info("Dry run: commands are logged but not executed, progress is not recorded")

    store = ProgressStore(context.progress_file)
    runner = StageRunner(plan.stages(), store, persist=not context.dry_run)

    if context.resume:
        logger.info("Resuming from previous execution...")
        logger.info("Last successful step: %s", store.read() or "none")

    start = runner.resolve_start(context.resume)
    if start == 0:
        try:
            plan.preflight()
        except NodeSetupError as e:
            logger.debug("Preflight stopped the run: %s", e.message)
            return e.exit_code

    result = runner.run(start=start)
    if not result.succeeded:
        reporter = ErrorReporter(context.log_file, f"nodesetup {context.role}")
        return reporter.report(result)

    plan.on_complete()
    return 0
