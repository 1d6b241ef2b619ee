"""Failure reporting for staged runs."""

from __future__ import annotations

import logging
from pathlib import Path

from nodesetup.errors import ExternalCommandFailure
from nodesetup.install.runner import RunResult

__all__ = ["ErrorReporter"]

logger = logging.getLogger(__name__)


class ErrorReporter:
    """
    Explain a failed run and hand back the exit code to leave with.

    The code is the failing command's own exit code, unchanged, so a
    wrapper script can tell an apt failure from a kubeadm one.
    """

    def __init__(self, log_file: Path, resume_command: str):
        self.log_file = log_file
        self.resume_command = resume_command

    def report(self, result: RunResult) -> int:
        if result.succeeded:
            return 0

        error = result.error
        logger.error(
            "Error occurred in stage '%s', exit code %d: %s",
            result.failed_stage,
            result.exit_code,
            error.message,
        )
        if isinstance(error, ExternalCommandFailure):
            logger.error("Failed command: %s", error.command)
            if error.stderr:
                logger.error("Command output: %s", error.stderr)
        logger.error("Check the log file at %s for details", self.log_file)

        # A fresh run that failed at its first stage: the marker on disk, if
        # any, belongs to an earlier run and resuming from it would skip the
        # stage that just failed.
        if not result.completed and not result.skipped:
            logger.error("Last successful step was: None (no stage completed in this run)")
            if result.marker_after:
                logger.error("Progress marker '%s' predates this run", result.marker_after)
            logger.error("To retry from the beginning, run: %s", self.resume_command)
            return result.exit_code

        logger.error("Last successful step was: %s", result.marker_after or "None")
        logger.error("To resume from the last successful step, run: %s --resume", self.resume_command)
        return result.exit_code
