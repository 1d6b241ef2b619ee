"""
Stage runner: the resumable state machine behind every setup flow.

The runner walks an ordered stage list, persisting the name of each stage
to the progress store as soon as its action returns. A stage failure stops
the walk with the marker left on the previous stage, so the next
``--resume`` run starts at the stage that failed.

Failures cross the stage boundary as a ``RunResult``, never as an
exception: the caller decides how to report them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from nodesetup.errors import NodeSetupError
from nodesetup.install.progress import ProgressStore
from nodesetup.install.stages import Stage

__all__ = ["StageRunner", "RunResult"]

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one pass over the stage list."""

    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None
    error: Optional[NodeSetupError] = None
    marker_before: Optional[str] = None
    marker_after: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        if self.error is None:
            return 0
        return self.error.exit_code


class StageRunner:
    """
    Execute stages in order, skipping those already recorded as complete.

    Example:
        runner = StageRunner(stages, ProgressStore(path))
        result = runner.run(resume=True)
        if not result.succeeded:
            ErrorReporter(...).report(result)
    """

    def __init__(self, stages: Sequence[Stage], store: ProgressStore, persist: bool = True):
        """
        Args:
            stages: Stages in execution order
            store: Progress marker store
            persist: Write the marker after each stage; off for dry runs
        """
        names = [stage.name for stage in stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate stage names: {', '.join(duplicates)}")

        self.stages = list(stages)
        self.store = store
        self.persist = persist

    @property
    def names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def start_index(self, marker: Optional[str]) -> int:
        """
        Index of the first stage strictly after ``marker``.

        An absent marker starts at 0. An unknown marker also starts at 0,
        with a warning, since it usually means the marker file belongs to a
        different version of the flow.
        """
        if marker is None:
            return 0
        try:
            return self.names.index(marker) + 1
        except ValueError:
            logger.warning(
                "Progress marker %r in %s matches no known stage; starting from the beginning",
                marker,
                self.store.path,
            )
            return 0

    def resolve_start(self, resume: bool) -> int:
        """Starting index for a run; without resume every run starts at 0."""
        if not resume:
            return 0
        return self.start_index(self.store.read())

    def run(self, resume: bool = False, start: Optional[int] = None) -> RunResult:
        """
        Run the stages from the resolved starting point.

        Args:
            resume: Start after the persisted marker instead of at stage 0
            start: Explicit starting index (overrides ``resume``)

        Returns:
            RunResult describing what ran and, on failure, which stage
            failed and why
        """
        marker = self.store.read()
        if start is None:
            start = self.resolve_start(resume)

        result = RunResult(marker_before=marker, marker_after=marker)
        result.skipped = self.names[:start]

        if start >= len(self.stages):
            logger.info("All %d stages already completed (last: %s)", len(self.stages), marker)
            return result

        if start:
            logger.info("Skipping %d completed stage(s), resuming at '%s'", start, self.stages[start].name)

        total = len(self.stages)
        for position, stage in enumerate(self.stages[start:], start=start + 1):
            label = stage.description or stage.name
            logger.info("[%d/%d] %s", position, total, label)
            started = time.monotonic()
            try:
                stage.action()
            except NodeSetupError as e:
                result.failed_stage = stage.name
                result.error = e
                logger.debug("Stage '%s' failed after %.1fs", stage.name, time.monotonic() - started)
                return result

            if self.persist:
                self.store.write(stage.name)
            result.completed.append(stage.name)
            result.marker_after = stage.name
            logger.debug("Stage '%s' completed in %.1fs", stage.name, time.monotonic() - started)

        return result
