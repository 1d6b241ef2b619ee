"""
Progress marker persistence for setup flows.

Each flow keeps exactly one plain-text marker file holding the name of
the last stage that completed. The file supports:
- Resume mode: the runner starts after the recorded stage
- Atomic updates: a temporary file is renamed over the marker
- Manual reset: ``nodesetup reset <role>`` deletes the marker

Markers live under the state directory (``/var/lib/nodesetup`` by
default) so a resume after a reboot still finds them.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

__all__ = ["ProgressStore"]

logger = logging.getLogger(__name__)


class ProgressStore:
    """
    Durable single-value store for one flow's progress marker.

    Single writer, single reader; last write wins.
    """

    def __init__(self, path: Path):
        """
        Args:
            path: Marker file location, e.g. /var/lib/nodesetup/worker.progress
        """
        self.path = Path(path)

    def exists(self) -> bool:
        """Check if a marker has been written."""
        return self.path.exists()

    def read(self) -> Optional[str]:
        """
        Load the marker from disk.

        Returns:
            The last completed stage name, or None if no marker exists
            or the file is empty.
        """
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return value or None

    def write(self, name: str) -> None:
        """
        Persist ``name`` as the new marker.

        Uses temporary file + rename so a crash mid-write never leaves a
        truncated marker behind.
        """
        if not name or "\n" in name:
            raise ValueError(f"invalid stage name for progress marker: {name!r}")

        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}-",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(name + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
        logger.debug("Progress marker %s -> %s", self.path, name)

    def reset(self) -> bool:
        """
        Delete the marker.

        Returns:
            True if a marker was removed, False if there was none
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True

    def __repr__(self) -> str:
        return f"ProgressStore({str(self.path)!r})"
