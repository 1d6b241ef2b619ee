"""
Prerequisite gate run before the first stage of a node setup.

Checks the host against fixed thresholds (RAM, CPU cores, free disk on
``/``) and verifies internet egress. A failing check is a warning plus a
continue/abort question, never an automatic fix:

    checker = PrerequisiteChecker(context.settings, executor, confirm)
    checker.gate()          # raises PrerequisiteFailure if the operator declines
    checker.check_existing_installation()   # raises UserAbort(exit_code=0)
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from nodesetup.config import NodeSetupConfig
from nodesetup.errors import PrerequisiteFailure, UserAbort
from nodesetup.install.executor import CommandExecutor
from nodesetup.install.prompts import ConfirmationProvider

__all__ = ["PrerequisiteReport", "PrerequisiteChecker", "SystemResources"]

logger = logging.getLogger(__name__)


class PrerequisiteReport(BaseModel):
    """Result of one prerequisite check. Not persisted."""

    model_config = ConfigDict(frozen=True)

    metric: str
    observed: float
    threshold: float
    unit: str = ""
    passed: bool
    warning: str = ""
    abort_reason: str = ""


class SystemResources:
    """Host capacity from /proc/meminfo, os.cpu_count and the root filesystem."""

    def __init__(self, meminfo: Path = Path("/proc/meminfo"), root: Path = Path("/")):
        self.meminfo = meminfo
        self.root = root

    def memory_mb(self) -> int:
        with open(self.meminfo, "r") as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    return int(line.split()[1]) // 1024
        raise PrerequisiteFailure(f"MemTotal not found in {self.meminfo}")

    def cpu_cores(self) -> int:
        return os.cpu_count() or 1

    def free_disk_gb(self) -> int:
        return shutil.disk_usage(self.root).free // (1024 ** 3)


class PrerequisiteChecker:
    """Evaluate thresholds and ask the operator about each shortfall."""

    def __init__(
        self,
        settings: NodeSetupConfig,
        executor: CommandExecutor,
        confirm: ConfirmationProvider,
        resources: Optional[SystemResources] = None,
    ):
        self.settings = settings
        self.executor = executor
        self.confirm = confirm
        self.resources = resources or SystemResources()

    def evaluate(self) -> List[PrerequisiteReport]:
        """Run every check without prompting."""
        s = self.settings
        ram = self.resources.memory_mb()
        cores = self.resources.cpu_cores()
        disk = self.resources.free_disk_gb()
        online = self.executor.succeeds(["ping", "-c", "1", "-W", "5", s.connectivity_check_host])

        return [
            PrerequisiteReport(
                metric="ram",
                observed=ram,
                threshold=s.min_ram_mb,
                unit="MB",
                passed=ram >= s.min_ram_mb,
                warning=f"System has only {ram}MB RAM. Recommended minimum is {s.min_ram_mb}MB.",
                abort_reason="Aborted due to insufficient RAM",
            ),
            PrerequisiteReport(
                metric="cpu",
                observed=cores,
                threshold=s.min_cpu_cores,
                unit="cores",
                passed=cores >= s.min_cpu_cores,
                warning=f"System has only {cores} CPU cores. Recommended minimum is {s.min_cpu_cores}.",
                abort_reason="Aborted due to insufficient CPU cores",
            ),
            PrerequisiteReport(
                metric="disk",
                observed=disk,
                threshold=s.min_disk_gb,
                unit="GB",
                passed=disk >= s.min_disk_gb,
                warning=f"System has only {disk}GB free disk space. Recommended minimum is {s.min_disk_gb}GB.",
                abort_reason="Aborted due to insufficient disk space",
            ),
            PrerequisiteReport(
                metric="network",
                observed=1 if online else 0,
                threshold=1,
                passed=online,
                warning="Network connectivity check failed. Internet access is required.",
                abort_reason="Aborted due to network connectivity issues",
            ),
        ]

    def gate(self) -> List[PrerequisiteReport]:
        """
        Check the host and confirm every shortfall with the operator.

        Returns:
            The reports, once every failing check has been accepted

        Raises:
            PrerequisiteFailure: The operator declined to continue past a
                failing check
        """
        logger.info("Checking system requirements...")
        reports = self.evaluate()
        for report in reports:
            if report.passed:
                continue
            logger.warning(report.warning)
            if not self.confirm.confirm("Continue anyway?"):
                logger.error(report.abort_reason)
                raise PrerequisiteFailure(report.abort_reason)
        logger.info("System requirements check completed")
        return reports

    def check_existing_installation(self) -> None:
        """
        Warn before touching a host that already runs Kubernetes.

        Raises:
            UserAbort: With exit code 0 if the operator chooses to stop
        """
        logger.info("Checking for existing Kubernetes installation...")

        if self.executor.which("kubeadm"):
            result = self.executor.run(["kubeadm", "version", "-o", "short"], check=False, quiet=True)
            installed = result.stdout.strip().lstrip("v")
            if result.ok and installed:
                logger.warning("Kubernetes version %s is already installed", installed)
                if not self.confirm.confirm(
                    "Do you want to proceed and potentially overwrite the existing installation?"
                ):
                    logger.info("Installation aborted by user")
                    raise UserAbort("Installation aborted by user", exit_code=0)

        if self.executor.succeeds(["systemctl", "is-active", "--quiet", "kubelet"]):
            logger.warning("Kubernetes services are already running")
            if not self.confirm.confirm(
                "Do you want to proceed and potentially disrupt the existing setup?"
            ):
                logger.info("Installation aborted by user")
                raise UserAbort("Installation aborted by user", exit_code=0)

        logger.info("Existing installation check completed")
