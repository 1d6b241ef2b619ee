"""
Stages shared by the control-plane and worker flows.

Both node roles prepare the host the same way before they diverge: base
packages, swap off, kernel modules and sysctls, containerd, then the
kubeadm/kubelet/kubectl packages.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from nodesetup.config import RunContext
from nodesetup.errors import ExternalCommandFailure, UserAbort
from nodesetup.install import templates
from nodesetup.install.executor import COMMAND_NOT_FOUND, CommandExecutor
from nodesetup.install.prerequisites import PrerequisiteChecker, SystemResources
from nodesetup.install.prompts import ConfirmationProvider
from nodesetup.install.session import SetupPlan

__all__ = ["NodePlan", "BASE_PACKAGES", "KUBERNETES_PACKAGES", "SHARED_DESCRIPTIONS"]

logger = logging.getLogger(__name__)

BASE_PACKAGES = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "software-properties-common",
    "gnupg",
)
KUBERNETES_PACKAGES = ("kubelet", "kubeadm", "kubectl")

# Keyed by stage value so both role enumerations can share them
SHARED_DESCRIPTIONS = {
    "prerequisites_installed": "Updating system and installing prerequisites...",
    "swap_disabled": "Disabling swap...",
    "kernel_configured": "Configuring kernel modules and system settings...",
    "containerd_installed": "Installing containerd as container runtime...",
    "kubernetes_installed": "Installing Kubernetes components (kubeadm, kubelet, kubectl)...",
}


class NodePlan(SetupPlan):
    """A flow that turns this host into a Kubernetes node."""

    def __init__(
        self,
        context: RunContext,
        executor: CommandExecutor,
        confirm: ConfirmationProvider,
        home: Optional[Path] = None,
        resources: Optional[SystemResources] = None,
    ):
        super().__init__(context, executor, confirm, home=home)
        self.checker = PrerequisiteChecker(self.settings, executor, confirm, resources)

    def descriptions(self) -> Dict[Enum, str]:
        return {
            member: SHARED_DESCRIPTIONS[member.value]
            for member in self.stage_enum
            if member.value in SHARED_DESCRIPTIONS
        }

    def preflight(self) -> None:
        self.checker.gate()
        self.checker.check_existing_installation()

    def _apt_install(self, *packages: str) -> None:
        self.executor.run(["apt-get", "install", "-y", *packages], sudo=True)

    def _install_apt_key(self, url: str, keyring: str) -> None:
        self.executor.run(["mkdir", "-p", "/etc/apt/keyrings"], sudo=True)
        key = self.executor.run(["curl", "-fsSL", url], quiet=True).stdout
        self.executor.run(["gpg", "--dearmor", "--yes", "-o", keyring], sudo=True, input=key)

    def install_prerequisites(self) -> None:
        self.executor.run(["apt-get", "update"], sudo=True)
        self._apt_install(*BASE_PACKAGES)

    def disable_swap(self) -> None:
        ex = self.executor
        if not ex.run(["swapoff", "-a"], sudo=True, check=False).ok:
            logger.warning("Failed to disable swap with swapoff")

        fstab = ex.read_file(Path("/etc/fstab"))
        lines = fstab.splitlines(keepends=True)
        kept = [line for line in lines if "swap" not in line]
        if len(kept) != len(lines):
            ex.write_file(Path("/etc/fstab"), "".join(kept))

        # First line of /proc/swaps is the column header
        active = [line for line in ex.read_file(Path("/proc/swaps")).splitlines()[1:] if line.strip()]
        if active:
            logger.warning("Swap is still enabled despite attempts to disable it")
            if not self.confirm.confirm("Continue anyway? This might cause problems."):
                logger.error("Aborted due to enabled swap")
                raise UserAbort("Aborted due to enabled swap", exit_code=1)
        else:
            logger.info("Swap is successfully disabled")

    def configure_kernel(self) -> None:
        ex = self.executor
        ex.write_file(Path(templates.K8S_MODULES_LOAD), templates.modules_load_conf())
        for module in templates.KERNEL_MODULES:
            if not ex.run(["modprobe", module], sudo=True, check=False).ok:
                logger.warning("Failed to load %s module", module)

        ex.write_file(Path(templates.K8S_SYSCTL), templates.sysctl_conf())
        if not ex.run(["sysctl", "--system"], sudo=True, check=False).ok:
            logger.warning("Failed to apply sysctl settings")

        if not self.context.dry_run:
            current = ex.run(
                ["sysctl", "-n", "net.bridge.bridge-nf-call-iptables"], check=False, quiet=True
            ).stdout.strip()
            if current != "1":
                logger.warning("net.bridge.bridge-nf-call-iptables is not set to 1")

    def install_containerd(self) -> None:
        ex = self.executor
        self._install_apt_key(templates.DOCKER_GPG_URL, templates.DOCKER_KEYRING)

        arch = ex.run(["dpkg", "--print-architecture"], quiet=True).stdout.strip()
        codename = ex.run(["lsb_release", "-cs"], quiet=True).stdout.strip()
        logger.info("Detected Ubuntu version: %s", codename)
        ex.write_file(
            Path("/etc/apt/sources.list.d/docker.list"),
            templates.docker_apt_source(arch, codename),
        )

        ex.run(["apt-get", "update"], sudo=True)
        self._apt_install("containerd.io")

        default_config = ex.run(["containerd", "config", "default"], quiet=True).stdout
        ex.write_file(Path(templates.CONTAINERD_CONFIG), templates.containerd_config(default_config))
        ex.run(["systemctl", "restart", "containerd"], sudo=True)
        ex.run(["systemctl", "enable", "containerd"], sudo=True)

        status = ex.run(["systemctl", "is-active", "--quiet", "containerd"], check=False, quiet=True)
        if not status.ok:
            logger.error("containerd is not running after installation")
            raise ExternalCommandFailure(
                status.argv, status.exit_code, message="containerd is not running after installation"
            )

    def install_kubernetes(self) -> None:
        ex = self.executor
        s = self.settings
        repo = templates.kubernetes_repo_url(s.kubernetes_minor)
        self._install_apt_key(repo + "Release.key", templates.KUBERNETES_KEYRING)
        ex.write_file(
            Path("/etc/apt/sources.list.d/kubernetes.list"),
            templates.kubernetes_apt_source(s.kubernetes_minor),
        )
        ex.run(["apt-get", "update"], sudo=True)

        pinned = [f"{package}={s.kubernetes_version}-*" for package in KUBERNETES_PACKAGES]
        result = ex.run(["apt-get", "install", "-y", *pinned], sudo=True, check=False)
        if result.ok:
            logger.info("Installed Kubernetes version: %s", s.kubernetes_version)
        else:
            logger.warning(
                "Failed to install Kubernetes %s-*, trying without version specifier", s.kubernetes_version
            )
            self._apt_install(*KUBERNETES_PACKAGES)
            installed = ex.run(["kubeadm", "version", "-o", "short"], check=False, quiet=True).stdout
            logger.info(
                "Installed Kubernetes version: %s (instead of requested %s)",
                installed.strip().lstrip("v") or "unknown",
                s.kubernetes_version,
            )

        if not ex.run(["apt-mark", "hold", *KUBERNETES_PACKAGES], sudo=True, check=False).ok:
            logger.warning("Failed to hold Kubernetes packages")

        if self.context.dry_run:
            return
        missing = [binary for binary in KUBERNETES_PACKAGES if not ex.which(binary)]
        if missing:
            logger.error("Kubernetes binaries are not properly installed")
            raise ExternalCommandFailure(
                ["which", *missing],
                COMMAND_NOT_FOUND,
                message=f"Kubernetes binaries missing from PATH: {', '.join(missing)}",
            )

    def configure_hostname(self) -> None:
        ex = self.executor
        name = self.context.node_name
        current = ex.run(["hostname"], check=False, quiet=True).stdout.strip()
        if current == name:
            logger.info("Hostname is already set to %s", name)
        else:
            logger.info("Setting hostname to %s", name)
            ex.run(["hostnamectl", "set-hostname", name], sudo=True)

        entry = f"127.0.0.1 {name}"
        hosts = ex.read_file(Path("/etc/hosts"))
        if entry not in (line.strip() for line in hosts.splitlines()):
            ex.write_file(Path("/etc/hosts"), entry + "\n", append=True)
        logger.info("Hostname configured successfully")
