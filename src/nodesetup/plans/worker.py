"""Worker node setup."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict

from nodesetup.install.connectivity import ConnectivityProbe
from nodesetup.install.stages import StageAction
from nodesetup.logger import log_banner
from nodesetup.plans.common import NodePlan

__all__ = ["WorkerStage", "WorkerPlan"]

logger = logging.getLogger(__name__)


class WorkerStage(str, Enum):
    MASTER_REACHABLE = "master_reachable"
    PREREQUISITES_INSTALLED = "prerequisites_installed"
    SWAP_DISABLED = "swap_disabled"
    KERNEL_CONFIGURED = "kernel_configured"
    CONTAINERD_INSTALLED = "containerd_installed"
    KUBERNETES_INSTALLED = "kubernetes_installed"
    HOSTNAME_CONFIGURED = "hostname_configured"


class WorkerPlan(NodePlan):
    """Prepare this machine to join the cluster as a worker."""

    role = "worker"
    title = "Kubernetes Worker Node Setup"
    intro = (
        "This will configure this machine as a",
        "Kubernetes worker node",
    )
    stage_enum = WorkerStage

    def actions(self) -> Dict[Enum, StageAction]:
        return {
            WorkerStage.MASTER_REACHABLE: self.verify_master_connectivity,
            WorkerStage.PREREQUISITES_INSTALLED: self.install_prerequisites,
            WorkerStage.SWAP_DISABLED: self.disable_swap,
            WorkerStage.KERNEL_CONFIGURED: self.configure_kernel,
            WorkerStage.CONTAINERD_INSTALLED: self.install_containerd,
            WorkerStage.KUBERNETES_INSTALLED: self.install_kubernetes,
            WorkerStage.HOSTNAME_CONFIGURED: self.configure_hostname,
        }

    def descriptions(self) -> Dict[Enum, str]:
        descriptions = super().descriptions()
        descriptions.update({
            WorkerStage.MASTER_REACHABLE: "Verifying connectivity to the master node...",
            WorkerStage.HOSTNAME_CONFIGURED: "Setting hostname...",
        })
        return descriptions

    def verify_master_connectivity(self) -> None:
        probe = ConnectivityProbe(self.executor, self.confirm)
        probe.verify(self.settings.master_host, self.settings.api_server_port)

    def on_complete(self) -> None:
        master = self.settings.master_host or "<MASTER_IP>"
        log_banner(logger, "Worker node preparation complete!")
        for line in (
            "",
            "To join this node to your Kubernetes cluster, run the 'kubeadm join' command",
            "that was output when you initialized the control plane node.",
            "",
            "The command should look similar to:",
            f"sudo kubeadm join {master}:{self.settings.api_server_port} --token <TOKEN> \\",
            "    --discovery-token-ca-cert-hash sha256:<HASH>",
            "",
            "If you don't have the join command, you can generate a new one on the master node with:",
            "sudo kubeadm token create --print-join-command",
            "",
            "If the join command fails, here are some troubleshooting tips:",
            "1. Ensure both nodes are on the same network",
            f"2. Check firewall settings (ports {self.settings.api_server_port}, 10250, and 10251 should be open)",
            "3. Verify that the master node's API server is running",
            "4. Make sure the token hasn't expired (tokens expire after 24 hours by default)",
            "5. If needed, run 'sudo kubeadm reset' to start fresh, then try joining again",
        ):
            logger.info(line)
