"""Control-plane ("master") node setup."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from nodesetup.errors import ExternalCommandFailure, PrerequisiteFailure
from nodesetup.install import templates
from nodesetup.install.network import detect_primary_ipv4
from nodesetup.install.stages import StageAction
from nodesetup.logger import log_banner
from nodesetup.plans.common import NodePlan

__all__ = ["MasterStage", "MasterPlan"]

logger = logging.getLogger(__name__)

ADMIN_CONF = "/etc/kubernetes/admin.conf"


class MasterStage(str, Enum):
    PREREQUISITES_INSTALLED = "prerequisites_installed"
    SWAP_DISABLED = "swap_disabled"
    KERNEL_CONFIGURED = "kernel_configured"
    CONTAINERD_INSTALLED = "containerd_installed"
    KUBERNETES_INSTALLED = "kubernetes_installed"
    CONTROL_PLANE_INITIALIZED = "control_plane_initialized"
    KUBECTL_CONFIGURED = "kubectl_configured"
    NETWORK_PLUGIN_INSTALLED = "network_plugin_installed"
    JOIN_COMMAND_GENERATED = "join_command_generated"


class MasterPlan(NodePlan):
    """Configure this machine as the cluster's control-plane node."""

    role = "master"
    title = "Kubernetes Master Node Setup"
    intro = (
        "This will configure this machine as the",
        "Kubernetes control plane node",
    )
    stage_enum = MasterStage

    join_command: Optional[str] = None

    def actions(self) -> Dict[Enum, StageAction]:
        return {
            MasterStage.PREREQUISITES_INSTALLED: self.install_prerequisites,
            MasterStage.SWAP_DISABLED: self.disable_swap,
            MasterStage.KERNEL_CONFIGURED: self.configure_kernel,
            MasterStage.CONTAINERD_INSTALLED: self.install_containerd,
            MasterStage.KUBERNETES_INSTALLED: self.install_kubernetes,
            MasterStage.CONTROL_PLANE_INITIALIZED: self.init_control_plane,
            MasterStage.KUBECTL_CONFIGURED: self.configure_kubectl,
            MasterStage.NETWORK_PLUGIN_INSTALLED: self.install_network_plugin,
            MasterStage.JOIN_COMMAND_GENERATED: self.generate_join_command,
        }

    def descriptions(self) -> Dict[Enum, str]:
        descriptions = super().descriptions()
        descriptions.update({
            MasterStage.CONTROL_PLANE_INITIALIZED: "Initializing Kubernetes control plane...",
            MasterStage.KUBECTL_CONFIGURED: "Setting up kubectl configuration...",
            MasterStage.NETWORK_PLUGIN_INSTALLED: "Installing Calico as the pod network plugin...",
            MasterStage.JOIN_COMMAND_GENERATED: "Generating worker node join command...",
        })
        return descriptions

    @property
    def kubeconfig(self) -> Path:
        return self.home / ".kube" / "config"

    def advertise_address(self) -> str:
        address = self.settings.api_advertise_address or detect_primary_ipv4(self.executor)
        if address:
            return address
        if self.context.dry_run:
            return "<advertise-address>"
        raise PrerequisiteFailure(
            "Could not detect a local IPv4 address for the API server; set api_advertise_address"
        )

    def init_control_plane(self) -> None:
        s = self.settings
        self.configure_hostname()
        self.executor.run(
            [
                "kubeadm", "init",
                f"--pod-network-cidr={s.pod_network_cidr}",
                f"--apiserver-advertise-address={self.advertise_address()}",
                f"--kubernetes-version={s.kubernetes_version}",
                f"--node-name={self.context.node_name}",
            ],
            sudo=True,
        )

    def configure_kubectl(self) -> None:
        ex = self.executor
        kube_dir = self.kubeconfig.parent
        ex.run(["mkdir", "-p", str(kube_dir)])
        ex.run(["cp", "-f", ADMIN_CONF, str(self.kubeconfig)], sudo=True)
        ex.run(["chown", f"{os.getuid()}:{os.getgid()}", str(self.kubeconfig)], sudo=True)

        bashrc = self.home / ".bashrc"
        export = f"export KUBECONFIG={self.kubeconfig}"
        if export not in ex.read_file(bashrc).splitlines():
            ex.write_file(bashrc, export + "\n", sudo=False, append=True)

    def install_network_plugin(self) -> None:
        ex = self.executor
        s = self.settings
        operator = ex.run(
            ["kubectl", "create", "-f", templates.tigera_operator_url(s.calico_version)],
            check=False,
        )
        if not operator.ok:
            # Left over from an interrupted earlier attempt
            if "AlreadyExists" in operator.stderr:
                logger.info("Tigera operator resources already exist")
            else:
                raise ExternalCommandFailure(operator.argv, operator.exit_code, operator.stderr.strip())
        ex.run(["kubectl", "apply", "-f", "-"], input=templates.calico_installation(s.pod_network_cidr))

    def generate_join_command(self) -> None:
        result = self.executor.run(
            ["kubeadm", "token", "create", "--print-join-command"], sudo=True, quiet=True
        )
        self.join_command = result.stdout.strip()
        logger.info("Use the following command on your worker node to join the cluster:")
        logger.info("%s", self.join_command)

    def on_complete(self) -> None:
        log_banner(
            logger,
            "Kubernetes control plane setup complete!",
            "Please save the join command above to use on worker nodes",
            "To print it again: sudo kubeadm token create --print-join-command",
        )
        nodes = self.executor.run(["kubectl", "get", "nodes"], check=False)
        if nodes.stdout.strip():
            for line in nodes.stdout.strip().splitlines():
                logger.info("%s", line)
