"""
Remote administration from a personal PC.

Exports a copy of the admin kubeconfig that points at the node's LAN
address instead of the loopback interface, and drops a helper script that
starts ``kubectl proxy`` on all interfaces.
"""

from __future__ import annotations

import getpass
import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import yaml

from nodesetup.errors import PrerequisiteFailure
from nodesetup.install import templates
from nodesetup.install.network import detect_primary_ipv4
from nodesetup.install.session import SetupPlan
from nodesetup.install.stages import StageAction
from nodesetup.logger import log_banner

__all__ = ["RemoteAdminStage", "RemoteAdminPlan", "rewrite_kubeconfig"]

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("127.0.0.1", "localhost")
PROXY_PORT = 8001


def rewrite_kubeconfig(content: str, address: str) -> str:
    """
    Point every loopback cluster server in a kubeconfig at ``address``.

    Raises:
        PrerequisiteFailure: If ``content`` is not a kubeconfig document
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise PrerequisiteFailure(f"Kubernetes configuration is not valid YAML: {e}")
    if not isinstance(data, dict) or "clusters" not in data:
        raise PrerequisiteFailure("Kubernetes configuration has no clusters section")

    for entry in data.get("clusters") or []:
        cluster = entry.get("cluster") or {}
        server = cluster.get("server")
        if not server:
            continue
        parts = urlsplit(server)
        if parts.hostname in LOOPBACK_HOSTS:
            netloc = f"{address}:{parts.port}" if parts.port else address
            cluster["server"] = urlunsplit(parts._replace(netloc=netloc))
            logger.info("Cluster %s server: %s -> %s", entry.get("name"), server, cluster["server"])

    return yaml.safe_dump(data, sort_keys=False)


class RemoteAdminStage(str, Enum):
    SSH_VERIFIED = "ssh_verified"
    KUBECONFIG_EXPORTED = "kubeconfig_exported"
    PROXY_SCRIPT_WRITTEN = "proxy_script_written"


class RemoteAdminPlan(SetupPlan):
    """Prepare the master node for administration from another machine."""

    role = "remote-admin"
    title = "Remote Kubernetes Administration Setup"
    intro = (
        "This prepares your master node for",
        "remote administration from your personal PC",
    )
    stage_enum = RemoteAdminStage

    address: Optional[str] = None

    @property
    def kubeconfig(self) -> Path:
        return self.home / ".kube" / "config"

    @property
    def transportable_config(self) -> Path:
        return self.home / "kube-config-remote"

    @property
    def proxy_script(self) -> Path:
        return self.home / "start_kube_proxy.sh"

    def actions(self) -> Dict[Enum, StageAction]:
        return {
            RemoteAdminStage.SSH_VERIFIED: self.verify_ssh,
            RemoteAdminStage.KUBECONFIG_EXPORTED: self.export_kubeconfig,
            RemoteAdminStage.PROXY_SCRIPT_WRITTEN: self.write_proxy_script,
        }

    def descriptions(self) -> Dict[Enum, str]:
        return {
            RemoteAdminStage.SSH_VERIFIED: "Verifying SSH configuration...",
            RemoteAdminStage.KUBECONFIG_EXPORTED: "Preparing Kubernetes configuration for remote access...",
            RemoteAdminStage.PROXY_SCRIPT_WRITTEN: "Setting up kubectl proxy for remote API access...",
        }

    def preflight(self) -> None:
        if not self.executor.path_exists(self.kubeconfig):
            logger.error("Kubernetes configuration not found at %s", self.kubeconfig)
            logger.error("Please ensure you've successfully set up the Kubernetes master node first.")
            raise PrerequisiteFailure(f"Kubernetes configuration not found at {self.kubeconfig}")

    def local_address(self) -> str:
        if self.address is None:
            self.address = detect_primary_ipv4(self.executor)
        if not self.address:
            raise PrerequisiteFailure("Could not detect local IP address")
        return self.address

    def verify_ssh(self) -> None:
        if not self.executor.succeeds(["systemctl", "is-active", "--quiet", "ssh"]):
            logger.error("SSH service is not running. Consider running 'nodesetup ssh-access' first.")
            raise PrerequisiteFailure("SSH service is not running")
        logger.info("SSH service is running.")

    def export_kubeconfig(self) -> None:
        content = self.executor.read_file(self.kubeconfig)
        self.executor.write_file(
            self.transportable_config,
            rewrite_kubeconfig(content, self.local_address()),
            sudo=False,
            mode=0o600,
        )

    def write_proxy_script(self) -> None:
        self.executor.write_file(
            self.proxy_script,
            templates.kube_proxy_script(PROXY_PORT),
            sudo=False,
            mode=0o755,
        )

    def on_complete(self) -> None:
        user = getpass.getuser()
        address = self.address or detect_primary_ipv4(self.executor) or "<this-host-ip>"
        config = self.transportable_config
        log_banner(logger, "Remote administration setup complete!")
        for line in (
            "NEXT STEPS ON YOUR PERSONAL PC:",
            "",
            "1. Install kubectl on your personal PC",
            "   - For Windows: https://kubernetes.io/docs/tasks/tools/install-kubectl-windows/",
            "   - For macOS: https://kubernetes.io/docs/tasks/tools/install-kubectl-macos/",
            "   - For Linux: https://kubernetes.io/docs/tasks/tools/install-kubectl-linux/",
            "2. Create the .kube directory on your personal PC:",
            "   mkdir -p ~/.kube",
            "3. Copy the Kubernetes config from this master node to your personal PC:",
            f"   scp {user}@{address}:{config} ~/.kube/config",
            "4. Test the connection from your personal PC:",
            "   kubectl get nodes",
            "5. Optional: Access the Kubernetes API remotely",
            f"   - On the master node, run: {self.proxy_script}",
            f"   - On your personal PC, you can access the API at: http://{address}:{PROXY_PORT}/api/v1",
            "",
            "SECURITY NOTE: The transportable config file contains authentication details.",
            "Keep it secure and delete it after copying to your personal PC with:",
            f"  rm {config}",
        ):
            logger.info(line)
