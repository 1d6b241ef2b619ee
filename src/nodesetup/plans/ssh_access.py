"""
SSH access for the control-plane node.

Installs and configures sshd, then restricts the SSH port to the host's
local /24 with ufw, falling back to raw iptables rules when ufw is not
installed.
"""

from __future__ import annotations

import getpass
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from nodesetup.errors import ExternalCommandFailure, PrerequisiteFailure
from nodesetup.install import templates
from nodesetup.install.network import detect_primary_ipv4, local_network_cidr
from nodesetup.install.session import SetupPlan
from nodesetup.install.stages import StageAction
from nodesetup.logger import log_banner

__all__ = ["SshAccessStage", "SshAccessPlan", "ufw_rule_numbers"]

logger = logging.getLogger(__name__)

_UFW_NUMBERED_RE = re.compile(r"^\[\s*(\d+)\]\s+(\S+)")

IPTABLES_RULE_FILES = ("/etc/iptables/rules.v4", "/etc/iptables.rules")


def ufw_rule_numbers(status_output: str, port: int) -> List[int]:
    """Rule numbers from ``ufw status numbered`` whose target is ``<port>/tcp``."""
    numbers = []
    for line in status_output.splitlines():
        match = _UFW_NUMBERED_RE.match(line.strip())
        if match and match.group(2) == f"{port}/tcp":
            numbers.append(int(match.group(1)))
    return numbers


class SshAccessStage(str, Enum):
    SSH_INSTALLED = "ssh_installed"
    SSH_ENABLED = "ssh_enabled"
    SSHD_CONFIGURED = "sshd_configured"
    FIREWALL_CONFIGURED = "firewall_configured"
    SSH_RESTARTED = "ssh_restarted"


class SshAccessPlan(SetupPlan):
    """Allow SSH to this node from the local network only."""

    role = "ssh-access"
    title = "SSH Access Setup for Kubernetes Master Node"
    intro = (
        "This will configure SSH access to allow",
        "connections from your personal PC on the same local network",
    )
    stage_enum = SshAccessStage

    address: Optional[str] = None

    def actions(self) -> Dict[Enum, StageAction]:
        return {
            SshAccessStage.SSH_INSTALLED: self.install_ssh_server,
            SshAccessStage.SSH_ENABLED: self.enable_ssh_service,
            SshAccessStage.SSHD_CONFIGURED: self.configure_sshd,
            SshAccessStage.FIREWALL_CONFIGURED: self.configure_firewall,
            SshAccessStage.SSH_RESTARTED: self.restart_ssh,
        }

    def descriptions(self) -> Dict[Enum, str]:
        return {
            SshAccessStage.SSH_INSTALLED: "Ensuring SSH server is installed...",
            SshAccessStage.SSH_ENABLED: "Starting and enabling SSH service...",
            SshAccessStage.SSHD_CONFIGURED: "Configuring SSH server...",
            SshAccessStage.FIREWALL_CONFIGURED: "Configuring firewall for local network SSH access...",
            SshAccessStage.SSH_RESTARTED: "Restarting SSH service to apply changes...",
        }

    def local_address(self) -> str:
        if self.address is None:
            self.address = detect_primary_ipv4(self.executor)
        if not self.address:
            logger.error("Could not detect local IP address. Please check your network configuration.")
            raise PrerequisiteFailure("Could not detect local IP address")
        return self.address

    def install_ssh_server(self) -> None:
        self.executor.run(["apt-get", "update"], sudo=True)
        self.executor.run(["apt-get", "install", "-y", "openssh-server"], sudo=True)

    def enable_ssh_service(self) -> None:
        self.executor.run(["systemctl", "enable", "ssh"], sudo=True)
        self.executor.run(["systemctl", "start", "ssh"], sudo=True)

    def configure_sshd(self) -> None:
        self.executor.run(["cp", templates.SSHD_CONFIG, templates.SSHD_CONFIG + ".bak"], sudo=True)
        self.executor.write_file(
            Path(templates.SSHD_CONFIG),
            templates.sshd_config(self.settings.ssh_port, self.settings.allow_password_auth),
        )

    def configure_firewall(self) -> None:
        cidr = local_network_cidr(self.local_address())
        logger.info("Detected local network: %s", cidr)
        logger.info("SSH access will be restricted to this network")

        if self.executor.which("ufw"):
            self._configure_ufw(cidr)
        elif self.executor.which("iptables"):
            self._configure_iptables(cidr)
        else:
            logger.warning(
                "No firewall detected. Please manually ensure SSH port %d is restricted to %s.",
                self.settings.ssh_port,
                cidr,
            )

    def _configure_ufw(self, cidr: str) -> None:
        ex = self.executor
        port = self.settings.ssh_port

        numbered = ex.run(["ufw", "status", "numbered"], sudo=True, quiet=True).stdout
        # Highest first so the remaining numbers stay valid
        for number in sorted(ufw_rule_numbers(numbered, port), reverse=True):
            ex.run(["ufw", "--force", "delete", str(number)], sudo=True)

        ex.run(["ufw", "allow", "from", cidr, "to", "any", "port", str(port), "proto", "tcp"], sudo=True)

        status = ex.run(["ufw", "status"], sudo=True, quiet=True).stdout
        if "Status: active" not in status:
            logger.info("Enabling UFW firewall...")
            ex.run(["ufw", "--force", "enable"], sudo=True)

        verbose = ex.run(["ufw", "status", "verbose"], sudo=True, check=False, quiet=True).stdout
        for line in verbose.strip().splitlines():
            logger.info("%s", line)

    def _configure_iptables(self, cidr: str) -> None:
        ex = self.executor
        port = str(self.settings.ssh_port)

        ex.run(["iptables", "-D", "INPUT", "-p", "tcp", "--dport", port, "-j", "ACCEPT"], sudo=True, check=False)
        ex.run(["iptables", "-A", "INPUT", "-p", "tcp", "-s", cidr, "--dport", port, "-j", "ACCEPT"], sudo=True)
        ex.run(["iptables", "-A", "INPUT", "-p", "tcp", "--dport", port, "-j", "DROP"], sudo=True)

        if not ex.which("iptables-save"):
            logger.warning("iptables-save not found. Firewall rules will be lost on reboot.")
            return

        rules = ex.run(["iptables-save"], sudo=True, check=False, quiet=True)
        if rules.ok:
            for target in IPTABLES_RULE_FILES:
                try:
                    ex.write_file(Path(target), rules.stdout)
                except (ExternalCommandFailure, OSError) as e:
                    logger.debug("Could not write %s: %s", target, e)
                    continue
                return
        logger.warning("Could not save iptables rules. They will be lost on reboot.")

    def restart_ssh(self) -> None:
        self.executor.run(["systemctl", "restart", "ssh"], sudo=True)

    def on_complete(self) -> None:
        port = self.settings.ssh_port
        address = self.address or detect_primary_ipv4(self.executor)
        cidr = local_network_cidr(address) if address else "your local network"
        address = address or "<this-host-ip>"
        user = getpass.getuser()
        log_banner(logger, "SSH access has been configured!")
        for line in (
            "You can now connect to this master node using:",
            f"ssh {user}@{address} -p {port}",
            "",
            f"IMPORTANT: SSH access is ONLY allowed from devices on your local network ({cidr})",
            "Connections from other networks or the internet will be blocked.",
            "",
            "If you want to use SSH key authentication:",
            "1. On your personal PC, generate an SSH key pair if you don't have one:",
            '   ssh-keygen -t ed25519 -C "your_email@example.com"',
            "2. Copy your public key to this server:",
            f"   ssh-copy-id -p {port} {user}@{address}",
            "   OR manually add your public key to ~/.ssh/authorized_keys",
            "3. To disable password authentication after setting up keys, set",
            "   allow_password_auth: false in your settings and run ssh-access again",
        ):
            logger.info(line)
