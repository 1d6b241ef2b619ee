"""Contents of the files the setup flows write on the host."""

from __future__ import annotations

import re
import textwrap
from typing import Any, Dict

import yaml

K8S_MODULES_LOAD = "/etc/modules-load.d/k8s.conf"
K8S_SYSCTL = "/etc/sysctl.d/k8s.conf"
CONTAINERD_CONFIG = "/etc/containerd/config.toml"
SSHD_CONFIG = "/etc/ssh/sshd_config"

KERNEL_MODULES = ("overlay", "br_netfilter")

SYSCTL_SETTINGS = {
    "net.bridge.bridge-nf-call-iptables": "1",
    "net.bridge.bridge-nf-call-ip6tables": "1",
    "net.ipv4.ip_forward": "1",
}

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
KUBERNETES_KEYRING = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"

_SYSTEMD_CGROUP_RE = re.compile(r"SystemdCgroup\s*=\s*false")


def modules_load_conf() -> str:
    return "\n".join(KERNEL_MODULES) + "\n"


def sysctl_conf() -> str:
    width = max(len(key) for key in SYSCTL_SETTINGS)
    return "".join(f"{key.ljust(width)} = {value}\n" for key, value in SYSCTL_SETTINGS.items())


def docker_apt_source(arch: str, codename: str) -> str:
    return (
        f"deb [arch={arch} signed-by={DOCKER_KEYRING}] "
        f"https://download.docker.com/linux/ubuntu {codename} stable\n"
    )


def kubernetes_repo_url(minor: str) -> str:
    return f"https://pkgs.k8s.io/core:/stable:/v{minor}/deb/"


def kubernetes_apt_source(minor: str) -> str:
    return f"deb [signed-by={KUBERNETES_KEYRING}] {kubernetes_repo_url(minor)} /\n"


def containerd_config(default_config: str) -> str:
    """Switch containerd's runc runtime to the systemd cgroup driver."""
    return _SYSTEMD_CGROUP_RE.sub("SystemdCgroup = true", default_config)


def tigera_operator_url(calico_version: str) -> str:
    return (
        "https://raw.githubusercontent.com/projectcalico/calico/"
        f"{calico_version}/manifests/tigera-operator.yaml"
    )


def calico_installation(pod_network_cidr: str) -> str:
    manifest: Dict[str, Any] = {
        "apiVersion": "operator.tigera.io/v1",
        "kind": "Installation",
        "metadata": {"name": "default"},
        "spec": {
            "calicoNetwork": {
                "ipPools": [
                    {
                        "blockSize": 26,
                        "cidr": pod_network_cidr,
                        "encapsulation": "VXLANCrossSubnet",
                        "natOutgoing": "Enabled",
                        "nodeSelector": "all()",
                    }
                ]
            }
        },
    }
    return yaml.safe_dump(manifest, sort_keys=False)


def sshd_config(port: int, allow_password_auth: bool) -> str:
    password_auth = "yes" if allow_password_auth else "no"
    return textwrap.dedent(f"""\
        # SSH Server Configuration
        Port {port}
        AddressFamily any
        ListenAddress 0.0.0.0
        ListenAddress ::

        HostKey /etc/ssh/ssh_host_rsa_key
        HostKey /etc/ssh/ssh_host_ecdsa_key
        HostKey /etc/ssh/ssh_host_ed25519_key

        # Logging
        SyslogFacility AUTH
        LogLevel INFO

        # Authentication
        PermitRootLogin no
        PubkeyAuthentication yes
        PasswordAuthentication {password_auth}
        PermitEmptyPasswords no
        ChallengeResponseAuthentication no
        UsePAM yes

        # Additional security settings
        X11Forwarding no
        PrintMotd no
        AcceptEnv LANG LC_*
        """)


def kube_proxy_script(port: int = 8001) -> str:
    return textwrap.dedent(f"""\
        #!/bin/bash
        # Start kubectl proxy to allow remote API access
        kubectl proxy --address='0.0.0.0' --port={port} --accept-hosts='.*'
        """)
