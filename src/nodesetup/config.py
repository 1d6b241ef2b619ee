"""
Centralized configuration for nodesetup.

Uses Pydantic BaseSettings for environment variable integration
and validation. Cluster versions, node names, host thresholds,
SSH settings and local paths all live here.

Configuration sources (in order of precedence):
1. Explicit constructor arguments (CLI flags)
2. YAML settings file passed with ``--config``
3. Environment variables (NODESETUP_*)
4. .env file
5. Default values

Example:
    from nodesetup.config import get_config

    config = get_config()
    print(config.kubernetes_version)  # From NODESETUP_KUBERNETES_VERSION or default

    # Override at runtime
    config = get_config(pod_network_cidr="192.168.0.0/16")
"""

from __future__ import annotations

import ipaddress
import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "NodeSetupConfig",
    "RunContext",
    "ROLES",
    "get_config",
    "reset_config",
    "load_config_file",
]

ROLES = ("master", "worker", "ssh-access", "remote-admin")

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")


class NodeSetupConfig(BaseSettings):
    """
    Central configuration for nodesetup.

    All settings can be overridden via environment variables
    prefixed with NODESETUP_.

    Example:
        export NODESETUP_KUBERNETES_VERSION=1.28.2
        export NODESETUP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="NODESETUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Cluster
    kubernetes_version: str = Field(
        default="1.27.0",
        description="Kubernetes release installed with kubeadm/kubelet/kubectl",
    )
    pod_network_cidr: str = Field(
        default="10.244.0.0/16",
        description="Pod network CIDR passed to kubeadm init and Calico",
    )
    calico_version: str = Field(
        default="v3.25.0",
        description="Calico release used for the Tigera operator manifest",
    )
    master_node_name: str = Field(default="master-node")
    worker_node_name: str = Field(default="worker-node-1")
    api_advertise_address: Optional[str] = Field(
        default=None,
        description="API server advertise address (auto-detected if not set)",
    )
    master_host: Optional[str] = Field(
        default=None,
        description="Control-plane address probed by the worker (prompted if not set)",
    )
    api_server_port: int = Field(default=6443, ge=1, le=65535)

    # Prerequisite thresholds
    min_ram_mb: int = Field(default=2048, ge=0)
    min_cpu_cores: int = Field(default=2, ge=0)
    min_disk_gb: int = Field(default=20, ge=0)
    connectivity_check_host: str = Field(
        default="8.8.8.8",
        description="Host pinged to verify internet egress",
    )

    # SSH access
    ssh_port: int = Field(default=22, ge=1, le=65535)
    allow_password_auth: bool = Field(
        default=True,
        description="Set to false to enforce key-based SSH authentication only",
    )

    # Local state
    state_dir: str = Field(
        default="/var/lib/nodesetup",
        description="Directory holding one progress marker per setup flow",
    )
    log_dir: str = Field(default="/var/log")
    log_level: Literal["debug", "info", "warning", "error"] = Field(default="info")

    # Command execution
    use_sudo: bool = Field(
        default=True,
        description="Prefix privileged commands with sudo when not running as root",
    )
    command_timeout_seconds: Optional[int] = Field(default=None, ge=1)

    @field_validator("kubernetes_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Accept ``1.27.0`` or ``v1.27.0``."""
        v = v.lstrip("v")
        if not _VERSION_RE.match(v):
            raise ValueError(f"kubernetes_version must look like X.Y.Z, got {v!r}")
        return v

    @field_validator("pod_network_cidr")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        return str(ipaddress.ip_network(v, strict=True))

    @field_validator("state_dir", "log_dir")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in paths."""
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def kubernetes_minor(self) -> str:
        """``1.27.0`` -> ``1.27``, as used by the pkgs.k8s.io repository layout."""
        return self.kubernetes_version.rsplit(".", 1)[0]

    def node_name_for(self, role: str) -> str:
        return self.worker_node_name if role == "worker" else self.master_node_name

    def get_progress_path(self, role: str) -> Path:
        return Path(self.state_dir) / f"{role}.progress"

    def get_log_path(self, role: str) -> Path:
        return Path(self.log_dir) / f"k8s_{role.replace('-', '_')}_setup.log"


class RunContext(BaseModel):
    """Process-scoped, read-only view of one provisioning run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: str
    resume: bool = False
    dry_run: bool = False
    node_name: str
    progress_file: Path
    log_file: Path
    settings: NodeSetupConfig

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"unknown role {v!r}, expected one of {', '.join(ROLES)}")
        return v

    @classmethod
    def build(
        cls,
        role: str,
        config: NodeSetupConfig,
        resume: bool = False,
        dry_run: bool = False,
    ) -> "RunContext":
        return cls(
            role=role,
            resume=resume,
            dry_run=dry_run,
            node_name=config.node_name_for(role),
            progress_file=config.get_progress_path(role),
            log_file=config.get_log_path(role),
            settings=config,
        )


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML settings file.

    Keys are NodeSetupConfig field names. An empty file yields no overrides.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping of settings, got {type(data).__name__}")
    return data


# Global singleton
_config: Optional[NodeSetupConfig] = None


def get_config(config_file: Optional[Path] = None, **overrides: Any) -> NodeSetupConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless a settings file or overrides are provided.

    Args:
        config_file: Optional YAML file whose values override the environment
        **overrides: Override any config values (None values are ignored)

    Returns:
        NodeSetupConfig instance
    """
    global _config

    overrides = {k: v for k, v in overrides.items() if v is not None}
    if config_file is not None or overrides or _config is None:
        values: Dict[str, Any] = {}
        if config_file is not None:
            values.update(load_config_file(config_file))
        values.update(overrides)
        _config = NodeSetupConfig(**values)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
