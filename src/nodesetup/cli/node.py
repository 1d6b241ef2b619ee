"""nodesetup CLI - control-plane and worker node setup commands."""

import sys
from pathlib import Path
from typing import Optional

import click

from .common import run_flow, setup_options


@click.command()
@setup_options
@click.option("--advertise-address", help="API server advertise address (auto-detected by default)")
def master(
    resume: bool,
    config_file: Optional[Path],
    assume_yes: bool,
    dry_run: bool,
    advertise_address: Optional[str],
):
    """Configure this machine as the Kubernetes control-plane node.

    Installs containerd and the kubeadm toolchain, runs kubeadm init,
    installs Calico and prints the join command for worker nodes.

    Examples:
        sudo nodesetup master
        sudo nodesetup master --resume
    """
    code = run_flow(
        "master",
        resume,
        config_file,
        assume_yes,
        dry_run,
        api_advertise_address=advertise_address,
    )
    sys.exit(code)


@click.command()
@setup_options
@click.option("--master-host", help="Control-plane address to probe (prompted if not set)")
def worker(
    resume: bool,
    config_file: Optional[Path],
    assume_yes: bool,
    dry_run: bool,
    master_host: Optional[str],
):
    """Prepare this machine to join the cluster as a worker node.

    Examples:
        sudo nodesetup worker --master-host 192.168.1.10
        sudo nodesetup worker --resume
    """
    code = run_flow("worker", resume, config_file, assume_yes, dry_run, master_host=master_host)
    sys.exit(code)
