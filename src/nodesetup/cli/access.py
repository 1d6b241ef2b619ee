"""nodesetup CLI - SSH and remote administration commands."""

import sys
from pathlib import Path
from typing import Optional

import click

from .common import run_flow, setup_options


@click.command("ssh-access")
@setup_options
@click.option("--port", "ssh_port", type=int, help="SSH port (default 22)")
@click.option(
    "--password-auth/--no-password-auth",
    "allow_password_auth",
    default=None,
    help="Allow password authentication (default: allowed)",
)
def ssh_access(
    resume: bool,
    config_file: Optional[Path],
    assume_yes: bool,
    dry_run: bool,
    ssh_port: Optional[int],
    allow_password_auth: Optional[bool],
):
    """Allow SSH to this node from the local network only."""
    code = run_flow(
        "ssh-access",
        resume,
        config_file,
        assume_yes,
        dry_run,
        ssh_port=ssh_port,
        allow_password_auth=allow_password_auth,
    )
    sys.exit(code)


@click.command("remote-admin")
@setup_options
def remote_admin(
    resume: bool,
    config_file: Optional[Path],
    assume_yes: bool,
    dry_run: bool,
):
    """Export a kubeconfig and kubectl proxy script for a personal PC."""
    code = run_flow("remote-admin", resume, config_file, assume_yes, dry_run)
    sys.exit(code)
