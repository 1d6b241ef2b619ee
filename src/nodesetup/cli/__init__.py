"""
nodesetup CLI - Provision a two-node Kubernetes cluster on Ubuntu hosts.

Commands:
    nodesetup master        Set up the control-plane node
    nodesetup worker        Prepare a worker node
    nodesetup ssh-access    Allow SSH from the local network only
    nodesetup remote-admin  Export a kubeconfig for a personal PC
    nodesetup status        Show recorded progress
    nodesetup reset         Forget recorded progress for a flow

Every setup command accepts --resume to continue after the last
completed stage of a previous run.
"""

import click

from .access import remote_admin, ssh_access
from .node import master, worker
from .progress import reset, status


@click.group()
@click.version_option(package_name="nodesetup")
def main():
    """nodesetup - resumable Kubernetes node provisioning."""
    pass


main.add_command(master)
main.add_command(worker)
main.add_command(ssh_access)
main.add_command(remote_admin)
main.add_command(status)
main.add_command(reset)


if __name__ == "__main__":
    main()
