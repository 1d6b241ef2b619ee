"""Setup flows, one per CLI command."""

from nodesetup.plans.master import MasterPlan, MasterStage
from nodesetup.plans.remote_admin import RemoteAdminPlan, RemoteAdminStage
from nodesetup.plans.ssh_access import SshAccessPlan, SshAccessStage
from nodesetup.plans.worker import WorkerPlan, WorkerStage

# Role name -> plan class, in the order the flows are normally run
PLANS = {
    "master": MasterPlan,
    "ssh-access": SshAccessPlan,
    "remote-admin": RemoteAdminPlan,
    "worker": WorkerPlan,
}

__all__ = [
    "PLANS",
    "MasterPlan",
    "MasterStage",
    "WorkerPlan",
    "WorkerStage",
    "SshAccessPlan",
    "SshAccessStage",
    "RemoteAdminPlan",
    "RemoteAdminStage",
]
