"""
nodesetup - Resumable provisioning for a two-node Kubernetes cluster.

Turns Ubuntu-family hosts into a kubeadm control-plane node and a worker
node, then opens SSH and remote kubectl access to the control plane. Each
flow is a fixed sequence of named stages; the last completed stage is
persisted so an interrupted run can continue with ``--resume``.

Example usage:
    from nodesetup import StageRunner, ProgressStore

    runner = StageRunner(stages, ProgressStore(Path("/var/lib/nodesetup/worker.progress")))
    result = runner.run(resume=True)
    print(result.exit_code)
"""

__version__ = "0.1.0"
__all__ = [
    "StageRunner",
    "ProgressStore",
    "RunContext",
    "get_config",
    "__version__",
]


# Lazy imports to keep CLI start-up light
def __getattr__(name: str):
    if name == "StageRunner":
        from nodesetup.install.runner import StageRunner
        return StageRunner
    if name == "ProgressStore":
        from nodesetup.install.progress import ProgressStore
        return ProgressStore
    if name == "RunContext":
        from nodesetup.config import RunContext
        return RunContext
    if name == "get_config":
        from nodesetup.config import get_config
        return get_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
