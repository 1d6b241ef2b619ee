"""Control-plane reachability checks for worker nodes."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import List, Optional

from nodesetup.errors import UserAbort
from nodesetup.install.executor import CommandExecutor
from nodesetup.install.prompts import ConfirmationProvider

__all__ = ["ProbeResult", "ConnectivityProbe"]

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of one reachability check."""
    name: str
    target: str
    healthy: bool
    response_time_ms: Optional[int] = None
    error: Optional[str] = None


class ConnectivityProbe:
    """
    Ping the control-plane host, then try its API port.

    Both checks are advisory. A failure is logged and the operator decides
    whether to continue; declining raises ``UserAbort``.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        confirm: ConfirmationProvider,
        timeout: float = 5.0,
    ):
        self.executor = executor
        self.confirm = confirm
        self.timeout = timeout

    def check_ping(self, host: str) -> ProbeResult:
        start_time = time.time()
        ok = self.executor.succeeds(["ping", "-c", "1", "-W", str(int(self.timeout)), host])
        return ProbeResult(
            name="ping",
            target=host,
            healthy=ok,
            response_time_ms=int((time.time() - start_time) * 1000) if ok else None,
            error=None if ok else "Host unreachable",
        )

    def check_tcp(self, host: str, port: int) -> ProbeResult:
        target = f"{host}:{port}"
        start_time = time.time()
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                pass
        except socket.timeout:
            return ProbeResult(name="tcp", target=target, healthy=False, error="Connection timeout")
        except ConnectionRefusedError:
            return ProbeResult(name="tcp", target=target, healthy=False, error="Connection refused")
        except OSError as e:
            return ProbeResult(name="tcp", target=target, healthy=False, error=str(e))

        return ProbeResult(
            name="tcp",
            target=target,
            healthy=True,
            response_time_ms=int((time.time() - start_time) * 1000),
        )

    def _continue_or_abort(self, reason: str) -> None:
        if not self.confirm.confirm("Continue anyway?"):
            logger.error(reason)
            raise UserAbort(reason, exit_code=1)

    def verify(self, host: Optional[str], port: int) -> List[ProbeResult]:
        """
        Check the control plane at ``host`` before joining it.

        Args:
            host: Control-plane address; if empty the operator is asked for
                one, and an empty answer skips the checks
            port: Kubernetes API server port

        Returns:
            The probe results that were collected

        Raises:
            UserAbort: The operator declined to continue after a failure
        """
        if not host:
            logger.info("Please enter the Kubernetes master node IP address to verify connectivity:")
            host = self.confirm.ask("Master IP")
        if not host:
            logger.error("No IP address provided. Skipping connectivity check.")
            return []

        logger.info("Checking connectivity to master node at %s...", host)
        results = [self.check_ping(host)]
        if not results[0].healthy:
            logger.warning("Cannot ping master node at %s", host)
            self._continue_or_abort("Aborted due to connectivity issues with master node")
            return results

        logger.info("Successfully pinged master node at %s", host)
        tcp = self.check_tcp(host, port)
        results.append(tcp)
        if not tcp.healthy:
            logger.warning(
                "Cannot connect to Kubernetes API port %d on master node %s (%s)", port, host, tcp.error
            )
            logger.warning("This might indicate that the master node is not properly set up yet")
            self._continue_or_abort("Aborted due to API connectivity issues with master node")
        else:
            logger.info("Successfully connected to Kubernetes API port on master node")
        return results
