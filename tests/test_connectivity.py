"""
Tests for ConnectivityProbe - worker to control-plane reachability.
"""

import socket

import pytest

from nodesetup.errors import UserAbort
from nodesetup.install.connectivity import ConnectivityProbe, ProbeResult
from nodesetup.install.prompts import StaticConfirmation

from conftest import RecordingExecutor


@pytest.fixture
def listening_port():
    """A local TCP port that accepts connections."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server.getsockname()[1]
    server.close()


def unhealthy_tcp(host, port):
    return ProbeResult(name="tcp", target=f"{host}:{port}", healthy=False, error="Connection refused")


class TestVerify:
    def test_healthy_master(self, listening_port):
        confirm = StaticConfirmation(answer=False)
        probe = ConnectivityProbe(RecordingExecutor(), confirm)

        results = probe.verify("127.0.0.1", listening_port)

        assert [r.name for r in results] == ["ping", "tcp"]
        assert all(r.healthy for r in results)
        assert confirm.asked == []

    def test_prompts_for_missing_host(self):
        confirm = StaticConfirmation(response="")
        ex = RecordingExecutor()

        results = ConnectivityProbe(ex, confirm).verify(None, 6443)

        assert results == []
        assert confirm.asked == ["Master IP"]
        assert not ex.ran("ping")

    def test_uses_prompted_host(self, monkeypatch):
        confirm = StaticConfirmation(response="192.0.2.10")
        ex = RecordingExecutor()
        probe = ConnectivityProbe(ex, confirm)
        monkeypatch.setattr(probe, "check_tcp", lambda host, port: ProbeResult("tcp", f"{host}:{port}", True))

        probe.verify("", 6443)

        assert ex.ran("ping", "-c", "1", "-W", "5", "192.0.2.10")

    def test_ping_failure_declined(self):
        ex = RecordingExecutor()
        ex.respond(["ping"], exit_code=1)
        probe = ConnectivityProbe(ex, StaticConfirmation(answer=False))

        with pytest.raises(UserAbort) as exc_info:
            probe.verify("192.0.2.10", 6443)

        assert exc_info.value.exit_code == 1
        assert "connectivity issues" in exc_info.value.message

    def test_ping_failure_accepted_skips_port_check(self, monkeypatch):
        ex = RecordingExecutor()
        ex.respond(["ping"], exit_code=1)
        probe = ConnectivityProbe(ex, StaticConfirmation(answer=True))
        monkeypatch.setattr(probe, "check_tcp", lambda host, port: pytest.fail("port probed"))

        results = probe.verify("192.0.2.10", 6443)

        assert len(results) == 1
        assert not results[0].healthy

    def test_api_port_failure_declined(self, monkeypatch):
        probe = ConnectivityProbe(RecordingExecutor(), StaticConfirmation(answer=False))
        monkeypatch.setattr(probe, "check_tcp", unhealthy_tcp)

        with pytest.raises(UserAbort, match="API connectivity"):
            probe.verify("192.0.2.10", 6443)

    def test_api_port_failure_accepted(self, monkeypatch, caplog):
        confirm = StaticConfirmation(answer=True)
        probe = ConnectivityProbe(RecordingExecutor(), confirm)
        monkeypatch.setattr(probe, "check_tcp", unhealthy_tcp)

        results = probe.verify("192.0.2.10", 6443)

        assert results[-1].error == "Connection refused"
        assert confirm.asked == ["Continue anyway?"]
        assert "Cannot connect to Kubernetes API port 6443" in caplog.text


class TestCheckTcp:
    def test_refused(self):
        # Bind then close to get a port nothing listens on
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()

        result = ConnectivityProbe(RecordingExecutor(), StaticConfirmation(), timeout=1).check_tcp("127.0.0.1", port)

        assert not result.healthy
        assert result.target == f"127.0.0.1:{port}"
        assert result.error
