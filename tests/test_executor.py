"""
Tests for CommandExecutor - sudo handling, dry-run and file writes.
"""

import os
import sys

import pytest

from nodesetup.errors import ExternalCommandFailure
from nodesetup.install.executor import COMMAND_NOT_EXECUTABLE, COMMAND_NOT_FOUND, CommandExecutor, CommandResult


@pytest.fixture
def as_user(monkeypatch):
    """Pretend the process is not running as root."""
    monkeypatch.setattr(os, "geteuid", lambda: 1000)


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 0)


class TestBuildArgv:
    def test_sudo_prefix_for_non_root(self, as_user):
        assert CommandExecutor().build_argv(["apt-get", "update"], sudo=True) == ["sudo", "apt-get", "update"]

    def test_no_prefix_for_root(self, as_root):
        assert CommandExecutor().build_argv(["apt-get", "update"], sudo=True) == ["apt-get", "update"]

    def test_sudo_disabled(self, as_user):
        assert CommandExecutor(use_sudo=False).build_argv(["swapoff", "-a"], sudo=True) == ["swapoff", "-a"]

    def test_unprivileged_command(self, as_user):
        assert CommandExecutor().build_argv(["kubectl", "get", "nodes"]) == ["kubectl", "get", "nodes"]


class TestRun:
    def test_captures_output(self):
        ex = CommandExecutor(use_sudo=False)

        result = ex.run([sys.executable, "-c", "print('hello')"])

        assert result.ok
        assert result.stdout.strip() == "hello"
        assert ex.history == [[sys.executable, "-c", "print('hello')"]]

    def test_failure_raises_with_exit_code(self):
        ex = CommandExecutor(use_sudo=False)

        with pytest.raises(ExternalCommandFailure) as exc_info:
            ex.run([sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(7)"])

        assert exc_info.value.exit_code == 7
        assert exc_info.value.stderr == "boom"
        assert exc_info.value.argv[0] == sys.executable

    def test_failure_without_check(self):
        result = CommandExecutor(use_sudo=False).run(
            [sys.executable, "-c", "import sys; sys.exit(3)"], check=False
        )
        assert result.exit_code == 3
        assert not result.ok

    def test_missing_command(self):
        with pytest.raises(ExternalCommandFailure) as exc_info:
            CommandExecutor(use_sudo=False).run(["definitely-not-a-real-command-xyz"])
        assert exc_info.value.exit_code == COMMAND_NOT_FOUND

    def test_not_executable(self, tmp_path):
        script = tmp_path / "install.sh"
        script.write_text("echo hi\n")
        script.chmod(0o644)

        result = CommandExecutor().run([str(script)], check=False)

        assert result.exit_code == COMMAND_NOT_EXECUTABLE
        assert str(script) in result.stderr

    def test_feeds_input(self):
        result = CommandExecutor(use_sudo=False).run(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            input="key data",
        )
        assert result.stdout.strip() == "KEY DATA"

    def test_timeout(self):
        ex = CommandExecutor(use_sudo=False, timeout=1)

        result = ex.run([sys.executable, "-c", "import time; time.sleep(5)"], check=False)

        assert result.exit_code == 124

    def test_dry_run_does_not_spawn(self, monkeypatch):
        ex = CommandExecutor(use_sudo=False, dry_run=True)
        monkeypatch.setattr(ex, "_spawn", lambda argv, input: pytest.fail("spawned in dry run"))

        result = ex.run(["kubeadm", "init"], sudo=True)

        assert result.ok
        assert ex.history == [["kubeadm", "init"]]

    def test_succeeds(self):
        ex = CommandExecutor(use_sudo=False)
        assert ex.succeeds([sys.executable, "-c", "pass"])
        assert not ex.succeeds([sys.executable, "-c", "import sys; sys.exit(1)"])


class TestWriteFile:
    def test_direct_write(self, tmp_path, as_root):
        target = tmp_path / "etc" / "k8s.conf"

        CommandExecutor().write_file(target, "overlay\n", mode=0o600)

        assert target.read_text() == "overlay\n"
        assert oct(target.stat().st_mode & 0o777) == oct(0o600)

    def test_append(self, tmp_path):
        target = tmp_path / "hosts"
        target.write_text("127.0.0.1 localhost\n")

        CommandExecutor().write_file(target, "127.0.0.1 master-node\n", sudo=False, append=True)

        assert target.read_text() == "127.0.0.1 localhost\n127.0.0.1 master-node\n"

    def test_sudo_disabled_writes_directly(self, tmp_path, as_user, monkeypatch):
        ex = CommandExecutor(use_sudo=False)
        monkeypatch.setattr(ex, "_spawn", lambda argv, input: pytest.fail("spawned tee"))
        target = tmp_path / "k8s.conf"

        ex.write_file(target, "overlay\n", sudo=True)

        assert target.read_text() == "overlay\n"

    def test_write_error_raises_command_failure(self, tmp_path):
        blocker = tmp_path / "sysctl.d"
        blocker.write_text("")
        target = blocker / "k8s.conf"

        with pytest.raises(ExternalCommandFailure) as exc:
            CommandExecutor().write_file(target, "net.ipv4.ip_forward = 1\n", sudo=False)

        assert exc.value.argv == ["write", str(target)]
        assert exc.value.exit_code != 0
        assert f"Cannot write {target}" in exc.value.message

    def test_dry_run_writes_nothing(self, tmp_path):
        target = tmp_path / "sshd_config"

        CommandExecutor(dry_run=True).write_file(target, "Port 22\n")

        assert not target.exists()

    def test_privileged_write_uses_tee(self, tmp_path, as_user, monkeypatch):
        ex = CommandExecutor()
        spawned = []

        def fake_spawn(argv, input):
            spawned.append((argv, input))
            return CommandResult(argv=argv, exit_code=0)

        monkeypatch.setattr(ex, "_spawn", fake_spawn)
        target = tmp_path / "etc" / "sysctl.d" / "k8s.conf"

        ex.write_file(target, "net.ipv4.ip_forward = 1\n", mode=0o644)

        assert spawned == [
            (["sudo", "mkdir", "-p", str(target.parent)], None),
            (["sudo", "tee", str(target)], "net.ipv4.ip_forward = 1\n"),
            (["sudo", "chmod", "644", str(target)], None),
        ]


class TestReads:
    def test_read_missing_file(self, tmp_path):
        assert CommandExecutor().read_file(tmp_path / "missing") == ""

    def test_path_exists(self, tmp_path):
        assert CommandExecutor().path_exists(tmp_path)
        assert not CommandExecutor().path_exists(tmp_path / "missing")
