"""
Tests for the nodesetup CLI.
"""

import pytest
from click.testing import CliRunner

from nodesetup.cli import main
from nodesetup.install.progress import ProgressStore
from nodesetup.install.prompts import ClickConfirmation, StaticConfirmation


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state_dir(tmp_path, monkeypatch):
    """Point state and logs at tmp_path through the environment."""
    monkeypatch.setenv("NODESETUP_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("NODESETUP_LOG_DIR", str(tmp_path / "log"))
    return tmp_path / "state"


@pytest.fixture
def captured_plans(monkeypatch):
    """Replace run_setup; record plans and exit with a chosen code."""
    plans = []
    exit_code = {"value": 0}

    def fake_run_setup(plan):
        plans.append(plan)
        return exit_code["value"]

    monkeypatch.setattr("nodesetup.cli.common.run_setup", fake_run_setup)
    return plans, exit_code


class TestMain:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("master", "worker", "ssh-access", "remote-admin", "status", "reset"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestSetupCommands:
    def test_master_defaults(self, runner, state_dir, captured_plans):
        plans, _ = captured_plans

        result = runner.invoke(main, ["master"])

        assert result.exit_code == 0
        plan = plans[0]
        assert plan.role == "master"
        assert not plan.context.resume
        assert not plan.context.dry_run
        assert isinstance(plan.confirm, ClickConfirmation)
        assert plan.context.progress_file == state_dir / "master.progress"

    def test_exit_code_propagates(self, runner, state_dir, captured_plans):
        _, exit_code = captured_plans
        exit_code["value"] = 7

        result = runner.invoke(main, ["worker", "--resume"])

        assert result.exit_code == 7

    def test_flags(self, runner, state_dir, captured_plans):
        plans, _ = captured_plans

        result = runner.invoke(main, ["worker", "--resume", "--yes", "--dry-run", "--master-host", "192.0.2.10"])

        assert result.exit_code == 0
        plan = plans[0]
        assert plan.context.resume
        assert plan.context.dry_run
        assert plan.executor.dry_run
        assert isinstance(plan.confirm, StaticConfirmation)
        assert plan.settings.master_host == "192.0.2.10"

    def test_config_file(self, runner, state_dir, captured_plans, tmp_path):
        plans, _ = captured_plans
        config_file = tmp_path / "nodesetup.yaml"
        config_file.write_text("ssh_port: 2222\nallow_password_auth: true\n")

        result = runner.invoke(main, ["ssh-access", "--config", str(config_file), "--no-password-auth"])

        assert result.exit_code == 0
        settings = plans[0].settings
        assert settings.ssh_port == 2222
        assert settings.allow_password_auth is False

    def test_invalid_config_file(self, runner, state_dir, captured_plans, tmp_path):
        plans, _ = captured_plans
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("kubernetes_version: banana\n")

        result = runner.invoke(main, ["master", "--config", str(config_file)])

        assert result.exit_code == 1
        assert "Invalid settings" in result.output
        assert plans == []

    def test_remote_admin(self, runner, state_dir, captured_plans):
        plans, _ = captured_plans

        result = runner.invoke(main, ["remote-admin", "-y"])

        assert result.exit_code == 0
        assert plans[0].role == "remote-admin"


class TestStatus:
    def test_no_progress(self, runner, state_dir):
        result = runner.invoke(main, ["status", "worker"])

        assert result.exit_code == 0
        assert "Progress: 0/7 stages completed" in result.output

    def test_partial_progress(self, runner, state_dir):
        ProgressStore(state_dir / "master.progress").write("kernel_configured")

        result = runner.invoke(main, ["status", "master"])

        assert "Progress: 3/9 stages completed" in result.output
        assert "containerd_installed" in result.output

    def test_unknown_marker(self, runner, state_dir):
        ProgressStore(state_dir / "ssh-access.progress").write("bogus")

        result = runner.invoke(main, ["status", "ssh-access"])

        assert "Unknown marker 'bogus'" in result.output
        assert "Progress: 0/5 stages completed" in result.output

    def test_all_flows(self, runner, state_dir):
        result = runner.invoke(main, ["status"])

        assert result.exit_code == 0
        for role in ("master", "worker", "ssh-access", "remote-admin"):
            assert role in result.output

    def test_unknown_role(self, runner, state_dir):
        result = runner.invoke(main, ["status", "bastion"])
        assert result.exit_code == 2


class TestReset:
    def test_reset_with_yes(self, runner, state_dir):
        store = ProgressStore(state_dir / "worker.progress")
        store.write("swap_disabled")

        result = runner.invoke(main, ["reset", "worker", "--yes"])

        assert result.exit_code == 0
        assert not store.exists()

    def test_reset_declined(self, runner, state_dir):
        store = ProgressStore(state_dir / "worker.progress")
        store.write("swap_disabled")

        result = runner.invoke(main, ["reset", "worker"], input="n\n")

        assert result.exit_code == 1
        assert store.read() == "swap_disabled"

    def test_reset_confirmed(self, runner, state_dir):
        store = ProgressStore(state_dir / "master.progress")
        store.write("swap_disabled")

        result = runner.invoke(main, ["reset", "master"], input="y\n")

        assert result.exit_code == 0
        assert "last completed: swap_disabled" in result.output
        assert not store.exists()

    def test_nothing_to_reset(self, runner, state_dir):
        result = runner.invoke(main, ["reset", "remote-admin", "--yes"])

        assert result.exit_code == 0
        assert "No progress recorded" in result.output
