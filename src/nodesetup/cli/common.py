"""Options and wiring shared by the setup commands."""

from pathlib import Path
from typing import Any, Callable, Optional

import click
import yaml
from pydantic import ValidationError

from nodesetup.config import NodeSetupConfig, RunContext, get_config
from nodesetup.install.executor import CommandExecutor
from nodesetup.install.prompts import ClickConfirmation, StaticConfirmation
from nodesetup.install.session import run_setup
from nodesetup.logger import configure_logging


def config_option(f: Callable) -> Callable:
    return click.option(
        "--config", "config_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="YAML settings file (keys are setting names, e.g. kubernetes_version)",
    )(f)


def setup_options(f: Callable) -> Callable:
    """--resume, --config, --yes and --dry-run for every setup command."""
    f = click.option("--dry-run", is_flag=True, help="Log commands and file writes without running them")(f)
    f = click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to every confirmation prompt")(f)
    f = config_option(f)
    f = click.option("--resume", is_flag=True, help="Skip stages completed by a previous run")(f)
    return f


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> NodeSetupConfig:
    """Build settings, turning validation problems into CLI errors."""
    try:
        return get_config(config_file=config_file, **overrides)
    except ValidationError as e:
        raise click.ClickException(f"Invalid settings:\n{e}")
    except ValueError as e:
        raise click.ClickException(str(e))
    except yaml.YAMLError as e:
        raise click.ClickException(f"Cannot parse {config_file}: {e}")


def run_flow(
    role: str,
    resume: bool,
    config_file: Optional[Path],
    assume_yes: bool,
    dry_run: bool,
    **overrides: Any,
) -> int:
    """Build the run context for ``role``, run its plan and return the exit code."""
    from nodesetup.plans import PLANS

    settings = load_settings(config_file, **overrides)
    context = RunContext.build(role, settings, resume=resume, dry_run=dry_run)
    configure_logging(context.log_file, settings.log_level)

    executor = CommandExecutor(
        use_sudo=settings.use_sudo,
        dry_run=dry_run,
        timeout=settings.command_timeout_seconds,
    )
    confirm = StaticConfirmation(answer=True) if assume_yes else ClickConfirmation()
    plan = PLANS[role](context, executor, confirm)
    return run_setup(plan)
