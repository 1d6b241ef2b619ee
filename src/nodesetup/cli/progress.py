"""nodesetup CLI - progress marker inspection and reset."""

import sys
from pathlib import Path
from typing import Optional

import click

from nodesetup.config import ROLES
from nodesetup.install.progress import ProgressStore
from nodesetup.install.stages import stage_names

from .common import config_option, load_settings


def _summary(role: str, store: ProgressStore) -> str:
    from nodesetup.plans import PLANS

    names = stage_names(PLANS[role].stage_enum)
    marker = store.read()
    done = names.index(marker) + 1 if marker in names else 0

    lines = [click.style(f"{role}", bold=True) + f"  ({store.path})"]
    if marker is not None and marker not in names:
        lines.append(click.style(f"  Unknown marker {marker!r}: next run starts from the beginning", fg="yellow"))
    for i, name in enumerate(names):
        if i < done:
            symbol = click.style("✔", fg="green")
        elif i == done and marker is not None:
            symbol = click.style("→", fg="cyan")
        else:
            symbol = "·"
        lines.append(f"  {symbol} {name}")
    lines.append(f"  Progress: {done}/{len(names)} stages completed")
    return "\n".join(lines)


@click.command()
@click.argument("role", required=False, type=click.Choice(ROLES))
@config_option
def status(role: Optional[str], config_file: Optional[Path]):
    """Show recorded progress for one flow, or for all of them."""
    settings = load_settings(config_file)
    roles = [role] if role else list(ROLES)
    blocks = [_summary(r, ProgressStore(settings.get_progress_path(r))) for r in roles]
    click.echo("\n\n".join(blocks))


@click.command()
@click.argument("role", type=click.Choice(ROLES))
@config_option
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
def reset(role: str, config_file: Optional[Path], assume_yes: bool):
    """Delete a flow's progress marker so the next run starts over."""
    settings = load_settings(config_file)
    store = ProgressStore(settings.get_progress_path(role))

    if not store.exists():
        click.echo(f"No progress recorded for {role}")
        return
    if not assume_yes and not click.confirm(
        f"Forget progress for {role} (last completed: {store.read() or 'none'})?"
    ):
        click.echo("Aborted")
        sys.exit(1)

    store.reset()
    click.echo(f"Progress for {role} cleared ({store.path})")
