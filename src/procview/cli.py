"""CLI commands for procview."""

import time
from dataclasses import replace
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.table import Table
from rich.text import Text

from procview.config import Config
from procview.formatting import format_bytes, format_time, tree_prefix
from procview.logging import configure
from procview.models import SortDirection, SortKey, ViewMode
from procview.monitor import SharedState, SystemMonitor
from procview.views import render_view

log = structlog.get_logger()

SORT_CHOICE = click.Choice([k.value for k in SortKey], case_sensitive=False)


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group(invoke_without_command=True)
@click.version_option(package_name="procview")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file to use instead of ~/.config/procview/config.toml.",
)
@click.option("--interval", type=float, help="Seconds between samples.")
@click.option("--tree/--flat", default=None, help="Start in tree or flat view.")
@click.option("--sort", "sort_key", type=SORT_CHOICE, help="Initial sort column.")
@click.option(
    "--track-selection/--no-track-selection",
    default=None,
    help="Keep the highlight on the same process across refreshes.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    interval: float | None,
    tree: bool | None,
    sort_key: str | None,
    track_selection: bool | None,
) -> None:
    """Live, interactive process viewer."""
    config = _load_config(config_path)
    if interval is not None:
        if interval <= 0:
            raise click.BadParameter("must be positive", param_hint="--interval")
        config.sampler = replace(config.sampler, interval=interval)
    if tree is not None:
        config.view = replace(config.view, tree_view=tree)
    if sort_key is not None:
        config.view = replace(config.view, sort_key=sort_key.lower())
    if track_selection is not None:
        config.view = replace(config.view, track_selection=track_selection)

    configure(config)
    ctx.obj = config
    ctx.meta["config_path"] = config_path or config.config_path
    if ctx.invoked_subcommand is not None:
        return

    from procview.app import ProcviewApp

    ProcviewApp(config).run()


@main.command()
@click.option("--sort", "sort_key", type=SORT_CHOICE, default=None, help="Sort column.")
@click.option("--asc/--desc", "ascending", default=False, help="Sort direction.")
@click.option("--filter", "pattern", default=None, help="Case-insensitive command filter.")
@click.option("--tree", is_flag=True, help="Show the process hierarchy.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Rows to print.")
@click.option(
    "--wait",
    type=click.FloatRange(min=0.0),
    default=0.5,
    show_default=True,
    help="Seconds between the two samples used to measure CPU usage.",
)
@click.pass_obj
def dump(
    config: Config,
    sort_key: str | None,
    ascending: bool,
    pattern: str | None,
    tree: bool,
    limit: int | None,
    wait: float,
) -> None:
    """Print one sample of the process view and exit."""
    monitor = SystemMonitor(SharedState())
    # CPU percentages need two samples to mean anything.
    monitor.sample()
    time.sleep(wait)
    snapshot = monitor.sample()

    key = SortKey(sort_key.lower()) if sort_key else config.view.initial_sort_key
    direction = SortDirection.ASCENDING if ascending else SortDirection.DESCENDING
    mode = ViewMode.TREE if tree or config.view.tree_view else ViewMode.FLAT
    view = render_view(snapshot.processes, key, direction, pattern, mode)
    if limit is not None:
        view = view[:limit]

    table = Table(box=None, header_style="bold red")
    for column in ("PID", "USER", "VIRT", "S", "CPU%", "MEM%", "TIME+", "COMMAND"):
        table.add_column(column, no_wrap=column != "COMMAND")
    for node in view:
        proc = node.record
        table.add_row(
            str(proc.pid),
            Text(proc.owner[:10]),
            format_bytes(proc.virtual_memory_bytes),
            proc.status,
            f"{proc.cpu_percent:.1f}",
            f"{proc.memory_percent:.1f}",
            format_time(proc.cpu_time_seconds),
            Text(tree_prefix(node.depth) + proc.command_line),
        )
    Console(highlight=False).print(table)


@main.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_context
def init_config(ctx: click.Context, force: bool) -> None:
    """Write the current configuration to the config file."""
    config: Config = ctx.obj
    path: Path = ctx.meta["config_path"]
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    config.save(path)
    log.info("config_created", path=str(path))
    click.echo(f"Wrote {path}")
