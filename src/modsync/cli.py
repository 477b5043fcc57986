"""
modsync CLI - Command-line interface.

Update the loader and mods of a server, preview an update, and inspect backups.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from modsync.config import SyncConfig, load_config
from modsync.core.exceptions import ConfigurationError, SetupError
from modsync.store.artifacts import ArtifactStore
from modsync.sync.engine import PlanAction
from modsync.sync.report import UpdateReport
from modsync.sync.runner import ServerUpdater

app = typer.Typer(
    name="modsync",
    help="modsync - keep a modded server's loader and mods up to date",
    no_args_is_help=True,
)
console = Console()

CONFIG_HELP = "YAML or JSON config file"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
):
    """Configure logging for every command."""
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load(config_path: Optional[Path], overrides: dict[str, Any]) -> SyncConfig:
    """Load config or exit with code 2."""
    try:
        return load_config(config_path, overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)


def _report_table(report: UpdateReport) -> Table:
    table = Table(title="Update Summary")
    table.add_column("Result")
    table.add_column("Package", style="cyan")
    table.add_column("Version / Reason")
    table.add_column("File", style="dim")

    for entry in report.successful:
        table.add_row("[green]updated[/green]", entry.name or entry.package_id, entry.version, entry.file)
    for entry in report.failed:
        table.add_row("[red]failed[/red]", entry.package_id, entry.reason, "")
    for entry in report.skipped:
        table.add_row("[yellow]skipped[/yellow]", entry.package_id, entry.reason, "")

    return table


@app.command()
def sync(
    mod_ids: Optional[list[str]] = typer.Argument(None, help="Registry project ids or slugs"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    game_version: Optional[str] = typer.Option(None, "--game-version", "-g", help="Game version"),
    loader_version: Optional[str] = typer.Option(
        None, "--loader-version", "-l", help="Loader version or 'latest'"
    ),
    mods_dir: Optional[Path] = typer.Option(None, "--mods-dir", help="Installed mods directory"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the pre-update backup"),
    skip_loader: bool = typer.Option(False, "--skip-loader", help="Do not refresh the loader"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
):
    """Update the loader and every tracked mod."""
    overrides = {
        "game_version": game_version,
        "loader_version": loader_version,
        "mods_dir": mods_dir,
        "backup_enabled": False if no_backup else None,
    }
    config = _load(config_path, overrides)
    mods = list(mod_ids) if mod_ids else list(config.mods)

    if not as_json:
        console.print(
            Panel.fit(
                f"[bold blue]modsync[/bold blue]\n"
                f"Game version: {config.game_version}\n"
                f"Loader: {config.loader_kind} {config.loader_version}\n"
                f"Mods: {len(mods)} tracked in {config.mods_dir}",
            )
        )
        if not mods:
            console.print("[yellow]No tracked mods; only the loader will be updated[/yellow]")

    with ServerUpdater.from_config(config, skip_loader=skip_loader) as updater:
        try:
            run = updater.update_server(mods)
        except SetupError as e:
            console.print(f"[red]Server update failed:[/red] {e}")
            raise typer.Exit(2)

    report = run.report
    if as_json:
        payload = report.to_dict()
        payload["loader"] = None
        if run.loader is not None:
            payload["loader"] = {
                "ok": run.loader.ok,
                "path": str(run.loader.path) if run.loader.path else None,
                "version": run.loader.loader_version,
                "error": run.loader.error,
            }
        payload["lifecycle_errors"] = run.lifecycle_errors
        typer.echo(json.dumps(payload, indent=2))
    else:
        if run.loader is not None and not run.loader.ok:
            console.print(f"[yellow]Loader update skipped:[/yellow] {run.loader.error}")
        for error in run.lifecycle_errors:
            console.print(f"[yellow]Service control:[/yellow] {error}")
        if report.backup_error:
            console.print(f"[yellow]Backup failed:[/yellow] {report.backup_error}")
        elif report.backup is not None:
            console.print(f"Backup: {report.backup.path}")

        counts = report.counts()
        console.print(_report_table(report))
        console.print(
            f"\nSuccessful updates: {counts['successful']}  "
            f"Failed updates: {counts['failed']}  "
            f"Skipped: {counts['skipped']}"
        )
        if report.unverified:
            console.print(f"[yellow]Installed without digest check:[/yellow] {', '.join(report.unverified)}")

    if report.has_failures:
        raise typer.Exit(1)


@app.command()
def plan(
    mod_ids: Optional[list[str]] = typer.Argument(None, help="Registry project ids or slugs"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    game_version: Optional[str] = typer.Option(None, "--game-version", "-g", help="Game version"),
    mods_dir: Optional[Path] = typer.Option(None, "--mods-dir", help="Installed mods directory"),
):
    """Show what sync would change, without touching any files."""
    config = _load(config_path, {"game_version": game_version, "mods_dir": mods_dir})
    mods = list(mod_ids) if mod_ids else list(config.mods)
    if not mods:
        console.print("[red]No mods given and none configured[/red]")
        raise typer.Exit(2)

    with ServerUpdater.from_config(config, skip_loader=True) as updater:
        entries = updater.engine.plan(mods)

    styles = {
        PlanAction.INSTALL: "green",
        PlanAction.UP_TO_DATE: "dim",
        PlanAction.SKIP: "yellow",
        PlanAction.FAIL: "red",
    }
    table = Table(title=f"Update Plan ({config.loader_kind} {config.game_version})")
    table.add_column("Package", style="cyan")
    table.add_column("Action")
    table.add_column("Version")
    table.add_column("File")
    table.add_column("Removes / Reason")

    for entry in entries:
        style = styles[entry.action]
        detail = ", ".join(entry.evicts) if entry.action == PlanAction.INSTALL else (entry.reason or "")
        table.add_row(
            entry.name or entry.package_id,
            f"[{style}]{entry.action.value}[/{style}]",
            entry.version or "-",
            entry.file or "-",
            detail,
        )

    console.print(table)


@app.command()
def backups(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List mod backup snapshots, newest first."""
    config = _load(config_path, {})
    store = ArtifactStore(config.mods_dir, backup_dir=config.backup_dir)
    snapshots = store.list_backups()

    if not snapshots:
        console.print(f"[yellow]No backups found in {config.backup_dir}[/yellow]")
        return

    table = Table(title=f"Backups ({len(snapshots)})")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Path", style="dim")
    for snapshot in snapshots:
        table.add_row(snapshot.name, str(len(snapshot.files)), str(snapshot.path))

    console.print(table)


@app.command()
def version():
    """Show modsync version."""
    from modsync import __version__

    console.print(f"modsync v{__version__}")


if __name__ == "__main__":
    app()
