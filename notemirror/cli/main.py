"""Command-line interface for noteMirror."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from notemirror import __version__
from notemirror.core.config import AppConfig, load_config
from notemirror.core.models import BackupStatus, DiscoveryMode, NodeKind
from notemirror.utils.logging import setup_logging

# Create Typer app
app = typer.Typer(
    name="notemirror",
    help="Back up Google Drive notes to a GitHub repository",
    add_completion=False,
)

creds_app = typer.Typer(help="Store secrets in the system keyring")
app.add_typer(creds_app, name="creds")

# Create console for rich output
console = Console()

logger = logging.getLogger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        dir_okay=False,
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
) -> None:
    """noteMirror - mirror Drive notes into git."""
    ctx.ensure_object(dict)
    cfg = load_config(config_file)
    ctx.obj["config"] = cfg

    cfg.ensure_data_dir()
    setup_logging(cfg, level_name=log_level)


@app.command()
def version() -> None:
    """Show version information."""
    import platform

    table = Table(title="noteMirror Version Information")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Version", __version__)
    table.add_row("Python", platform.python_version())
    table.add_row("Platform", platform.platform())

    console.print(table)


def _status(value: str | None) -> str:
    return value if value else "[red]Not set[/red]"


def _secret(value: str | None) -> str:
    return "[green]✓ configured[/green]" if value else "[red]Not set[/red]"


@app.command()
def config(
    ctx: typer.Context,
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="Show current configuration",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        "-i",
        help="Create a default configuration file",
    ),
) -> None:
    """Manage configuration."""
    cfg: AppConfig = ctx.obj["config"]

    if init:
        config_path = cfg.general.config_file or cfg.default_config_path

        if config_path.exists():
            console.print(f"[yellow]Config file already exists:[/yellow] {config_path}")
            overwrite = typer.confirm("Overwrite existing config?")
            if not overwrite:
                console.print("[dim]Config creation cancelled[/dim]")
                raise typer.Exit(0)

        cfg.save_to_file(config_path)
        console.print(f"[green]✓ Config file created:[/green] {config_path}")
        console.print("[yellow]Edit this file to configure noteMirror.[/yellow]")
        return

    if show:
        table = Table(title="noteMirror Configuration")
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")

        table.add_row("Data Directory", str(cfg.general.data_dir))
        table.add_row("Config File", str(cfg.general.config_file or "Not set"))
        table.add_row("Log Level", cfg.general.log_level)

        table.add_row("", "")
        table.add_row("[bold]Google Drive[/bold]", "")
        table.add_row("Client ID", _status(cfg.drive.client_id))
        table.add_row("Client Secret", _secret(cfg.drive.client_secret))
        table.add_row("Refresh Token", _secret(cfg.drive.get_refresh_token()))
        table.add_row("Notes Folder ID", _status(cfg.drive.notes_folder_id))
        table.add_row("Discovery Mode", cfg.drive.discovery_mode)

        table.add_row("", "")
        table.add_row("[bold]GitHub[/bold]", "")
        has_repo = bool(cfg.github.repo_name or cfg.github.remote_url)
        table.add_row("Repository", _status(cfg.github.repo_url if has_repo else None))
        table.add_row("Token", _secret(cfg.github.get_token()))
        table.add_row("Default Branch", cfg.github.default_branch)

        table.add_row("", "")
        table.add_row("[bold]Backup[/bold]", "")
        table.add_row("Scheduled", "✓" if cfg.backup.enabled else "✗")
        table.add_row("Cron", f"{cfg.backup.cron} ({cfg.backup.timezone})")
        table.add_row("Working Copy", str(cfg.backup.work_dir))

        table.add_row("", "")
        table.add_row("[bold]API[/bold]", "")
        table.add_row("Listen", f"{cfg.api.host}:{cfg.api.port}")
        table.add_row("API Key", _secret(cfg.api.api_key))

        console.print(table)

        missing = cfg.missing_required()
        if missing:
            console.print(f"\n[yellow]Missing required settings:[/yellow] {', '.join(missing)}")
    else:
        console.print(f"[yellow]Configuration file:[/yellow] {cfg.general.config_file or 'Not set'}")
        console.print(f"[yellow]Data directory:[/yellow] {cfg.general.data_dir}")
        console.print("\n[dim]Use --show to display full configuration[/dim]")
        console.print("[dim]Use --init to create a default config file[/dim]")


@app.command()
def backup(ctx: typer.Context) -> None:
    """Run one backup now: Drive → working copy → GitHub."""
    from notemirror.api.scheduler import BackupScheduler

    cfg: AppConfig = ctx.obj["config"]

    missing = cfg.missing_required()
    if missing:
        console.print(f"[red]Missing required settings:[/red] {', '.join(missing)}")
        console.print("[dim]Run 'notemirror config --show' to review your configuration[/dim]")
        raise typer.Exit(1)

    async def run():
        scheduler = BackupScheduler(cfg)
        try:
            return await scheduler.run_backup(trigger="cli")
        finally:
            await scheduler.stop()

    with console.status("[cyan]Backing up notes...[/cyan]"):
        result = asyncio.run(run())

    table = Table(title="Backup Result")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Status", result.status.value)
    table.add_row("Notes written", str(result.notes_written))
    table.add_row("Notes failed", str(result.notes_failed))
    table.add_row("Malformed front matter", str(result.malformed))
    table.add_row("Categories", str(result.categories))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    if result.branch:
        table.add_row("Pushed to", f"{result.remote}/{result.branch}")
    console.print(table)

    for path in result.failed_notes:
        console.print(f"[yellow]⚠ Not backed up:[/yellow] {path}")

    if result.status in (BackupStatus.FAILED, BackupStatus.CANCELLED):
        console.print(f"[red]✗ Backup {result.status.value}:[/red] {result.error}")
        raise typer.Exit(1)

    console.print("[green]✓ Backup complete[/green]")


@app.command()
def tree(
    ctx: typer.Context,
    mode: Annotated[
        Optional[DiscoveryMode],
        typer.Option("--mode", "-m", help="Discovery mode (defaults to drive.discovery_mode)"),
    ] = None,
) -> None:
    """Print the folders and notes found in Google Drive."""
    from notemirror.core.tree import RemoteTreeFetcher
    from notemirror.sources.drive import DriveClient

    cfg: AppConfig = ctx.obj["config"]
    if not cfg.drive.notes_folder_id:
        console.print("[red]drive.notes_folder_id is not configured[/red]")
        raise typer.Exit(1)

    async def fetch():
        store = DriveClient.from_config(cfg.drive)
        try:
            fetcher = RemoteTreeFetcher(
                store,
                mode=mode or DiscoveryMode(cfg.drive.discovery_mode),
                concurrency=cfg.drive.concurrency,
            )
            return await fetcher.fetch(cfg.drive.notes_folder_id)
        finally:
            await store.close()

    try:
        with console.status("[cyan]Fetching Drive tree...[/cyan]"):
            nodes = asyncio.run(fetch())
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    root = Tree("[bold]Notes[/bold]")
    branches: dict[str, Tree] = {"": root}

    def branch_for(path: str) -> Tree:
        if path not in branches:
            parent, _, name = path.rpartition("/")
            branches[path] = branch_for(parent).add(f"[cyan]{name}/[/cyan]")
        return branches[path]

    notes = 0
    for node in sorted(nodes, key=lambda n: (n.path, n.kind is NodeKind.NOTE, n.name)):
        if node.kind is NodeKind.FOLDER:
            branch_for(node.relative_path)
        else:
            branch_for(node.path).add(node.name)
            notes += 1

    console.print(root)
    console.print(f"\n[dim]{notes} note(s) in {len(branches) - 1} folder(s)[/dim]")


@app.command()
def history(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of runs to show")] = 10,
) -> None:
    """Show recent backup runs."""
    from datetime import datetime

    from notemirror.utils.db import BackupLogsDB

    cfg: AppConfig = ctx.obj["config"]
    db = BackupLogsDB(cfg.backup_logs_db_path)

    async def load():
        await db.initialize()
        return await db.get_logs(limit=limit)

    logs = asyncio.run(load())
    if not logs:
        console.print("[dim]No backups recorded yet[/dim]")
        return

    table = Table(title="Backup History")
    table.add_column("Started", style="cyan")
    table.add_column("Trigger")
    table.add_column("Status")
    table.add_column("Notes", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Error", style="red")

    for log in logs:
        started = datetime.fromtimestamp(log["started_at"]).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(
            started,
            log["trigger"],
            log["status"],
            str(log["notes_written"] or 0),
            str(log["notes_failed"] or 0),
            log["error_message"] or "",
        )
    console.print(table)


@creds_app.command("github-token")
def set_github_token(
    ctx: typer.Context,
    token: Annotated[str, typer.Option(prompt=True, hide_input=True, help="GitHub personal access token")],
) -> None:
    """Store the GitHub token for github.repo_owner in the keyring."""
    from notemirror.utils.credentials import CredentialStore

    cfg: AppConfig = ctx.obj["config"]
    if not cfg.github.repo_owner:
        console.print("[red]github.repo_owner is not configured[/red]")
        raise typer.Exit(1)

    CredentialStore().set_github_token(cfg.github.repo_owner, token)
    console.print(f"[green]✓ GitHub token stored for {cfg.github.repo_owner}[/green]")


@creds_app.command("drive-token")
def set_drive_token(
    ctx: typer.Context,
    token: Annotated[str, typer.Option(prompt=True, hide_input=True, help="Google OAuth refresh token")],
) -> None:
    """Store the Drive refresh token for drive.client_id in the keyring."""
    from notemirror.utils.credentials import CredentialStore

    cfg: AppConfig = ctx.obj["config"]
    if not cfg.drive.client_id:
        console.print("[red]drive.client_id is not configured[/red]")
        raise typer.Exit(1)

    CredentialStore().set_drive_refresh_token(cfg.drive.client_id, token)
    console.print("[green]✓ Drive refresh token stored[/green]")


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Host to bind to")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind to")] = None,
) -> None:
    """Start the noteMirror API server and the backup scheduler.

    Examples:
        # Start on the configured host and port
        notemirror serve

        # Start on a specific host and port
        notemirror serve --host 127.0.0.1 --port 9000
    """
    import uvicorn

    from notemirror.api.app import create_app

    cfg: AppConfig = ctx.obj["config"]
    host = host or cfg.api.host
    port = port or cfg.api.port

    console.print(Panel.fit(
        f"[bold cyan]noteMirror API Server[/bold cyan]\n\n"
        f"[white]Starting server on {host}:{port}[/white]",
        border_style="cyan",
    ))

    uvicorn.run(create_app(cfg), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
