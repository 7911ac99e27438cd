from datetime import datetime

import click
from rich.console import Console
from rich.table import Table
from mobilesync.backend_info import load_pulled_snapshot
from mobilesync.config import find_config, init_config
from mobilesync.credentials import aws_configured, load_credentials, save_credential
from mobilesync.errors import MobileSyncError
from mobilesync.log import read_logs
from mobilesync.orchestrator import RunOutcome, pull as pull_backend, run as run_push
from mobilesync.state import format_timestamp, load_project_state


@click.group()
@click.version_option(version="0.1.0")
def main():
    """mobilesync: push local mobile backend definitions to AWS Mobile Hub."""
    load_credentials()


@main.command()
@click.option("--region", default=None, help="AWS region of the backend project.")
@click.option("--profile", default=None, help="Named AWS profile to use.")
def init(region, profile):
    """Initialize mobilesync in the current project. Creates .mobilesyncconfig."""
    if find_config():
        click.echo(".mobilesyncconfig already exists.")
        return
    config_path = init_config(region=region, profile=profile)
    click.echo(f"Created {config_path}")


@main.command()
@click.argument("key")
@click.argument("value")
def auth(key, value):
    """Save a credential. Stored in ~/.mobilesync/credentials.

    Examples:
        mobilesync auth AWS_ACCESS_KEY_ID AKIA...
        mobilesync auth AWS_PROFILE dev
    """
    save_credential(key, value)
    click.echo(f"Saved {key} to ~/.mobilesync/credentials")


@main.command()
@click.option("--wait", type=int, default=None,
              help="Max status checks while the update provisions. Negative: don't wait.")
@click.option("--sync", is_flag=True, help="Write the updated client config to src/aws-exports.json.")
@click.option("--force", is_flag=True, help="Push even if the remote project is ahead of the local copy.")
def push(wait, sync, force):
    """Push local backend changes to the backend project.

    Example: mobilesync push --wait -1
    """
    if not find_config():
        click.echo("No .mobilesyncconfig found. Run 'mobilesync init' first.")
        raise SystemExit(1)
    if not aws_configured():
        click.echo("[warning] No AWS credentials found; boto3 may fail. Run 'mobilesync auth AWS_PROFILE <name>'.")
    outcome = run_push(wait=wait, sync=sync, force=force)
    if outcome is RunOutcome.FAILED:
        raise SystemExit(1)


@main.command()
@click.option("--sync", is_flag=True, help="Write the client config to src/aws-exports.json.")
def pull(sync):
    """Record the backend project's current details locally."""
    console = Console()
    try:
        snapshot = pull_backend(console=console, sync=sync)
    except MobileSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print(f"[green]Pulled[/green] {snapshot.name}  [dim]last updated {snapshot.last_updated}[/dim]")


@main.command()
def status():
    """Show the recorded state of this project's backend."""
    console = Console()
    state = load_project_state()
    if state is None:
        console.print("[red]No .mobilesyncconfig found. Run 'mobilesync init' first.[/red]")
        raise SystemExit(1)

    table = Table(title="Backend project")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Project", str(state.project_path))
    table.add_row("Backend project", state.backend_project_name or "[dim]-[/dim]")
    table.add_row("Backend project id", state.backend_project_id or "[dim]none[/dim]")
    table.add_row("Last push", format_timestamp(state.last_update_time) or "[dim]never[/dim]")
    table.add_row(
        "Last push result",
        "[green]successful[/green]" if state.last_update_successful else "[red]not successful[/red]",
    )
    table.add_row("Remote last updated", state.backend_last_pulled or "[dim]unknown[/dim]")
    pulled = load_pulled_snapshot(state.project_path)
    if pulled and pulled.console_url:
        table.add_row("Console", pulled.console_url)
    console.print(table)


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.option("--all", "show_all", is_flag=True, help="Show logs for all projects.")
def logs(limit, show_all):
    """Show the push audit log."""
    console = Console()

    if not read_logs():
        console.print("[dim]No logs yet. Run a push first.[/dim]")
        return

    config_path = find_config()
    project_filter = str(config_path.parent) if config_path and not show_all else None
    entries = read_logs(project_filter)

    if not entries:
        console.print("[dim]No logs found.[/dim]")
        return

    table = Table(title="Push Log")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("Backend project", style="cyan")
    table.add_column("Result", style="bold")

    for entry in entries[-limit:]:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M")
            except ValueError:
                pass
        result = entry.get("result", "")
        result_style = {
            "updated": "[green]updated[/green]",
            "pulled": "[green]pulled[/green]",
            "failed": "[red]failed[/red]",
            "cancelled": "[yellow]cancelled[/yellow]",
        }.get(result, result)
        table.add_row(ts, entry.get("event", ""), entry.get("backend_project", ""), result_style)

    console.print(table)
