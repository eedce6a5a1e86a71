"""state and files commands for inspecting or discarding the active review session."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from prguide_cli.context import get_store, load_session
from prguide_core.navigator import format_state_display, is_review_complete

console = Console()


@click.group("state", invoke_without_command=True)
@click.pass_context
def state_cmd(ctx):
    """Show (default) or clear the active review session."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(show_cmd)


@state_cmd.command("show")
@click.pass_context
def show_cmd(ctx):
    """Show PR details, cluster progress and comment counts."""
    session = load_session(ctx)
    if session is None:
        console.print("No active review session found.")
        console.print("Start a review with: [bold]prguide analyze <pr-number>[/bold]")
        return

    console.print(Markdown(format_state_display(session)))
    if is_review_complete(session):
        console.print("[green]Review complete: nothing left staged.[/green]")


@state_cmd.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def clear_cmd(ctx, yes: bool):
    """Discard the active review session."""
    session = load_session(ctx)
    if session is None:
        console.print("No review state to clear.")
        return
    if not yes:
        click.confirm(f"Discard the review session for PR #{session.pr_number}?", abort=True)
    get_store(ctx).clear()
    console.print(f"[green]Cleared review state for PR #{session.pr_number}[/green]")


@click.command("files")
@click.pass_context
def files_cmd(ctx):
    """List the changed files of the session, cluster by cluster."""
    session = load_session(ctx)
    if session is None:
        raise click.ClickException("No active review session. Run 'prguide analyze' first.")

    table = Table(title=f"Changed files — PR #{session.pr_number}", show_header=True, header_style="bold cyan")
    table.add_column("Cluster", style="bold")
    table.add_column("File")
    table.add_column("Change", width=9)
    table.add_column("+/-", justify="right")
    table.add_column("Notes")

    total = 0
    for cluster in session.clusters:
        for f in cluster.files:
            notes = escape(f.review_notes or "")
            table.add_row(cluster.name, f.path, f.change_type, f"+{f.additions}/-{f.deletions}", notes)
            total += 1

    console.print(table)
    console.print(f"\n[bold]Total[/bold]: {total} files")
