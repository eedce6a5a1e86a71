"""Commands for moving through clusters and recording questions."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from prguide_cli.context import finish, load_session
from prguide_core.clustering import get_cluster_stats
from prguide_core.models import ReviewSession
from prguide_core.navigator import get_cluster_by_id, get_progress_summary, is_review_complete
from prguide_core.workflow import (
    ask_question,
    complete_current_cluster,
    start_cluster,
    start_next_cluster,
    start_previous_cluster,
)

console = Console()


def _print_current(session: ReviewSession) -> None:
    cluster = get_cluster_by_id(session, session.current_cluster_id)
    if cluster is None:
        return
    progress = get_progress_summary(session)
    stats = get_cluster_stats(cluster)

    console.print(
        f"\n[bold cyan]{cluster.id}[/bold cyan]  [bold]{cluster.name}[/bold]  "
        f"[dim]({progress.reviewed}/{progress.total} reviewed)[/dim]"
    )
    console.print(f"  {cluster.description}")
    if cluster.depends_on:
        console.print(f"  [dim]Builds on: {', '.join(cluster.depends_on)}[/dim]")
    for f in cluster.files:
        notes = f"  [yellow]{escape(f.review_notes)}[/yellow]" if f.review_notes else ""
        console.print(f"  - {f.path} [dim]+{f.additions}/-{f.deletions} {f.change_type}[/dim]{notes}")
    console.print(f"\n  {stats.total_files} file(s), +{stats.total_additions}/-{stats.total_deletions}")


@click.command("next")
@click.pass_context
def next_cmd(ctx):
    """Start the next cluster that still needs review."""
    session = finish(ctx, start_next_cluster(load_session(ctx)))
    _print_current(session)


@click.command("prev")
@click.pass_context
def prev_cmd(ctx):
    """Go back to the cluster before the current one."""
    session = finish(ctx, start_previous_cluster(load_session(ctx)))
    _print_current(session)


@click.command("goto")
@click.argument("cluster")
@click.pass_context
def goto_cmd(ctx, cluster: str):
    """Jump to a cluster by id (cluster-3) or by part of its name."""
    session = finish(ctx, start_cluster(load_session(ctx), cluster))
    _print_current(session)


@click.command("done")
@click.option("--next", "advance", is_flag=True, help="Start the next cluster afterwards.")
@click.pass_context
def done_cmd(ctx, advance: bool):
    """Mark the current cluster as reviewed."""
    session = finish(ctx, complete_current_cluster(load_session(ctx)))
    progress = get_progress_summary(session)
    console.print(f"[green]Marked {session.current_cluster_id} reviewed ({progress.reviewed}/{progress.total}).[/green]")

    if progress.reviewed == progress.total:
        console.print("[bold green]All clusters reviewed.[/bold green]")
        if not is_review_complete(session):
            console.print("Staged comments remain; `prguide review` posts them with the review.")
        return
    if advance:
        session = finish(ctx, start_next_cluster(session))
        _print_current(session)


@click.command("ask")
@click.argument("question")
@click.argument("answer")
@click.option("--context", "context", default="", help="What the question is about. Defaults to the current cluster.")
@click.pass_context
def ask_cmd(ctx, question: str, answer: str, context: str):
    """Record a question raised during review together with its answer."""
    session = finish(ctx, ask_question(load_session(ctx), question, answer, context))
    console.print(f"[green]Recorded Q&A #{len(session.questions)}.[/green]")
