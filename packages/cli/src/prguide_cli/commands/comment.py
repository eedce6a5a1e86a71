"""Local comment lifecycle and PR comment management commands."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prguide_cli.context import finish, get_client, load_session
from prguide_core.models import EDIT_ACTIONS
from prguide_core.workflow import (
    NO_SESSION,
    delete_comment,
    edit_comment,
    list_comments,
    post_comment,
    reply_to_comment,
    restore_comment,
    skip_comment,
    stage_comment,
)

console = Console()


def _preview(body: str, width: int = 80) -> str:
    return body if len(body) <= width else body[:width] + "..."


@click.command("comment")
@click.argument("file")
@click.argument("line", type=int)
@click.argument("body", nargs=-1, required=True)
@click.option("--stage", is_flag=True, help="Keep the comment local; it is posted with `prguide review`.")
@click.pass_context
def comment_cmd(ctx, file: str, line: int, body: tuple[str, ...], stage: bool):
    """Comment on FILE at LINE.

    Posts immediately unless --stage is given. If posting fails the comment
    is kept locally as staged.
    """
    text = " ".join(body)
    session = load_session(ctx)

    if stage:
        session = finish(ctx, stage_comment(session, file, line, text))
        console.print(f"[green]Staged {session.comments[-1].id} on {file}:{line}[/green]")
        return

    if session is None:
        raise click.ClickException(NO_SESSION)
    client = get_client(ctx, session=session)
    session = finish(ctx, post_comment(session, client, file, line, text))

    comment = session.comments[-1]
    if comment.remote_id is not None:
        console.print(f"[green]Added comment #{comment.remote_id} on {file}:{line}[/green]")
    else:
        console.print(f"[green]Posted PR comment for {file}:{line} (self-review mode)[/green]")


@click.command("comment-reply")
@click.argument("comment_id", type=int)
@click.argument("body", nargs=-1, required=True)
@click.pass_context
def comment_reply_cmd(ctx, comment_id: int, body: tuple[str, ...]):
    """Reply to the PR review comment COMMENT_ID."""
    session = load_session(ctx)
    client = get_client(ctx, session=session) if session else None
    finish(ctx, reply_to_comment(session, client, comment_id, " ".join(body)))
    console.print(f"[green]Replied to comment #{comment_id}[/green]")


@click.command("comment-delete")
@click.argument("comment_id", type=int)
@click.pass_context
def comment_delete_cmd(ctx, comment_id: int):
    """Delete the PR review comment COMMENT_ID."""
    session = load_session(ctx)
    client = get_client(ctx, session=session) if session else None
    finish(ctx, delete_comment(session, client, comment_id))
    console.print(f"[green]Deleted comment #{comment_id}[/green]")


@click.command("list-comments")
@click.pass_context
def list_comments_cmd(ctx):
    """List PR review comments plus local staged comments."""
    session = load_session(ctx)
    client = get_client(ctx, session=session) if session else None
    listing = finish(ctx, list_comments(session, client))

    open_ = [c for c in listing.remote if c.state == "open"]
    resolved = [c for c in listing.remote if c.state == "resolved"]
    console.print(
        f"[bold]PR Comments ({len(listing.remote)} total: {len(open_)} open, {len(resolved)} resolved)[/bold]"
    )

    if listing.staged:
        console.print(f"\n[bold]Staged ({len(listing.staged)} local, not posted)[/bold]")
        for c in listing.staged:
            console.print(f"- [cyan]{c.id}[/cyan] {c.file}:{c.line}")
            console.print(f"  {_preview(c.body)}", markup=False)

    for title, comments in (("Open", open_), ("Resolved", resolved)):
        if not comments:
            continue
        console.print(f"\n[bold]{title}[/bold]")
        for c in comments:
            replies = f", {c.reply_count} repl{'y' if c.reply_count == 1 else 'ies'}" if c.reply_count else ""
            console.print(f"- [bold]#{c.id}[/bold] {c.path}:{c.line} (@{c.author}{replies})")
            console.print(f"  {_preview(c.body)}", markup=False)

    if not listing.remote and not listing.staged:
        console.print("\nNo comments on this PR.")


@click.command("skip")
@click.argument("comment_id")
@click.pass_context
def skip_cmd(ctx, comment_id: str):
    """Skip a staged comment so it is not posted."""
    finish(ctx, skip_comment(load_session(ctx), comment_id))
    console.print(f"[yellow]Skipped {comment_id}[/yellow]")


@click.command("restore")
@click.argument("comment_id")
@click.pass_context
def restore_cmd(ctx, comment_id: str):
    """Restore a skipped comment to staged."""
    finish(ctx, restore_comment(load_session(ctx), comment_id))
    console.print(f"[green]Restored {comment_id}[/green]")


@click.command("edit")
@click.argument("comment_id")
@click.argument("body", nargs=-1)
@click.option(
    "--action",
    type=click.Choice([a for a in EDIT_ACTIONS if a not in ("skip", "restore", "post")]),
    default="reword",
    show_default=True,
    help="Kind of edit recorded in the comment history.",
)
@click.option("--reason", default=None, help="Why the comment was changed.")
@click.pass_context
def edit_cmd(ctx, comment_id: str, body: tuple[str, ...], action: str, reason: str | None):
    """Edit a local comment. Omit BODY to record the action without rewording."""
    new_body = " ".join(body) if body else None
    session = finish(ctx, edit_comment(load_session(ctx), comment_id, action, new_body, reason))
    comment = next(c for c in session.comments if c.id == comment_id)
    console.print(f"[green]Updated {comment_id} ({action}, {len(comment.history)} edit(s))[/green]")


@click.command("review-table")
@click.pass_context
def review_table_cmd(ctx):
    """Show staged comments as a table."""
    session = load_session(ctx)
    if session is None:
        console.print("[yellow]No active review session.[/yellow]")
        return

    staged = [c for c in session.comments if c.state == "staged"]
    if not staged:
        console.print("No staged comments.")
        return

    table = Table(title="Staged Comments", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=12)
    table.add_column("Location")
    table.add_column("Comment")
    for c in staged:
        table.add_row(c.id, f"{c.file}:{c.line}", escape(c.body))
    console.print(table)
