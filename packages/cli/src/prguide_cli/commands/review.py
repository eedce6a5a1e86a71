"""review command: post staged comments and submit the pull request review."""

from __future__ import annotations

import click
from rich.console import Console

from prguide_cli.context import finish, get_client, load_session
from prguide_core.navigator import get_comment_counts, get_progress_summary
from prguide_core.workflow import NO_SESSION, submit_review

console = Console()


@click.command("review")
@click.argument("event", type=click.Choice(["approve", "request-changes", "comment"]))
@click.argument("body", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def review_cmd(ctx, event: str, body: tuple[str, ...], yes: bool):
    """Submit the review as EVENT with an optional BODY.

    Staged comments are posted first. In self-review mode only `comment`
    is accepted, since GitHub does not let authors approve their own PRs.
    """
    session = load_session(ctx)
    if session is None:
        raise click.ClickException(NO_SESSION)

    staged = get_comment_counts(session)["staged"]
    progress = get_progress_summary(session)
    if not yes:
        pending = progress.total - progress.reviewed
        note = f" ({pending} cluster(s) not yet reviewed)" if pending else ""
        click.confirm(
            f"Submit {event.upper()} for PR #{session.pr_number} with {staged} staged comment(s){note}?",
            abort=True,
        )

    client = get_client(ctx, session=session)
    if staged:
        console.print(f"Posting {staged} staged comment(s)...")
    finish(ctx, submit_review(session, client, event, " ".join(body) or None))
    console.print(f"[green]Submitted review: {event.upper()}[/green]")
