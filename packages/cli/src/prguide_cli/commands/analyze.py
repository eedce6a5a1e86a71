"""analyze command: cluster a pull request and start (or refresh) the review session."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prguide_cli.context import finish, get_client, get_store, load_session
from prguide_core.workflow import analyze_pull_request

console = Console()


def _prompt_for_pr(client) -> int | None:
    listed = client.list_open_pull_requests()
    if not listed.ok:
        raise click.ClickException(listed.reason)
    if not listed.value:
        console.print("[yellow]No open pull requests found.[/yellow]")
        return None
    console.print("\nOpen pull requests:")
    for number, title in listed.value:
        console.print(f"  [bold]#{number}[/bold]  {title}")
    return click.prompt("\nEnter the pull request number", type=int)


@click.command("analyze")
@click.argument("pr_number", type=int, required=False)
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to the git remote.")
@click.pass_context
def analyze_cmd(ctx, pr_number: int | None, repo: str | None):
    """Group a PR's changed files into review clusters and start a session.

    Re-running analyze for the PR already under review refreshes its
    clusters but keeps comments and questions. Analyzing a different PR
    replaces the session.
    """
    existing = load_session(ctx)
    client = get_client(ctx, repo=repo, session=existing if repo is None else None)

    if pr_number is None:
        pr_number = _prompt_for_pr(client)
        if pr_number is None:
            return

    user = client.get_current_user()
    report = finish(
        ctx,
        analyze_pull_request(
            client,
            pr_number,
            existing=existing,
            current_user=user.value if user.ok else None,
            config=ctx.obj["config"],
        ),
    )
    get_store(ctx).save(report.session)

    console.print(report.session.narrative)
    if report.session.mode == "self-review":
        console.print("\n[yellow]Self-review mode: comments will be posted as PR conversation comments.[/yellow]")

    table = Table(title=f"Review clusters — PR #{report.pr_info.number}", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=12)
    table.add_column("Name", max_width=30)
    table.add_column("Files", justify="right", width=6)
    table.add_column("Summary")
    table.add_column("Depends on")
    for cluster in report.clusters:
        table.add_row(
            cluster.id,
            cluster.name,
            str(len(cluster.files)),
            cluster.description,
            ", ".join(cluster.depends_on) or "—",
        )
    console.print(table)

    verb = "Refreshed" if report.refreshed else "Started"
    console.print(f"\n[green]{verb} review of {report.total_files} file(s). Run `prguide next` to begin.[/green]")


@click.command("check-self-review")
@click.argument("pr_number", type=int, required=False)
@click.option("--repo", default=None, help="GitHub repository in owner/name format.")
@click.pass_context
def check_self_review_cmd(ctx, pr_number: int | None, repo: str | None):
    """Report whether the authenticated user is the PR author."""
    session = load_session(ctx)
    if pr_number is None:
        if session is None:
            raise click.UsageError("Pass a PR number or run `prguide analyze` first.")
        pr_number = session.pr_number

    client = get_client(ctx, repo=repo, session=session)
    info = client.get_pr_info(pr_number)
    if not info.ok:
        raise click.ClickException(info.reason)
    user = client.get_current_user()
    if not user.ok:
        raise click.ClickException(user.reason)

    if user.value == info.value.author:
        console.print(f"[yellow]Self-review: you (@{user.value}) authored PR #{pr_number}.[/yellow]")
    else:
        console.print(f"Not a self-review: PR #{pr_number} is by @{info.value.author}.")
