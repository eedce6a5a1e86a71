"""Helpers shared by the commands: session handle, GitHub client, result handling."""

from __future__ import annotations

import click
from github import GithubException

from prguide_cli.auth import detect_repo_from_git, resolve_github_token
from prguide_core.gh.pull_request import PullRequestClient, error_reason
from prguide_core.models import ReviewSession
from prguide_core.result import Result


def get_store(ctx: click.Context):
    return ctx.obj["store"]


def load_session(ctx: click.Context) -> ReviewSession | None:
    return get_store(ctx).load()


def get_client(ctx: click.Context, repo: str | None = None, session: ReviewSession | None = None) -> PullRequestClient:
    """Connect to GitHub for ``repo`` (falling back to the session's repo, then git)."""
    token = ctx.obj["config"].get("github_token") or resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    repo = repo or (session.repo_full_name if session else None) or detect_repo_from_git()
    if not repo:
        raise click.UsageError("Could not determine the repository. Pass --repo owner/name.")
    try:
        return PullRequestClient.connect(repo, token)
    except GithubException as e:
        raise click.ClickException(f"Could not open repository {repo}: {error_reason(e)}") from e


def finish(ctx: click.Context, result: Result):
    """Persist any session carried by ``result`` and turn failures into a ClickException.

    A failed result can still carry a session with a complete local change
    (a comment kept as staged), so it is saved before the error is raised.
    """
    if isinstance(result.value, ReviewSession):
        get_store(ctx).save(result.value)
    if not result.ok:
        raise click.ClickException(result.reason or "Operation failed.")
    return result.value
