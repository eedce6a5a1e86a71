"""CLI entry point for prguide.

Commands:
  analyze            — cluster a PR's changed files and start a review session
  check-self-review  — report whether the current user authored the PR
  state show|clear   — inspect or discard the active session
  files              — list changed files grouped by cluster
  next / prev / goto / done — move through clusters
  ask                — record a question and its answer
  comment / skip / restore / edit / review-table — manage local comments
  comment-reply / comment-delete / list-comments — manage PR comments
  review             — post staged comments and submit the review
"""

from __future__ import annotations

import importlib.metadata
import logging
import sys

import click

from prguide_cli.commands.analyze import analyze_cmd, check_self_review_cmd
from prguide_cli.commands.comment import (
    comment_cmd,
    comment_delete_cmd,
    comment_reply_cmd,
    edit_cmd,
    list_comments_cmd,
    restore_cmd,
    review_table_cmd,
    skip_cmd,
)
from prguide_cli.commands.navigate import ask_cmd, done_cmd, goto_cmd, next_cmd, prev_cmd
from prguide_cli.commands.review import review_cmd
from prguide_cli.commands.state import files_cmd, state_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("prguide")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


def _build_store(config: dict):
    """Instantiate the session store from the resolved config.

    Lives in cli.py so neither prguide_core nor prguide_store know about
    the CLI config format.
    """
    from prguide_store.file import JsonFileStore

    return JsonFileStore(path=config["state_path"])


@click.group()
@click.version_option(version=_version(), prog_name="prguide")
@click.option(
    "--config",
    "config_path",
    default=".prguide.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRGUIDE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Guided, resumable pull request reviews organised by file cluster."""
    from prguide_core.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))

    ctx.obj["config"] = config
    ctx.obj["store"] = _build_store(config)


main.add_command(analyze_cmd)
main.add_command(check_self_review_cmd)
main.add_command(state_cmd)
main.add_command(files_cmd)
main.add_command(next_cmd)
main.add_command(prev_cmd)
main.add_command(goto_cmd)
main.add_command(done_cmd)
main.add_command(ask_cmd)
main.add_command(comment_cmd)
main.add_command(comment_reply_cmd)
main.add_command(comment_delete_cmd)
main.add_command(list_comments_cmd)
main.add_command(skip_cmd)
main.add_command(restore_cmd)
main.add_command(edit_cmd)
main.add_command(review_table_cmd)
main.add_command(review_cmd)
