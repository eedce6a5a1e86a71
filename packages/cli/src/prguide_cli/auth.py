"""GitHub token and repository resolution.

Token resolution order (stops at first success):
  1. GITHUB_TOKEN, then GH_TOKEN environment variables
  2. `gh auth token` (GitHub CLI session — works after `gh auth login`)

Repository resolution order:
  1. explicit --repo option
  2. the repository recorded in the active review session
  3. the `origin` remote of the current git checkout
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def _run(args: list[str]) -> str | None:
    """Run a helper command and return stripped stdout, or None on any failure."""
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    for name in _TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            return token

    token = _run(["gh", "auth", "token"])
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token


def parse_repo_slug(url: str) -> str | None:
    """Extract owner/name from a GitHub remote URL.

    https://github.com/owner/repo.git  →  owner/repo
    git@github.com:owner/repo.git      →  owner/repo
    """
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git").rstrip("/")
    return slug if slug.count("/") == 1 else None


def detect_repo_from_git() -> str | None:
    url = _run(["git", "remote", "get-url", "origin"])
    return parse_repo_slug(url) if url else None
