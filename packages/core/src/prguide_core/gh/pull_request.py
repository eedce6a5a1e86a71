"""GitHub collaborator built on PyGithub.

Every call that talks to GitHub catches ``GithubException`` and returns a
``Result`` failure carrying the reason. Nothing here retries; a failed call
is reported once and the caller decides what to do with its session.
"""

from __future__ import annotations

import logging

from github import Github, GithubException

from prguide_core.models import PRFile, PRInfo, RemoteComment
from prguide_core.result import Result

logger = logging.getLogger(__name__)

_STATUS_TO_CHANGE_TYPE = {
    "added": "added",
    "a": "added",
    "removed": "deleted",
    "deleted": "deleted",
    "d": "deleted",
    "renamed": "renamed",
    "r": "renamed",
}

REVIEW_EVENTS = ("APPROVE", "REQUEST_CHANGES", "COMMENT")


def error_reason(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message") or str(e)


def map_change_type(status: str | None) -> str:
    return _STATUS_TO_CHANGE_TYPE.get((status or "modified").lower(), "modified")


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


class PullRequestClient:
    """Thin wrapper around one repository's pull requests.

    Holds the PyGithub repo object so workflow functions can be tested with
    a ``MagicMock`` in its place.
    """

    def __init__(self, repo, gh=None):
        self._repo = repo
        self._gh = gh

    @classmethod
    def connect(cls, repo_name: str, token: str) -> PullRequestClient:
        gh = Github(token)
        return cls(gh.get_repo(repo_name), gh)

    @property
    def repo_full_name(self) -> str:
        return self._repo.full_name

    def get_current_user(self) -> Result:
        if self._gh is None:
            return Result.failure("No authenticated GitHub client available.")
        try:
            return Result.success(self._gh.get_user().login)
        except GithubException as e:
            logger.warning("Could not resolve current GitHub user: %s", e)
            return Result.failure(f"Could not resolve current GitHub user: {error_reason(e)}")

    def list_open_pull_requests(self) -> Result:
        """Success value is a list of (number, title) pairs."""
        try:
            prs = [(pr.number, pr.title or "") for pr in get_pull_requests(self._repo)]
        except GithubException as e:
            return Result.failure(f"Could not list pull requests: {error_reason(e)}")
        return Result.success(prs)

    def get_pr_info(self, pr_number: int) -> Result:
        try:
            pr = get_pull(self._repo, pr_number)
        except GithubException as e:
            return Result.failure(f"Could not find PR #{pr_number} in {self._repo.full_name}: {error_reason(e)}")
        return Result.success(
            PRInfo(
                number=pr.number,
                title=pr.title or "",
                author=pr.user.login if pr.user else "unknown",
                base_branch=pr.base.ref,
                head_branch=pr.head.ref,
                repo_full_name=self._repo.full_name,
                url=pr.html_url or "",
            )
        )

    def get_pr_files(self, pr_number: int) -> Result:
        try:
            files = list(get_pull(self._repo, pr_number).get_files())
        except GithubException as e:
            return Result.failure(f"Could not list files for PR #{pr_number}: {error_reason(e)}")
        return Result.success(
            [
                PRFile(
                    path=f.filename,
                    change_type=map_change_type(f.status),
                    additions=f.additions or 0,
                    deletions=f.deletions or 0,
                    patch=f.patch,
                )
                for f in files
            ]
        )

    def list_comments(self, pr_number: int) -> Result:
        """Return top-level review comments with their reply counts.

        The REST API does not expose thread resolution, so a comment whose
        line no longer exists in the diff (``line is None``) is reported as
        resolved and everything else as open.
        """
        try:
            raw = list(get_pull(self._repo, pr_number).get_review_comments())
        except GithubException as e:
            return Result.failure(f"Could not list comments for PR #{pr_number}: {error_reason(e)}")

        replies: dict[int, int] = {}
        for c in raw:
            parent = getattr(c, "in_reply_to_id", None)
            if parent:
                replies[parent] = replies.get(parent, 0) + 1

        comments = [
            RemoteComment(
                id=c.id,
                path=c.path,
                line=c.line if c.line is not None else (getattr(c, "original_line", None) or 0),
                body=c.body or "",
                author=c.user.login if c.user else "unknown",
                state="resolved" if c.line is None else "open",
                reply_count=replies.get(c.id, 0),
                created_at=c.created_at.isoformat() if c.created_at else "",
            )
            for c in raw
            if not getattr(c, "in_reply_to_id", None)
        ]
        return Result.success(comments)

    def post_comment(self, pr_number: int, file: str, line: int, body: str) -> Result:
        """Post a line comment on the head commit. Success value is the comment id."""
        try:
            pr = get_pull(self._repo, pr_number)
            commit = self._repo.get_commit(pr.head.sha)
            comment = pr.create_review_comment(body=body, commit=commit, path=file, line=line, side="RIGHT")
        except GithubException as e:
            logger.warning("Failed to post comment on %s:%d: %s", file, line, e)
            return Result.failure(f"Failed to post comment on {file}:{line}: {error_reason(e)}")
        return Result.success(comment.id)

    def reply_to_comment(self, pr_number: int, comment_id: int, body: str) -> Result:
        try:
            reply = get_pull(self._repo, pr_number).create_review_comment_reply(comment_id, body)
        except GithubException as e:
            return Result.failure(f"Failed to reply to comment #{comment_id}: {error_reason(e)}")
        return Result.success(reply.id)

    def delete_comment(self, pr_number: int, comment_id: int) -> Result:
        try:
            get_pull(self._repo, pr_number).get_review_comment(comment_id).delete()
        except GithubException as e:
            return Result.failure(f"Failed to delete comment #{comment_id}: {error_reason(e)}")
        return Result.success(comment_id)

    def post_issue_comment(self, pr_number: int, body: str) -> Result:
        try:
            comment = get_pull(self._repo, pr_number).create_issue_comment(body)
        except GithubException as e:
            return Result.failure(f"Failed to post PR comment: {error_reason(e)}")
        return Result.success(comment.id)

    def submit_review(self, pr_number: int, event: str, body: str | None = None) -> Result:
        if event not in REVIEW_EVENTS:
            return Result.failure(f"Invalid review event: {event}. Must be one of: {', '.join(REVIEW_EVENTS)}")
        try:
            review = get_pull(self._repo, pr_number).create_review(body=body or "", event=event)
        except GithubException as e:
            return Result.failure(f"Failed to submit review: {error_reason(e)}")
        return Result.success(review.id)
