"""Top-level review operations.

Each operation takes the session explicitly (loaded once by the caller) and
returns a ``Result``. On success ``value`` holds the new session or the
requested data; the caller persists it. Operations never write the session
themselves, which keeps the single-writer assumption visible at the call
site and lets tests run against an in-memory store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from prguide_core import navigator
from prguide_core.clustering import (
    LARGE_CHANGE_THRESHOLD,
    MAX_CLUSTER_SIZE,
    cluster_files,
    detect_cross_cutting_concerns,
)
from prguide_core.models import (
    EDIT_ACTIONS,
    CommentEdit,
    FileCluster,
    PRInfo,
    RemoteComment,
    ReviewComment,
    ReviewSession,
    utc_now,
)
from prguide_core.ordering import order_clusters, renumber_clusters
from prguide_core.result import Result
from prguide_core.session import (
    add_comment,
    create_session,
    mark_cluster_reviewed,
    record_comment_edit,
    record_question,
    set_clusters,
    set_current_cluster,
    set_mode,
    set_narrative,
    update_comment_state,
)

logger = logging.getLogger(__name__)

NO_SESSION = "No active review session. Run 'prguide analyze' first."

_CLI_EVENTS = {
    "approve": "APPROVE",
    "request-changes": "REQUEST_CHANGES",
    "comment": "COMMENT",
}


@dataclass
class AnalysisReport:
    session: ReviewSession
    pr_info: PRInfo
    clusters: list[FileCluster]
    cross_cutting_concerns: list[str] = field(default_factory=list)
    total_files: int = 0
    refreshed: bool = False  # True when an existing session for the same PR was updated


@dataclass
class CommentListing:
    remote: list[RemoteComment] = field(default_factory=list)
    staged: list[ReviewComment] = field(default_factory=list)


def generate_narrative(pr_info: PRInfo, file_count: int, cluster_count: int, concerns: list[str]) -> str:
    lines = [
        f"**{pr_info.title}** by @{pr_info.author}\n",
        f"This PR contains {file_count} changed files organized into {cluster_count} review clusters.",
    ]
    if concerns:
        lines.append(f"\n**Cross-cutting concerns**: {', '.join(concerns)}")
    lines.append(f"\nBranch: `{pr_info.head_branch}`")
    return "\n".join(lines)


def analyze_pull_request(
    client,
    pr_number: int,
    existing: ReviewSession | None = None,
    current_user: str | None = None,
    config: dict | None = None,
) -> Result:
    """Cluster a PR's changed files and seed (or refresh) the review session.

    An existing session for the same PR keeps its comments, questions and
    ``started_at``; its clusters and narrative are replaced. A session for a
    different PR is superseded by a fresh one.
    """
    config = config or {}

    info = client.get_pr_info(pr_number)
    if not info.ok:
        return info
    pr_info: PRInfo = info.value

    listed = client.get_pr_files(pr_info.number)
    if not listed.ok:
        return listed
    files = listed.value
    if not files:
        return Result.failure(f"No files found in PR #{pr_info.number}.")

    logger.debug("Found %d changed files in PR #%d", len(files), pr_info.number)

    clusters = cluster_files(
        files,
        max_cluster_size=config.get("max_cluster_size", MAX_CLUSTER_SIZE),
        large_change_threshold=config.get("large_change_threshold", LARGE_CHANGE_THRESHOLD),
    )
    if config.get("dependency_ordering", True):
        clusters = renumber_clusters(order_clusters(clusters))

    concerns = detect_cross_cutting_concerns(files)
    narrative = generate_narrative(pr_info, len(files), len(clusters), concerns)
    is_self_review = current_user is not None and current_user == pr_info.author

    refreshed = (
        existing is not None
        and existing.pr_number == pr_info.number
        and existing.repo_full_name == pr_info.repo_full_name
    )
    if refreshed:
        session = existing
        if is_self_review:
            session = set_mode(session, "self-review")
    else:
        session = create_session(
            pr_number=pr_info.number,
            repo_full_name=pr_info.repo_full_name,
            branch_name=pr_info.head_branch,
            base_branch=pr_info.base_branch,
            title=pr_info.title,
            author=pr_info.author,
            mode="self-review" if is_self_review else "normal",
        )
    session = set_narrative(set_clusters(session, clusters), narrative)
    if refreshed:
        # Cluster ids were re-derived; the old pointer no longer means anything.
        session = set_current_cluster(session, None)

    return Result.success(
        AnalysisReport(
            session=session,
            pr_info=pr_info,
            clusters=session.clusters,
            cross_cutting_concerns=concerns,
            total_files=len(files),
            refreshed=refreshed,
        )
    )


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


def start_next_cluster(session: ReviewSession | None) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    cluster = navigator.get_next_cluster(session)
    if cluster is None:
        return Result.failure("All clusters have been reviewed.")
    return Result.success(set_current_cluster(session, cluster.id))


def start_previous_cluster(session: ReviewSession | None) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    cluster = navigator.get_previous_cluster(session)
    if cluster is None:
        return Result.failure("Already at the first cluster.")
    return Result.success(set_current_cluster(session, cluster.id))


def start_cluster(session: ReviewSession | None, id_or_name: str) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    cluster = navigator.get_cluster_by_id(session, id_or_name) or navigator.get_cluster_by_name(session, id_or_name)
    if cluster is None:
        return Result.failure(f"Cluster not found: {id_or_name}")
    return Result.success(set_current_cluster(session, cluster.id))


def complete_current_cluster(session: ReviewSession | None) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    if session.current_cluster_id is None:
        return Result.failure("No cluster is in progress. Run 'prguide next' to start one.")
    return Result.success(mark_cluster_reviewed(session, session.current_cluster_id))


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def _validate_location(file: str, line: int, body: str) -> str | None:
    if not file:
        return "A file path is required."
    if line < 0:
        return f"Invalid line number: {line}"
    if not body.strip():
        return "Comment body must not be empty."
    return None


def _get_comment(session: ReviewSession, comment_id: str) -> ReviewComment | None:
    return next((c for c in session.comments if c.id == comment_id), None)


def stage_comment(session: ReviewSession | None, file: str, line: int, body: str) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    problem = _validate_location(file, line, body)
    if problem:
        return Result.failure(problem)
    return Result.success(add_comment(session, file, line, body, state="staged"))


def _post_remote(session: ReviewSession, client, file: str, line: int, body: str) -> Result:
    if session.mode == "self-review":
        return client.post_issue_comment(session.pr_number, f"**{file}:{line}**\n\n{body}")
    return client.post_comment(session.pr_number, file, line, body)


def post_comment(session: ReviewSession | None, client, file: str, line: int, body: str) -> Result:
    """Post a comment immediately.

    In self-review mode the comment goes out as a PR conversation comment,
    since GitHub rejects line comments from the author's own review. If
    posting fails the comment is kept locally as staged; the result is a
    failure whose ``value`` still carries that session.
    """
    if session is None:
        return Result.failure(NO_SESSION)
    problem = _validate_location(file, line, body)
    if problem:
        return Result.failure(problem)

    posted = _post_remote(session, client, file, line, body)
    if not posted.ok:
        kept = add_comment(session, file, line, body, state="staged")
        return Result.failure(f"{posted.reason} Comment preserved locally as staged.", value=kept)

    remote_id = None if session.mode == "self-review" else posted.value
    return Result.success(add_comment(session, file, line, body, state="posted", remote_id=remote_id))


def _transition_comment(
    session: ReviewSession | None,
    comment_id: str,
    new_state: str,
    allowed: tuple[str, ...],
) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    comment = _get_comment(session, comment_id)
    if comment is None:
        return Result.failure(f"Comment not found: {comment_id}")
    if comment.state not in allowed:
        return Result.failure(f"Comment {comment_id} is {comment.state}; cannot move it to {new_state}.")
    return Result.success(update_comment_state(session, comment_id, new_state))


def skip_comment(session: ReviewSession | None, comment_id: str) -> Result:
    return _transition_comment(session, comment_id, "skipped", allowed=("suggested", "staged"))


def restore_comment(session: ReviewSession | None, comment_id: str) -> Result:
    return _transition_comment(session, comment_id, "staged", allowed=("suggested", "skipped"))


def edit_comment(
    session: ReviewSession | None,
    comment_id: str,
    action: str = "reword",
    new_body: str | None = None,
    reason: str | None = None,
) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    if action not in EDIT_ACTIONS:
        return Result.failure(f"Unknown edit action: {action}. Must be one of: {', '.join(EDIT_ACTIONS)}")
    comment = _get_comment(session, comment_id)
    if comment is None:
        return Result.failure(f"Comment not found: {comment_id}")
    if comment.state == "posted":
        return Result.failure(f"Comment {comment_id} is already posted and can no longer be edited.")
    if new_body is not None and not new_body.strip():
        return Result.failure("Comment body must not be empty.")

    edit = CommentEdit(
        timestamp=utc_now(),
        action=action,
        previous_body=comment.body if new_body is not None else None,
        reason=reason,
    )
    return Result.success(record_comment_edit(session, comment_id, edit, new_body))


def reply_to_comment(session: ReviewSession | None, client, remote_id: int, body: str) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    if not body.strip():
        return Result.failure("Reply body must not be empty.")
    return client.reply_to_comment(session.pr_number, remote_id, body)


def delete_comment(session: ReviewSession | None, client, remote_id: int) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    return client.delete_comment(session.pr_number, remote_id)


def list_comments(session: ReviewSession | None, client) -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    remote = client.list_comments(session.pr_number)
    if not remote.ok:
        return remote
    staged = [c for c in session.comments if c.state == "staged"]
    return Result.success(CommentListing(remote=remote.value, staged=staged))


def post_staged_comments(session: ReviewSession, client) -> tuple[ReviewSession, list[str]]:
    """Post every staged comment; return the new session and any failure reasons.

    A comment whose post fails stays staged.
    """
    failures = []
    for comment in [c for c in session.comments if c.state == "staged"]:
        posted = _post_remote(session, client, comment.file, comment.line, comment.body)
        if not posted.ok:
            failures.append(posted.reason)
            continue
        remote_id = None if session.mode == "self-review" else posted.value
        session = update_comment_state(session, comment.id, "posted", remote_id=remote_id)
    return session, failures


def submit_review(session: ReviewSession | None, client, event: str, body: str | None = None) -> Result:
    """Post staged comments, then submit the review.

    ``event`` is one of approve, request-changes or comment. The success
    value is the updated session. When a GitHub call fails the result is a
    failure whose ``value`` holds the session with whatever did get posted.
    """
    if session is None:
        return Result.failure(NO_SESSION)
    gh_event = _CLI_EVENTS.get(event)
    if gh_event is None:
        return Result.failure(f"Invalid review event: {event}. Must be one of: {', '.join(_CLI_EVENTS)}")
    if event == "request-changes" and not (body or "").strip():
        return Result.failure("request-changes requires a body explaining the requested changes.")
    if session.mode == "self-review" and event in ("approve", "request-changes"):
        return Result.failure(f"Cannot {event} in self-review mode. Use 'comment' instead.")

    session, failures = post_staged_comments(session, client)
    if failures:
        return Result.failure(
            f"{len(failures)} staged comment(s) could not be posted; review not submitted. {failures[0]}",
            value=session,
        )

    submitted = client.submit_review(session.pr_number, gh_event, body)
    if not submitted.ok:
        return Result.failure(submitted.reason, value=session)
    return Result.success(session)


def ask_question(session: ReviewSession | None, question: str, answer: str, context: str = "") -> Result:
    if session is None:
        return Result.failure(NO_SESSION)
    if not question.strip():
        return Result.failure("Question must not be empty.")
    context = context or session.current_cluster_id or ""
    return Result.success(record_question(session, question, answer, context))
