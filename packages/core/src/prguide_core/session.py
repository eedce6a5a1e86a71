"""Review session state transitions.

Every mutator takes a session and returns a new one; the input is never
modified. Each transition stamps ``last_updated``. Passing an id that does
not exist returns the input session unchanged.
"""

from __future__ import annotations

import copy
import logging

from prguide_core.models import (
    COMMENT_STATES,
    REVIEW_MODES,
    CommentEdit,
    FileCluster,
    QAEntry,
    ReviewComment,
    ReviewSession,
    utc_now,
)

logger = logging.getLogger(__name__)

_STATE_ACTIONS = {
    "skipped": "skip",
    "staged": "restore",
    "suggested": "restore",
    "posted": "post",
}


def create_session(
    pr_number: int,
    repo_full_name: str,
    branch_name: str,
    base_branch: str,
    title: str,
    author: str,
    mode: str = "normal",
) -> ReviewSession:
    if mode not in REVIEW_MODES:
        raise ValueError(f"Unknown review mode: {mode!r}. Choose 'normal' or 'self-review'.")
    now = utc_now()
    return ReviewSession(
        pr_number=pr_number,
        repo_full_name=repo_full_name,
        branch_name=branch_name,
        base_branch=base_branch,
        title=title,
        author=author,
        mode=mode,
        started_at=now,
        last_updated=now,
    )


def _evolve(session: ReviewSession) -> ReviewSession:
    updated = copy.deepcopy(session)
    updated.last_updated = utc_now()
    return updated


def _find_comment(session: ReviewSession, comment_id: str) -> int | None:
    for index, comment in enumerate(session.comments):
        if comment.id == comment_id:
            return index
    return None


def _find_cluster(session: ReviewSession, cluster_id: str) -> int | None:
    for index, cluster in enumerate(session.clusters):
        if cluster.id == cluster_id:
            return index
    return None


def set_clusters(session: ReviewSession, clusters: list[FileCluster]) -> ReviewSession:
    updated = _evolve(session)
    updated.clusters = copy.deepcopy(clusters)
    return updated


def set_narrative(session: ReviewSession, narrative: str) -> ReviewSession:
    updated = _evolve(session)
    updated.narrative = narrative
    return updated


def set_mode(session: ReviewSession, mode: str) -> ReviewSession:
    if mode not in REVIEW_MODES:
        return session
    updated = _evolve(session)
    updated.mode = mode
    return updated


def set_current_cluster(session: ReviewSession, cluster_id: str | None) -> ReviewSession:
    """Point the session at a cluster and mark it in progress.

    Other clusters keep their status: a caller that wants only one cluster
    in progress marks the previous one reviewed first.
    """
    if cluster_id is None:
        updated = _evolve(session)
        updated.current_cluster_id = None
        return updated

    index = _find_cluster(session, cluster_id)
    if index is None:
        logger.debug("set_current_cluster: unknown cluster %s", cluster_id)
        return session

    updated = _evolve(session)
    updated.current_cluster_id = cluster_id
    updated.clusters[index].status = "in_progress"
    return updated


def mark_cluster_reviewed(session: ReviewSession, cluster_id: str) -> ReviewSession:
    index = _find_cluster(session, cluster_id)
    if index is None:
        logger.debug("mark_cluster_reviewed: unknown cluster %s", cluster_id)
        return session

    updated = _evolve(session)
    updated.clusters[index].status = "reviewed"
    if cluster_id not in updated.reviewed_sections:
        updated.reviewed_sections.append(cluster_id)
    return updated


def add_comment(
    session: ReviewSession,
    file: str,
    line: int,
    body: str,
    state: str = "staged",
    remote_id: int | None = None,
) -> ReviewSession:
    """Append a new comment. Ids are "comment-<n>" in creation order.

    Raises ``ValueError`` for a state outside ``COMMENT_STATES``; that is a
    programming error, not a user failure, so no ``Result`` is returned.
    """
    if state not in COMMENT_STATES:
        raise ValueError(f"Unknown comment state: {state!r}")

    now = utc_now()
    history = [CommentEdit(timestamp=now, action="post")] if state == "posted" else []
    comment = ReviewComment(
        id=f"comment-{len(session.comments) + 1}",
        file=file,
        line=line,
        body=body,
        original_body=body,
        state=state,
        history=history,
        remote_id=remote_id,
        created_at=now,
        updated_at=now,
    )
    updated = _evolve(session)
    updated.comments.append(comment)
    return updated


def update_comment_state(
    session: ReviewSession,
    comment_id: str,
    new_state: str,
    remote_id: int | None = None,
) -> ReviewSession:
    """Move a comment to ``new_state`` and record the action in its history.

    Raises ``ValueError`` for a state outside ``COMMENT_STATES``. An unknown
    ``comment_id`` is not an error: the session comes back unchanged.
    """
    if new_state not in COMMENT_STATES:
        raise ValueError(f"Unknown comment state: {new_state!r}")

    index = _find_comment(session, comment_id)
    if index is None:
        logger.debug("update_comment_state: unknown comment %s", comment_id)
        return session

    updated = _evolve(session)
    comment = updated.comments[index]
    comment.state = new_state
    if remote_id is not None:
        comment.remote_id = remote_id
    comment.history.append(CommentEdit(timestamp=updated.last_updated, action=_STATE_ACTIONS[new_state]))
    comment.updated_at = updated.last_updated
    return updated


def record_comment_edit(
    session: ReviewSession,
    comment_id: str,
    edit: CommentEdit,
    new_body: str | None = None,
) -> ReviewSession:
    """Append ``edit`` verbatim and optionally replace the body.

    ``original_body`` is never touched.
    """
    index = _find_comment(session, comment_id)
    if index is None:
        logger.debug("record_comment_edit: unknown comment %s", comment_id)
        return session

    updated = _evolve(session)
    comment = updated.comments[index]
    comment.history.append(copy.deepcopy(edit))
    if new_body is not None:
        comment.body = new_body
    comment.updated_at = updated.last_updated
    return updated


def record_question(session: ReviewSession, question: str, answer: str, context: str) -> ReviewSession:
    updated = _evolve(session)
    updated.questions.append(QAEntry(question=question, answer=answer, context=context, timestamp=updated.last_updated))
    return updated
