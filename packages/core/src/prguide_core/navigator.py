"""Read-only queries that decide where a review goes next."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from prguide_core.models import FileCluster, ReviewSession

_STATUS_ICONS = {"reviewed": "✓", "in_progress": "→", "pending": "○"}


@dataclass
class ProgressSummary:
    total: int
    reviewed: int
    pending: int
    in_progress: int


def _current_index(session: ReviewSession) -> int:
    for index, cluster in enumerate(session.clusters):
        if cluster.id == session.current_cluster_id:
            return index
    return -1


def get_next_cluster(session: ReviewSession) -> FileCluster | None:
    """Return the next cluster to review.

    Scans forward from the current cluster for anything not yet reviewed,
    then wraps to the start looking for a pending cluster. ``None`` only
    when there is nothing left to review.
    """
    current = _current_index(session)
    for cluster in session.clusters[current + 1 :]:
        if cluster.status in ("pending", "in_progress"):
            return cluster
    for cluster in session.clusters[: current + 1]:
        if cluster.status == "pending":
            return cluster
    return None


def get_previous_cluster(session: ReviewSession) -> FileCluster | None:
    current = _current_index(session)
    if current <= 0:
        return None
    return session.clusters[current - 1]


def get_cluster_by_id(session: ReviewSession, cluster_id: str) -> FileCluster | None:
    return next((c for c in session.clusters if c.id == cluster_id), None)


def get_cluster_by_name(session: ReviewSession, name: str) -> FileCluster | None:
    """Case-insensitive substring match on the cluster name."""
    needle = name.lower()
    return next((c for c in session.clusters if needle in c.name.lower()), None)


def get_progress_summary(session: ReviewSession) -> ProgressSummary:
    counts = Counter(c.status for c in session.clusters)
    return ProgressSummary(
        total=len(session.clusters),
        reviewed=counts["reviewed"],
        pending=counts["pending"],
        in_progress=counts["in_progress"],
    )


def get_comment_counts(session: ReviewSession) -> dict[str, int]:
    counts = Counter(c.state for c in session.comments)
    return {state: counts[state] for state in ("suggested", "staged", "skipped", "posted")}


def is_review_complete(session: ReviewSession) -> bool:
    """True when nothing is staged and the review actually posted something.

    A session whose comments were all skipped is reported incomplete: no
    feedback reached the pull request.
    """
    states = [c.state for c in session.comments]
    if "staged" in states:
        return False
    return not states or "posted" in states


def format_state_display(session: ReviewSession) -> str:
    progress = get_progress_summary(session)
    counts = get_comment_counts(session)

    lines = [
        "## Active Review Session\n",
        f"- **PR**: #{session.pr_number} - {session.title}",
        f"- **Author**: @{session.author}",
        f"- **Branch**: {session.branch_name}",
        f"- **Mode**: {session.mode}",
        f"- **Started**: {session.started_at}",
        f"- **Last Updated**: {session.last_updated}\n",
        f"### Progress: {progress.reviewed}/{progress.total} clusters reviewed\n",
    ]
    for cluster in session.clusters:
        icon = _STATUS_ICONS.get(cluster.status, "○")
        lines.append(f"- {icon} **{cluster.name}** ({len(cluster.files)} files)")

    lines.append(
        f"\n### Comments: {counts['staged']} staged, {counts['posted']} posted, {counts['skipped']} skipped"
    )
    return "\n".join(lines)
