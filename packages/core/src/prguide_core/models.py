"""Review session data models.

Plain dataclasses shared by the cluster builder, the session state machine
and the store layer. Enumerated fields are kept as strings (they round-trip
through JSON unchanged) and validated against the tuples below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

SCHEMA_VERSION = "review-state-v1"

CHANGE_TYPES = ("added", "modified", "deleted", "renamed")
CLUSTER_STATUSES = ("pending", "in_progress", "reviewed")
COMMENT_STATES = ("suggested", "staged", "skipped", "posted")
EDIT_ACTIONS = ("reword", "soften", "strengthen", "combine", "skip", "restore", "post")
REVIEW_MODES = ("normal", "self-review")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PRFile:
    """A changed file as reported by the hosting API."""

    path: str
    change_type: str  # "added" | "modified" | "deleted" | "renamed"
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass
class PRInfo:
    number: int
    title: str
    author: str
    base_branch: str
    head_branch: str
    repo_full_name: str
    url: str = ""


@dataclass
class RemoteComment:
    """An existing review comment on the pull request."""

    id: int
    path: str
    line: int
    body: str
    author: str
    state: str = "open"  # "open" | "resolved"
    reply_count: int = 0
    created_at: str = ""


@dataclass
class ClusterFile:
    path: str
    change_type: str
    additions: int = 0
    deletions: int = 0
    review_notes: str | None = None  # e.g. "[Has tests] [New file]"


@dataclass
class FileCluster:
    """A named group of changed files reviewed together.

    ``id`` is a positional label ("cluster-3") re-derived every time the
    builder sorts; it is not a stable identity across builds.
    """

    id: str
    name: str
    description: str
    files: list[ClusterFile] = field(default_factory=list)
    priority: int = 1  # 1 = review first
    depends_on: list[str] = field(default_factory=list)
    status: str = "pending"  # "pending" | "in_progress" | "reviewed"


@dataclass
class CommentEdit:
    timestamp: str
    action: str
    previous_body: str | None = None
    reason: str | None = None


@dataclass
class ReviewComment:
    """A review comment tracked through its local lifecycle.

    ``original_body`` is written once at creation and never changed;
    ``history`` is append-only and serves as the audit trail.
    """

    id: str
    file: str
    line: int
    body: str
    original_body: str
    state: str = "staged"  # "suggested" | "staged" | "skipped" | "posted"
    history: list[CommentEdit] = field(default_factory=list)
    remote_id: int | None = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)


@dataclass
class QAEntry:
    question: str
    answer: str
    context: str
    timestamp: str = field(default_factory=utc_now)


@dataclass
class ReviewSession:
    """Root aggregate for one pull-request review.

    Owns every cluster and comment. Exactly one session is live per working
    directory; it is replaced when a review starts for a different PR.
    """

    pr_number: int
    repo_full_name: str
    branch_name: str
    base_branch: str
    title: str
    author: str
    mode: str = "normal"  # "normal" | "self-review"
    narrative: str = ""
    clusters: list[FileCluster] = field(default_factory=list)
    comments: list[ReviewComment] = field(default_factory=list)
    current_cluster_id: str | None = None
    reviewed_sections: list[str] = field(default_factory=list)
    questions: list[QAEntry] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now)
    last_updated: str = field(default_factory=utc_now)
    schema: str = SCHEMA_VERSION
