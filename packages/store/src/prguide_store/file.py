"""JsonFileStore stores the review session as one JSON document per working directory.

Data format: a single JSON object (camelCase keys) tagged with
``"$schema": "review-state-v1"``. Documents carrying any other tag are
treated as absent rather than upgraded.

Writes go to a temporary file in the same directory which is then renamed
over the target, so a reader never sees a partially written document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from prguide_core.models import (
    SCHEMA_VERSION,
    ClusterFile,
    CommentEdit,
    FileCluster,
    QAEntry,
    ReviewComment,
    ReviewSession,
)
from prguide_store.base import BaseSessionStore

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = ".prguide/review-state.json"


class JsonFileStore(BaseSessionStore):
    """Stores the session at ``path`` (relative paths resolve against ``root``)."""

    def __init__(self, path: str | os.PathLike = DEFAULT_STATE_PATH, root: str | os.PathLike | None = None):
        path = Path(path)
        self.path = path if path.is_absolute() or root is None else Path(root) / path

    def load(self) -> ReviewSession | None:
        if not self.path.exists():
            logger.debug("No state file found at %s", self.path)
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read review state from %s: %s", self.path, e)
            return None

        if not isinstance(data, dict) or data.get("$schema") != SCHEMA_VERSION:
            schema = data.get("$schema") if isinstance(data, dict) else None
            logger.warning("State file has incompatible schema version: %s", schema)
            return None

        try:
            session = self._from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("State file %s is malformed (%s): %s", self.path, type(e).__name__, e)
            return None

        logger.debug("State loaded from %s", self.path)
        return session

    def save(self, session: ReviewSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(self._to_dict(session), indent=2)

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp", delete=False, encoding="utf-8"
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write review state to %s: %s", self.path, e)
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.debug("State saved to %s", self.path)

    def clear(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.debug("State cleared: %s", self.path)
        return True

    @staticmethod
    def _to_dict(session: ReviewSession) -> dict:
        return {
            "$schema": session.schema,
            "prNumber": session.pr_number,
            "repoFullName": session.repo_full_name,
            "branchName": session.branch_name,
            "baseBranch": session.base_branch,
            "title": session.title,
            "author": session.author,
            "mode": session.mode,
            "narrative": session.narrative,
            "clusters": [
                {
                    "id": c.id,
                    "name": c.name,
                    "description": c.description,
                    "files": [
                        {
                            "path": f.path,
                            "changeType": f.change_type,
                            "additions": f.additions,
                            "deletions": f.deletions,
                            "reviewNotes": f.review_notes,
                        }
                        for f in c.files
                    ],
                    "priority": c.priority,
                    "dependsOn": list(c.depends_on),
                    "status": c.status,
                }
                for c in session.clusters
            ],
            "comments": [
                {
                    "id": c.id,
                    "file": c.file,
                    "line": c.line,
                    "body": c.body,
                    "originalBody": c.original_body,
                    "state": c.state,
                    "history": [
                        {
                            "timestamp": h.timestamp,
                            "action": h.action,
                            "previousBody": h.previous_body,
                            "reason": h.reason,
                        }
                        for h in c.history
                    ],
                    "remoteId": c.remote_id,
                    "createdAt": c.created_at,
                    "updatedAt": c.updated_at,
                }
                for c in session.comments
            ],
            "currentClusterId": session.current_cluster_id,
            "reviewedSections": list(session.reviewed_sections),
            "questions": [
                {"question": q.question, "answer": q.answer, "context": q.context, "timestamp": q.timestamp}
                for q in session.questions
            ],
            "startedAt": session.started_at,
            "lastUpdated": session.last_updated,
        }

    @staticmethod
    def _from_dict(d: dict) -> ReviewSession:
        return ReviewSession(
            schema=d["$schema"],
            pr_number=d["prNumber"],
            repo_full_name=d.get("repoFullName", ""),
            branch_name=d.get("branchName", ""),
            base_branch=d.get("baseBranch", ""),
            title=d.get("title", ""),
            author=d.get("author", ""),
            mode=d.get("mode", "normal"),
            narrative=d.get("narrative", ""),
            clusters=[
                FileCluster(
                    id=c["id"],
                    name=c.get("name", ""),
                    description=c.get("description", ""),
                    files=[
                        ClusterFile(
                            path=f["path"],
                            change_type=f.get("changeType", "modified"),
                            additions=f.get("additions", 0),
                            deletions=f.get("deletions", 0),
                            review_notes=f.get("reviewNotes"),
                        )
                        for f in c.get("files", [])
                    ],
                    priority=c.get("priority", 1),
                    depends_on=list(c.get("dependsOn", [])),
                    status=c.get("status", "pending"),
                )
                for c in d.get("clusters", [])
            ],
            comments=[
                ReviewComment(
                    id=c["id"],
                    file=c.get("file", ""),
                    line=c.get("line", 0),
                    body=c.get("body", ""),
                    original_body=c.get("originalBody", c.get("body", "")),
                    state=c.get("state", "staged"),
                    history=[
                        CommentEdit(
                            timestamp=h.get("timestamp", ""),
                            action=h.get("action", ""),
                            previous_body=h.get("previousBody"),
                            reason=h.get("reason"),
                        )
                        for h in c.get("history", [])
                    ],
                    remote_id=c.get("remoteId"),
                    created_at=c.get("createdAt", ""),
                    updated_at=c.get("updatedAt", ""),
                )
                for c in d.get("comments", [])
            ],
            current_cluster_id=d.get("currentClusterId"),
            reviewed_sections=list(d.get("reviewedSections", [])),
            questions=[
                QAEntry(
                    question=q.get("question", ""),
                    answer=q.get("answer", ""),
                    context=q.get("context", ""),
                    timestamp=q.get("timestamp", ""),
                )
                for q in d.get("questions", [])
            ],
            started_at=d.get("startedAt", ""),
            last_updated=d.get("lastUpdated", ""),
        )
