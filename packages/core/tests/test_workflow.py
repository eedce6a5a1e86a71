"""Tests for the top-level review operations."""

from unittest.mock import MagicMock

import pytest

from prguide_core.models import PRFile, PRInfo, RemoteComment
from prguide_core.result import Result
from prguide_core.session import add_comment, create_session, set_clusters, set_current_cluster, update_comment_state
from prguide_core.workflow import (
    NO_SESSION,
    analyze_pull_request,
    ask_question,
    complete_current_cluster,
    delete_comment,
    edit_comment,
    generate_narrative,
    list_comments,
    post_comment,
    post_staged_comments,
    reply_to_comment,
    restore_comment,
    skip_comment,
    stage_comment,
    start_cluster,
    start_next_cluster,
    start_previous_cluster,
    submit_review,
)

PR_INFO = PRInfo(
    number=42,
    title="Add login",
    author="alice",
    base_branch="main",
    head_branch="feature/login",
    repo_full_name="owner/repo",
)

FILES = [
    PRFile(path="src/services/auth.py", change_type="modified", additions=10, deletions=2),
    PRFile(path="src/types/user.py", change_type="added", additions=30),
    PRFile(path="tests/test_auth.py", change_type="added", additions=40),
    PRFile(path="package.json", change_type="modified", additions=1, deletions=1),
]


def _client(files=FILES, info=PR_INFO):
    client = MagicMock()
    client.get_pr_info.return_value = Result.success(info)
    client.get_pr_files.return_value = Result.success(files)
    client.post_comment.return_value = Result.success(1001)
    client.post_issue_comment.return_value = Result.success(2001)
    client.submit_review.return_value = Result.success(3001)
    return client


def _analyzed(mode="normal"):
    user = "alice" if mode == "self-review" else "bob"
    return analyze_pull_request(_client(), 42, current_user=user).value.session


# ---------------------------------------------------------------------------
# analyze_pull_request
# ---------------------------------------------------------------------------


class TestAnalyzePullRequest:
    def test_creates_session_in_review_order(self):
        result = analyze_pull_request(_client(), 42, current_user="bob")

        assert result.ok
        report = result.value
        assert report.refreshed is False
        assert report.total_files == 4
        assert report.session.mode == "normal"
        assert report.session.pr_number == 42
        assert [c.name for c in report.clusters] == ["Types", "Services", "Root Files", "Tests"]
        assert report.cross_cutting_concerns == ["Configuration changes", "New dependencies"]
        assert "4 changed files organized into 4 review clusters" in report.session.narrative

    def test_self_review_detected(self):
        report = analyze_pull_request(_client(), 42, current_user="alice").value
        assert report.session.mode == "self-review"

    def test_unknown_user_means_normal_mode(self):
        assert analyze_pull_request(_client(), 42).value.session.mode == "normal"

    def test_refresh_keeps_comments_and_start_time(self):
        existing = stage_comment(_analyzed(), "src/types/user.py", 3, "Use a dataclass").value
        existing = set_current_cluster(existing, "cluster-2")

        report = analyze_pull_request(_client(), 42, existing=existing, current_user="bob").value

        assert report.refreshed is True
        assert report.session.started_at == existing.started_at
        assert [c.body for c in report.session.comments] == ["Use a dataclass"]
        assert report.session.current_cluster_id is None

    def test_different_pr_replaces_session(self):
        existing = create_session(7, "owner/repo", "b", "main", "Old", "carol")
        existing = add_comment(existing, "x.py", 1, "old comment")

        report = analyze_pull_request(_client(), 42, existing=existing).value

        assert report.refreshed is False
        assert report.session.pr_number == 42
        assert report.session.comments == []

    def test_same_number_other_repo_replaces_session(self):
        existing = create_session(42, "other/repo", "b", "main", "Old", "carol")
        assert analyze_pull_request(_client(), 42, existing=existing).value.refreshed is False

    def test_dependency_ordering_can_be_disabled(self):
        files = [
            PRFile(path="src/auth/providers/github.py", change_type="modified"),
            PRFile(path="src/auth/session.py", change_type="modified"),
        ]
        ordered = analyze_pull_request(_client(files=files), 42).value.clusters
        unordered = analyze_pull_request(_client(files=files), 42, config={"dependency_ordering": False}).value.clusters

        assert ordered[1].depends_on == [ordered[0].id]
        assert all(c.depends_on == [] for c in unordered)

    def test_cluster_ids_follow_review_order_after_dependency_sort(self):
        files = [
            PRFile(path="src/types/a.py", change_type="modified"),
            PRFile(path="src/b.py", change_type="modified"),
        ]
        clusters = analyze_pull_request(_client(files=files), 42).value.clusters

        assert [c.name for c in clusters] == ["Src", "Types"]
        assert all(c.id == f"cluster-{c.priority}" for c in clusters)
        assert clusters[1].depends_on == ["cluster-1"]

        s = start_next_cluster(analyze_pull_request(_client(files=files), 42).value.session).value
        assert s.current_cluster_id == "cluster-1"
        assert s.clusters[0].name == "Src"

    def test_pr_lookup_failure_propagates(self):
        client = _client()
        client.get_pr_info.return_value = Result.failure("Could not find PR #42")
        result = analyze_pull_request(client, 42)
        assert not result.ok
        assert result.reason == "Could not find PR #42"
        client.get_pr_files.assert_not_called()

    def test_empty_pr(self):
        result = analyze_pull_request(_client(files=[]), 42)
        assert not result.ok
        assert "No files" in result.reason

    def test_narrative(self):
        text = generate_narrative(PR_INFO, 3, 2, ["Documentation"])
        assert text.startswith("**Add login** by @alice")
        assert "**Cross-cutting concerns**: Documentation" in text
        assert "`feature/login`" in text


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    def test_no_session(self):
        for op in (start_next_cluster, start_previous_cluster, complete_current_cluster):
            result = op(None)
            assert not result.ok
            assert result.reason == NO_SESSION

    def test_walk_through_clusters(self):
        s = start_next_cluster(_analyzed()).value
        assert s.current_cluster_id == "cluster-1"

        s = complete_current_cluster(s).value
        s = start_next_cluster(s).value
        assert s.current_cluster_id == "cluster-2"
        assert s.clusters[0].status == "reviewed"

        s = start_previous_cluster(s).value
        assert s.current_cluster_id == "cluster-1"

    def test_previous_at_start(self):
        s = start_next_cluster(_analyzed()).value
        assert not start_previous_cluster(s).ok

    def test_next_when_everything_reviewed(self):
        s = _analyzed()
        for cluster in s.clusters:
            s = complete_current_cluster(start_cluster(s, cluster.id).value).value
        result = start_next_cluster(s)
        assert not result.ok
        assert "All clusters" in result.reason

    def test_start_cluster_by_name(self):
        s = start_cluster(_analyzed(), "services").value
        assert s.current_cluster_id == "cluster-2"

    def test_start_unknown_cluster(self):
        assert start_cluster(_analyzed(), "nope").reason == "Cluster not found: nope"

    def test_complete_without_current(self):
        assert not complete_current_cluster(_analyzed()).ok


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class TestStageAndPost:
    def test_stage(self):
        s = stage_comment(_analyzed(), "a.py", 4, "nit").value
        assert s.comments[0].state == "staged"

    @pytest.mark.parametrize("file,line,body", [("", 1, "x"), ("a.py", -1, "x"), ("a.py", 1, "   ")])
    def test_stage_rejects_bad_input(self, file, line, body):
        assert not stage_comment(_analyzed(), file, line, body).ok

    def test_post_line_comment(self):
        client = _client()
        s = post_comment(_analyzed(), client, "src/types/user.py", 3, "Rename").value

        client.post_comment.assert_called_once_with(42, "src/types/user.py", 3, "Rename")
        assert s.comments[0].state == "posted"
        assert s.comments[0].remote_id == 1001

    def test_post_in_self_review_uses_issue_comment(self):
        client = _client()
        s = post_comment(_analyzed("self-review"), client, "a.py", 3, "Note to self").value

        client.post_comment.assert_not_called()
        client.post_issue_comment.assert_called_once_with(42, "**a.py:3**\n\nNote to self")
        assert s.comments[0].state == "posted"
        assert s.comments[0].remote_id is None

    def test_post_failure_keeps_comment_staged(self):
        client = _client()
        client.post_comment.return_value = Result.failure("Failed to post comment on a.py:3: Validation Failed")

        result = post_comment(_analyzed(), client, "a.py", 3, "Important")

        assert not result.ok
        assert "preserved locally" in result.reason
        assert result.value.comments[0].state == "staged"
        assert result.value.comments[0].body == "Important"


class TestCommentLifecycle:
    def _with_comment(self, state="staged"):
        s = stage_comment(_analyzed(), "a.py", 1, "original").value
        if state != "staged":
            s = update_comment_state(s, "comment-1", state)
        return s

    def test_skip_and_restore(self):
        s = skip_comment(self._with_comment(), "comment-1").value
        assert s.comments[0].state == "skipped"
        s = restore_comment(s, "comment-1").value
        assert s.comments[0].state == "staged"
        assert [h.action for h in s.comments[0].history] == ["skip", "restore"]

    def test_restore_suggested(self):
        s = restore_comment(self._with_comment("suggested"), "comment-1").value
        assert s.comments[0].state == "staged"

    def test_cannot_skip_posted(self):
        result = skip_comment(self._with_comment("posted"), "comment-1")
        assert not result.ok
        assert "posted" in result.reason

    def test_cannot_restore_staged(self):
        assert not restore_comment(self._with_comment(), "comment-1").ok

    def test_unknown_comment(self):
        assert skip_comment(self._with_comment(), "comment-9").reason == "Comment not found: comment-9"

    def test_edit_rewords_and_records_previous_body(self):
        s = edit_comment(self._with_comment(), "comment-1", "soften", "softer", reason="tone").value
        comment = s.comments[0]
        assert comment.body == "softer"
        assert comment.original_body == "original"
        assert comment.history[-1].action == "soften"
        assert comment.history[-1].previous_body == "original"
        assert comment.history[-1].reason == "tone"

    def test_edit_without_body_only_records(self):
        s = edit_comment(self._with_comment(), "comment-1", "strengthen").value
        assert s.comments[0].body == "original"
        assert s.comments[0].history[-1].previous_body is None

    def test_edit_rejects_posted_and_bad_action(self):
        assert not edit_comment(self._with_comment("posted"), "comment-1", "reword", "x").ok
        assert not edit_comment(self._with_comment(), "comment-1", "shout", "x").ok
        assert not edit_comment(self._with_comment(), "comment-1", "reword", "  ").ok


class TestRemoteComments:
    def test_reply_and_delete_delegate_to_client(self):
        client = _client()
        client.reply_to_comment.return_value = Result.success(5)
        client.delete_comment.return_value = Result.success(9)
        s = _analyzed()

        assert reply_to_comment(s, client, 9, "Fixed").ok
        client.reply_to_comment.assert_called_once_with(42, 9, "Fixed")
        assert delete_comment(s, client, 9).ok
        client.delete_comment.assert_called_once_with(42, 9)

    def test_reply_requires_body(self):
        client = _client()
        assert not reply_to_comment(_analyzed(), client, 9, " ").ok
        client.reply_to_comment.assert_not_called()

    def test_list_comments_includes_staged(self):
        client = _client()
        remote = [RemoteComment(id=1, path="a.py", line=2, body="?", author="bob")]
        client.list_comments.return_value = Result.success(remote)
        s = stage_comment(_analyzed(), "a.py", 1, "local").value

        listing = list_comments(s, client).value

        assert listing.remote == remote
        assert [c.body for c in listing.staged] == ["local"]

    def test_no_session(self):
        assert reply_to_comment(None, _client(), 1, "x").reason == NO_SESSION
        assert list_comments(None, _client()).reason == NO_SESSION


# ---------------------------------------------------------------------------
# Submitting
# ---------------------------------------------------------------------------


class TestSubmitReview:
    def _staged(self, mode="normal", n=2):
        s = _analyzed(mode)
        for i in range(n):
            s = stage_comment(s, "a.py", i + 1, f"comment {i}").value
        return s

    def test_posts_staged_then_submits(self):
        client = _client()
        result = submit_review(self._staged(), client, "approve")

        assert result.ok
        assert [c.state for c in result.value.comments] == ["posted", "posted"]
        assert client.post_comment.call_count == 2
        client.submit_review.assert_called_once_with(42, "APPROVE", None)

    def test_skipped_comments_are_not_posted(self):
        client = _client()
        s = skip_comment(self._staged(), "comment-1").value
        result = submit_review(s, client, "comment", "Thanks")

        assert client.post_comment.call_count == 1
        assert [c.state for c in result.value.comments] == ["skipped", "posted"]
        client.submit_review.assert_called_once_with(42, "COMMENT", "Thanks")

    def test_request_changes_requires_body(self):
        client = _client()
        result = submit_review(self._staged(), client, "request-changes")
        assert not result.ok
        client.post_comment.assert_not_called()

    def test_self_review_only_allows_comment(self):
        client = _client()
        result = submit_review(self._staged("self-review"), client, "approve")
        assert not result.ok
        assert "self-review" in result.reason
        client.submit_review.assert_not_called()

    def test_invalid_event(self):
        assert not submit_review(self._staged(), _client(), "merge").ok

    def test_failed_post_blocks_submission(self):
        client = _client()
        client.post_comment.side_effect = [Result.success(1), Result.failure("Validation Failed")]

        result = submit_review(self._staged(), client, "approve")

        assert not result.ok
        assert [c.state for c in result.value.comments] == ["posted", "staged"]
        client.submit_review.assert_not_called()

    def test_submit_failure_carries_posted_session(self):
        client = _client()
        client.submit_review.return_value = Result.failure("Failed to submit review: Unprocessable")

        result = submit_review(self._staged(), client, "approve")

        assert not result.ok
        assert all(c.state == "posted" for c in result.value.comments)

    def test_post_staged_comments_reports_failures(self):
        client = _client()
        client.post_comment.return_value = Result.failure("boom")
        session, failures = post_staged_comments(self._staged(n=1), client)
        assert failures == ["boom"]
        assert session.comments[0].state == "staged"


class TestAskQuestion:
    def test_context_defaults_to_current_cluster(self):
        s = start_next_cluster(_analyzed()).value
        s = ask_question(s, "Why?", "Because.").value
        assert s.questions[0].context == "cluster-1"

    def test_explicit_context(self):
        s = ask_question(_analyzed(), "Why?", "Because.", "src/a.py").value
        assert s.questions[0].context == "src/a.py"

    def test_empty_question(self):
        assert not ask_question(_analyzed(), "", "x").ok
