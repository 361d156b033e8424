"""Tests for review activity reduction and PR enrichment."""

from __future__ import annotations

from builders import TUESDAY, at
from review_metrics.activity import enrich_pull_request, failed_pull_request, reduce_review_activity
from review_metrics.models import Comment, Commit, FileChange, PullRequest, Review, ReviewState

PR = PullRequest(
    repo="web",
    number=7,
    title="Add search",
    author="alice",
    created_at=at(TUESDAY, 10),
    merged_at=at(TUESDAY, 16),
    url="https://github.com/acme/web/pull/7",
)


def _review(reviewer: str, hour: int, state: str = ReviewState.APPROVED, body: str = "",
            inline_hours: tuple[int, ...] = ()) -> Review:
    return Review(
        reviewer=reviewer,
        state=state,
        submitted_at=at(TUESDAY, hour),
        body=body,
        inline_comments=[Comment(reviewer, at(TUESDAY, h)) for h in inline_hours],
    )


# ── First activity ──────────────────────────────────────────────────────────


def test_inline_comment_precedes_submission() -> None:
    activity = reduce_review_activity("alice", [_review("bob", 14, inline_hours=(11, 13))], [])
    review = activity.reviews[0]
    assert review.first_activity_at == at(TUESDAY, 11)
    assert review.submitted_at == at(TUESDAY, 14)
    assert review.inline_comment_count == 2
    assert activity.first_response_at == at(TUESDAY, 11)


def test_conversation_comment_by_reviewer_counts_as_activity() -> None:
    activity = reduce_review_activity(
        "alice",
        [_review("bob", 15)],
        [Comment("bob", at(TUESDAY, 12)), Comment("bob", at(TUESDAY, 13))],
    )
    review = activity.reviews[0]
    assert review.first_activity_at == at(TUESDAY, 12)
    assert review.conversation_comment_count == 2
    assert review.has_comments is True


def test_first_activity_never_after_submission() -> None:
    activity = reduce_review_activity(
        "alice",
        [_review("bob", 12, inline_hours=(15,)), _review("carol", 11)],
        [Comment("carol", at(TUESDAY, 17))],
    )
    for review in activity.reviews:
        assert review.first_activity_at <= review.submitted_at


# ── First response ──────────────────────────────────────────────────────────


def test_author_activity_is_not_a_response() -> None:
    activity = reduce_review_activity(
        "alice",
        [_review("alice", 11, state=ReviewState.COMMENTED, body="self note"), _review("bob", 14)],
        [Comment("alice", at(TUESDAY, 10, 30))],
    )
    assert activity.first_response_at == at(TUESDAY, 14)


def test_non_reviewer_conversation_comment_is_a_response() -> None:
    activity = reduce_review_activity("alice", [_review("bob", 15)], [Comment("dave", at(TUESDAY, 12))])
    assert activity.first_response_at == at(TUESDAY, 12)
    assert activity.reviews[0].first_activity_at == at(TUESDAY, 15)


def test_no_activity_means_no_response() -> None:
    activity = reduce_review_activity("alice", [], [Comment("alice", at(TUESDAY, 11))])
    assert activity.first_response_at is None
    assert activity.reviews == ()
    assert activity.iteration_count == 0


def test_review_without_submission_time_falls_back() -> None:
    review = Review("bob", ReviewState.COMMENTED, None)
    activity = reduce_review_activity("alice", [review], [])
    assert activity.reviews[0].first_activity_at is None
    assert activity.first_response_at is None


# ── Comments ────────────────────────────────────────────────────────────────


def test_bare_approval_has_no_comments() -> None:
    activity = reduce_review_activity("alice", [_review("bob", 12)], [])
    assert activity.reviews[0].has_comments is False


def test_whitespace_body_is_not_a_comment() -> None:
    activity = reduce_review_activity("alice", [_review("bob", 12, body="  \n ")], [])
    assert activity.reviews[0].has_comments is False


def test_review_body_is_a_comment() -> None:
    activity = reduce_review_activity("alice", [_review("bob", 12, body="LGTM")], [])
    assert activity.reviews[0].has_comments is True
    assert activity.reviews[0].body == "LGTM"


def test_iteration_count_is_number_of_reviews() -> None:
    reviews = [
        _review("bob", 11, state=ReviewState.CHANGES_REQUESTED, body="fix"),
        _review("bob", 13, state=ReviewState.COMMENTED, body="better"),
        _review("bob", 15),
    ]
    assert reduce_review_activity("alice", reviews, []).iteration_count == 3


# ── Enrichment ──────────────────────────────────────────────────────────────


def test_enrich_pull_request() -> None:
    files = [
        FileChange("src/search.ts", 120, 30),
        FileChange("src/search.test.ts", 40, 0),
    ]
    commits = [
        Commit("a", at(TUESDAY, 9), [FileChange("src/search.ts", 100, 0)]),
        Commit("b", at(TUESDAY, 13), [FileChange("src/search.ts", 20, 30), FileChange("src/search.test.ts", 40, 0)]),
    ]
    pr = enrich_pull_request(
        PR, files, [_review("bob", 12, inline_hours=(11,))], [], commits, test_matching="glob"
    )

    assert pr.key == "web#7"
    assert pr.is_valid
    assert (pr.prod_additions, pr.prod_deletions) == (120, 30)
    assert (pr.test_additions, pr.test_deletions) == (40, 0)
    assert pr.size == 190
    assert pr.files_changed == 2
    assert pr.iteration_count == 1
    assert pr.first_response_at == at(TUESDAY, 11)
    assert pr.commit_count == 2
    assert pr.file_churn_count == 1
    assert pr.churn_percentage == 12.5


def test_enrich_without_commits_counts_one_commit() -> None:
    pr = enrich_pull_request(PR, [FileChange("src/a.ts", 1, 1)], [])
    assert pr.commit_count == 1
    assert pr.churn_percentage == 0.0
    assert pr.first_response_at is None


def test_failed_pull_request() -> None:
    pr = failed_pull_request(PR, "boom")
    assert not pr.is_valid
    assert pr.error == "boom"
    assert pr.reviews == ()
    assert pr.iteration_count == 0
    assert pr.to_dict()["error"] == "boom"
