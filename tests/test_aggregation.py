"""Tests for reviewer, author and team aggregation."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from builders import TUESDAY, at, make_pr, make_review
from review_metrics.aggregation import (
    avg_inline_comments,
    largest_prs,
    review_matrix,
    reviewers_by_close_time,
    reviewers_by_prs_reviewed,
    size_distribution,
    summarize,
    summarize_authors,
    summarize_reviewers,
    summarize_team,
)
from review_metrics.models import ReviewState
from review_metrics.stats import median, percentile, round_half_up, weighted_average


def _batch():
    """Three valid PRs plus one error record.

    web#1  alice  close 4h  bob approves (2h, bare), carol requests changes (1h)
    api#2  alice  close 2h  bob comments (4h), bob approves (5h)
    web#3  bob    close 6h  alice approves (3h, bare)
    web#4  carol  error
    """
    return [
        make_pr(
            number=1,
            repo="web",
            author="alice",
            reviews=[
                make_review("bob", first_activity_at=at(TUESDAY, 12), has_comments=False),
                make_review("carol", ReviewState.CHANGES_REQUESTED, at(TUESDAY, 11), inline=2),
            ],
            first_response_at=at(TUESDAY, 11),
            commit_count=3,
            churn_percentage=20.0,
            file_churn_count=2,
        ),
        make_pr(
            number=2,
            repo="api",
            author="alice",
            merged_after=timedelta(hours=2),
            reviews=[
                make_review("bob", ReviewState.COMMENTED, at(TUESDAY, 14), conversation=1),
                make_review("bob", first_activity_at=at(TUESDAY, 15)),
            ],
            first_response_at=at(TUESDAY, 14),
        ),
        make_pr(
            number=3,
            repo="web",
            author="bob",
            merged_after=timedelta(hours=6),
            reviews=[make_review("alice", first_activity_at=at(TUESDAY, 13), has_comments=False)],
            first_response_at=at(TUESDAY, 13),
        ),
        make_pr(
            number=4,
            repo="web",
            author="carol",
            reviews=[make_review("bob", first_activity_at=at(TUESDAY, 11))],
            error="HTTP 502",
        ),
    ]


# ── Stats helpers ───────────────────────────────────────────────────────────


def test_median_is_upper_middle_for_even_samples() -> None:
    assert median([4, 1, 3, 2]) == 3
    assert median([5]) == 5
    assert median([]) is None


def test_percentile_nearest_rank() -> None:
    values = list(range(1, 11))
    assert percentile(values, 0.9) == 10
    assert percentile([1, 2, 3], 0.9) == 3


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666, 1) == 66.7
    assert round_half_up(0.125, 2) == 0.13


def test_weighted_average() -> None:
    items = [{"v": 10, "w": 1}, {"v": 40, "w": 2}, {"v": None, "w": 1}]
    assert weighted_average(items, "v", "w") == pytest.approx(22.5)


def test_weighted_average_zero_weight() -> None:
    assert weighted_average([{"v": 10, "w": 0}], "v", "w") == 0
    assert weighted_average([], "v", "w") == 0


# ── Reviewers ───────────────────────────────────────────────────────────────


def test_reviewers_sorted_by_total_reviews() -> None:
    reviewers = summarize_reviewers(_batch())
    assert [r.reviewer for r in reviewers] == ["bob", "carol", "alice"]


def test_reviewer_counts() -> None:
    bob = summarize_reviewers(_batch())[0]
    assert bob.total_reviews == 3
    assert bob.prs_reviewed_count == 2
    assert bob.approvals == 2
    assert bob.comment_only_reviews == 1
    assert bob.changes_requested == 0
    assert bob.no_comment_approvals == 1
    assert bob.no_comment_approval_pct == 50.0
    assert bob.total_conversation_comments == 1
    assert bob.counts_by_repo == {"web": 1, "api": 1}


def test_reviewer_response_times() -> None:
    bob = summarize_reviewers(_batch())[0]
    # samples 2h, 4h, 5h
    assert bob.median_response_hours == 4.0
    assert bob.p90_response_hours == 5.0
    assert bob.fastest_response_hours == 2.0


def test_reviewer_pr_samples_counted_once_per_pr() -> None:
    bob = summarize_reviewers(_batch())[0]
    assert bob.avg_pr_size_reviewed == 110
    assert bob.avg_pr_prod_lines_reviewed == 100
    assert bob.avg_pr_test_lines_reviewed == 10
    assert bob.avg_iterations_per_pr == 2.0
    assert bob.prs_with_multiple_rounds == 2
    assert bob.avg_reviewed_pr_close_time == 3.0


def test_reviewer_without_approvals_has_zero_pct() -> None:
    carol = summarize_reviewers(_batch())[1]
    assert carol.approvals == 0
    assert carol.no_comment_approval_pct == 0.0
    assert carol.total_inline_comments == 2
    assert carol.median_response_hours == 1.0


def test_error_records_are_skipped() -> None:
    batch = _batch()
    reviewers = summarize_reviewers(batch)
    authors = summarize_authors(batch)
    assert "carol" not in [a.author for a in authors]
    assert sum(r.total_reviews for r in reviewers) == 5


# ── Authors ─────────────────────────────────────────────────────────────────


def test_author_summary() -> None:
    alice, bob = summarize_authors(_batch())
    assert alice.author == "alice"
    assert alice.prs_authored == 2
    assert alice.avg_size == 110
    assert alice.avg_review_time == 2.5
    assert alice.avg_close_time == 3.0
    assert alice.avg_review_count == 2.0
    assert alice.avg_commits == 2.0
    assert alice.avg_churn_pct == 10.0
    assert alice.avg_file_churn == 1.0
    assert alice.counts_by_repo == {"web": 1, "api": 1}
    assert bob.prs_authored == 1
    assert bob.avg_close_time == 6.0


def test_author_without_response_has_no_review_time() -> None:
    (summary,) = summarize_authors([make_pr()])
    assert summary.avg_review_time is None
    assert summary.avg_review_count == 0


# ── Team ────────────────────────────────────────────────────────────────────


def test_team_authored() -> None:
    authored = summarize(_batch()).team.authored
    assert authored.total_prs == 3
    assert authored.total_developers == 2
    assert authored.avg_pr_size == 110
    assert authored.avg_close_time == 4.0
    assert authored.avg_iterations == 1.67
    assert authored.avg_churn_pct == 6.7
    assert authored.avg_file_churn == 0.7
    assert authored.avg_commits_per_pr == 1.67


def test_team_reviewed() -> None:
    reviewed = summarize(_batch()).team.reviewed
    assert reviewed.total_reviews == 5
    assert reviewed.total_reviewers == 3
    assert reviewed.avg_pr_size_reviewed == 110
    # first responses 1h, 4h, 3h
    assert reviewed.median_response_time == 3.0
    assert reviewed.overall_no_comment_pct == 66.7
    assert reviewed.avg_inline_comments == 0.4
    assert reviewed.avg_iterations_per_pr == 1.67


def test_team_derives_summaries_when_missing() -> None:
    batch = _batch()
    assert summarize_team(batch) == summarize(batch).team


def test_team_reviewed_sizes_weighted_by_prs() -> None:
    prs = [
        make_pr(number=1, prod=(100, 0), test=(0, 0), reviews=[make_review("bob")]),
        make_pr(number=2, prod=(300, 0), test=(0, 0), reviews=[make_review("bob")]),
        make_pr(number=3, prod=(1000, 0), test=(0, 0), reviews=[make_review("carol")]),
    ]
    # bob averages 200 over 2 PRs, carol 1000 over 1
    assert summarize(prs).team.reviewed.avg_pr_size_reviewed == 467


def test_empty_batch() -> None:
    result = summarize([])
    assert result.reviewers == []
    assert result.authors == []
    assert result.team.authored.total_prs == 0
    assert result.team.authored.avg_close_time is None
    assert result.team.reviewed.median_response_time is None
    assert result.team.reviewed.avg_inline_comments == 0.0


# ── Review matrix ───────────────────────────────────────────────────────────


def test_review_matrix() -> None:
    assert review_matrix(_batch()) == {
        "bob": {"alice": 3},
        "carol": {"alice": 1},
        "alice": {"bob": 1},
    }


# ── Complexity ──────────────────────────────────────────────────────────────


def _sized(number: int, size: int, **kwargs):
    return make_pr(number=number, prod=(size, 0), test=(0, 0), **kwargs)


def test_size_distribution_bucket_bounds() -> None:
    prs = [_sized(n, size) for n, size in enumerate([50, 100, 101, 450, 1000, 1500], start=1)]
    assert size_distribution(prs) == [
        ("0-100", 2),
        ("101-300", 1),
        ("301-500", 1),
        ("501-1000", 1),
        ("1000+", 1),
    ]


def test_size_distribution_skips_error_records() -> None:
    prs = [_sized(1, 10), _sized(2, 2000, error="Not Found")]
    counts = dict(size_distribution(prs))
    assert counts["0-100"] == 1
    assert counts["1000+"] == 0


def test_size_distribution_empty_keeps_every_bucket() -> None:
    assert [label for label, _ in size_distribution([])] == ["0-100", "101-300", "301-500", "501-1000", "1000+"]
    assert all(count == 0 for _, count in size_distribution([]))


def test_largest_prs_biggest_first() -> None:
    prs = [_sized(1, 30), _sized(2, 900), _sized(3, 5000, error="boom"), _sized(4, 120)]
    assert [pr.number for pr in largest_prs(prs)] == [2, 4, 1]
    assert [pr.number for pr in largest_prs(prs, limit=2)] == [2, 4]


def test_largest_prs_default_limit() -> None:
    prs = [_sized(n, n * 10) for n in range(1, 26)]
    top = largest_prs(prs)
    assert len(top) == 20
    assert top[0].number == 25
    assert top[-1].number == 6


# ── Reviewer activity ───────────────────────────────────────────────────────


def test_reviewers_by_prs_reviewed() -> None:
    reviewers = summarize(_batch()).reviewers
    ordered = reviewers_by_prs_reviewed(reversed(reviewers))
    assert [r.reviewer for r in ordered][0] == "bob"
    counts = [r.prs_reviewed_count for r in ordered]
    assert counts == sorted(counts, reverse=True)


def test_reviewers_by_close_time_drops_unknown() -> None:
    prs = [
        make_pr(number=1, merged_after=timedelta(hours=2), reviews=[make_review("bob")]),
        make_pr(number=2, merged_after=timedelta(hours=6), reviews=[make_review("carol")]),
    ]
    reviewers = summarize(prs).reviewers
    reviewers.append(replace(reviewers[0], reviewer="dave", avg_reviewed_pr_close_time=None))
    ordered = reviewers_by_close_time(reviewers)
    assert [r.reviewer for r in ordered] == ["carol", "bob"]
    assert [r.avg_reviewed_pr_close_time for r in ordered] == [6.0, 2.0]


def test_avg_inline_comments_ties_round_up() -> None:
    prs = [
        make_pr(number=n, reviews=[make_review("bob", inline=1 if n == 1 else 0)])
        for n in range(1, 9)
    ]
    bob = summarize(prs).reviewers[0]
    assert (bob.total_inline_comments, bob.total_reviews) == (1, 8)
    # 1 / 8 = 0.125
    assert avg_inline_comments(bob) == 0.13


def test_avg_inline_comments_without_reviews() -> None:
    bob = summarize([make_pr(reviews=[make_review("bob")])]).reviewers[0]
    assert avg_inline_comments(replace(bob, total_reviews=0)) == 0.0
