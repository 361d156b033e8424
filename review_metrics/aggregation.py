"""Reviewer, author and team aggregation over enriched PRs.

Every function here is a pure fold over a batch of ``EnrichedPullRequest``
records.  Records carrying ``error`` are skipped everywhere.  The same
functions back the collector's report and the dashboard's filtered views,
so a number shown in the dashboard always matches the one in the report for
the same set of PRs.

Timing metrics are working hours (see ``working_hours``):

* reviewer response time: PR ``created_at`` to the review's first activity
* author time to first response: ``created_at`` to ``first_response_at``
* close time: ``created_at`` to ``merged_at``
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from review_metrics.config import LARGEST_PRS_LIMIT, SIZE_BUCKETS
from review_metrics.models import (
    AuthoredTeamStats,
    AuthorSummary,
    EnrichedPullRequest,
    ReviewedTeamStats,
    ReviewerSummary,
    ReviewState,
    TeamSummary,
)
from review_metrics.stats import mean, median, percentile, round_half_up, round_int, weighted_average
from review_metrics.working_hours import working_hours

logger = logging.getLogger(__name__)


def valid_prs(prs: Iterable[EnrichedPullRequest]) -> list[EnrichedPullRequest]:
    """Drop records that failed to fetch."""
    return [pr for pr in prs if pr.is_valid]


def close_hours(pr: EnrichedPullRequest) -> float:
    return working_hours(pr.created_at, pr.merged_at)


def _round2(value: float | None) -> float | None:
    return None if value is None else round_half_up(value, 2)


# ── Reviewer aggregation ────────────────────────────────────────────────────

@dataclass
class ReviewerAccumulator:
    """Running state for one reviewer while folding a batch."""

    reviewer: str
    total_reviews: int = 0
    approvals: int = 0
    changes_requested: int = 0
    comment_only_reviews: int = 0
    no_comment_approvals: int = 0
    total_inline_comments: int = 0
    total_conversation_comments: int = 0
    response_times: list[float] = field(default_factory=list)
    pr_sizes: list[int] = field(default_factory=list)
    prod_lines: list[int] = field(default_factory=list)
    test_lines: list[int] = field(default_factory=list)
    iterations: list[int] = field(default_factory=list)
    close_times: list[float] = field(default_factory=list)
    prs_reviewed: set[str] = field(default_factory=set)
    counts_by_repo: dict[str, int] = field(default_factory=dict)

    def add_pr(self, pr: EnrichedPullRequest) -> None:
        """Record PR-level samples, once per PR however many reviews."""
        if pr.key in self.prs_reviewed:
            return
        self.prs_reviewed.add(pr.key)
        self.pr_sizes.append(pr.size)
        self.prod_lines.append(pr.prod_lines)
        self.test_lines.append(pr.test_lines)
        self.iterations.append(pr.iteration_count)
        self.close_times.append(close_hours(pr))
        self.counts_by_repo[pr.repo] = self.counts_by_repo.get(pr.repo, 0) + 1

    def finalize(self) -> ReviewerSummary:
        no_comment_pct = (
            round_half_up(self.no_comment_approvals / self.approvals * 100, 1)
            if self.approvals > 0
            else 0.0
        )
        fastest = min(self.response_times) if self.response_times else None
        return ReviewerSummary(
            reviewer=self.reviewer,
            total_reviews=self.total_reviews,
            prs_reviewed_count=len(self.prs_reviewed),
            approvals=self.approvals,
            changes_requested=self.changes_requested,
            comment_only_reviews=self.comment_only_reviews,
            no_comment_approvals=self.no_comment_approvals,
            no_comment_approval_pct=no_comment_pct,
            total_inline_comments=self.total_inline_comments,
            total_conversation_comments=self.total_conversation_comments,
            median_response_hours=_round2(median(self.response_times)),
            p90_response_hours=_round2(percentile(self.response_times, 0.9)),
            fastest_response_hours=_round2(fastest),
            avg_pr_size_reviewed=round_int(mean(self.pr_sizes)),
            avg_pr_prod_lines_reviewed=round_int(mean(self.prod_lines)),
            avg_pr_test_lines_reviewed=round_int(mean(self.test_lines)),
            avg_iterations_per_pr=round_half_up(mean(self.iterations), 2),
            avg_reviewed_pr_close_time=(
                round_half_up(mean(self.close_times), 2) if self.close_times else None
            ),
            prs_with_multiple_rounds=sum(1 for i in self.iterations if i > 1),
            counts_by_repo=dict(self.counts_by_repo),
        )


def summarize_reviewers(prs: Iterable[EnrichedPullRequest]) -> list[ReviewerSummary]:
    """One summary per distinct reviewer, most reviews first."""
    accumulators: dict[str, ReviewerAccumulator] = {}

    for pr in valid_prs(prs):
        for review in pr.reviews:
            acc = accumulators.get(review.reviewer)
            if acc is None:
                acc = accumulators[review.reviewer] = ReviewerAccumulator(review.reviewer)

            acc.total_reviews += 1
            if review.state == ReviewState.APPROVED:
                acc.approvals += 1
                if not review.has_comments:
                    acc.no_comment_approvals += 1
            elif review.state == ReviewState.CHANGES_REQUESTED:
                acc.changes_requested += 1
            elif review.state == ReviewState.COMMENTED:
                acc.comment_only_reviews += 1

            acc.total_inline_comments += review.inline_comment_count
            acc.total_conversation_comments += review.conversation_comment_count

            if review.first_activity_at is not None:
                hours = working_hours(pr.created_at, review.first_activity_at)
                if hours >= 0:
                    acc.response_times.append(hours)

            acc.add_pr(pr)

    summaries = [acc.finalize() for acc in accumulators.values()]
    summaries.sort(key=lambda s: s.total_reviews, reverse=True)
    logger.debug("Summarised %d reviewers", len(summaries))
    return summaries


# ── Author aggregation ──────────────────────────────────────────────────────

@dataclass
class AuthorAccumulator:
    """Running state for one PR author while folding a batch."""

    author: str
    prs_authored: int = 0
    pr_sizes: list[int] = field(default_factory=list)
    prod_lines: list[int] = field(default_factory=list)
    test_lines: list[int] = field(default_factory=list)
    review_times: list[float] = field(default_factory=list)
    close_times: list[float] = field(default_factory=list)
    review_counts: list[int] = field(default_factory=list)
    iterations: list[int] = field(default_factory=list)
    commit_counts: list[int] = field(default_factory=list)
    churn_percentages: list[float] = field(default_factory=list)
    file_churn_counts: list[int] = field(default_factory=list)
    counts_by_repo: dict[str, int] = field(default_factory=dict)

    def add_pr(self, pr: EnrichedPullRequest) -> None:
        self.prs_authored += 1
        self.pr_sizes.append(pr.size)
        self.prod_lines.append(pr.prod_lines)
        self.test_lines.append(pr.test_lines)
        self.review_counts.append(len(pr.reviews))
        self.iterations.append(pr.iteration_count)
        self.commit_counts.append(pr.commit_count or 1)
        self.churn_percentages.append(pr.churn_percentage or 0.0)
        self.file_churn_counts.append(pr.file_churn_count or 0)

        if pr.first_response_at is not None:
            hours = working_hours(pr.created_at, pr.first_response_at)
            if hours >= 0:
                self.review_times.append(hours)

        self.close_times.append(close_hours(pr))
        self.counts_by_repo[pr.repo] = self.counts_by_repo.get(pr.repo, 0) + 1

    def finalize(self) -> AuthorSummary:
        return AuthorSummary(
            author=self.author,
            prs_authored=self.prs_authored,
            avg_size=round_int(mean(self.pr_sizes)),
            avg_prod_lines=round_int(mean(self.prod_lines)),
            avg_test_lines=round_int(mean(self.test_lines)),
            avg_review_time=(
                round_half_up(mean(self.review_times), 2) if self.review_times else None
            ),
            avg_close_time=round_half_up(mean(self.close_times), 2),
            avg_review_count=round_half_up(mean(self.review_counts), 2),
            avg_iterations=round_half_up(mean(self.iterations), 2),
            avg_commits=round_half_up(mean(self.commit_counts), 2),
            avg_churn_pct=round_half_up(mean(self.churn_percentages), 1),
            avg_file_churn=round_half_up(mean(self.file_churn_counts), 1),
            counts_by_repo=dict(self.counts_by_repo),
        )


def summarize_authors(prs: Iterable[EnrichedPullRequest]) -> list[AuthorSummary]:
    """One summary per PR author, most PRs first."""
    accumulators: dict[str, AuthorAccumulator] = {}

    for pr in valid_prs(prs):
        acc = accumulators.get(pr.author)
        if acc is None:
            acc = accumulators[pr.author] = AuthorAccumulator(pr.author)
        acc.add_pr(pr)

    summaries = [acc.finalize() for acc in accumulators.values()]
    summaries.sort(key=lambda s: s.prs_authored, reverse=True)
    logger.debug("Summarised %d authors", len(summaries))
    return summaries


# ── Team aggregation ────────────────────────────────────────────────────────

def summarize_team(
    prs: Iterable[EnrichedPullRequest],
    reviewers: Sequence[ReviewerSummary] | None = None,
    authors: Sequence[AuthorSummary] | None = None,
) -> TeamSummary:
    """Team-wide totals and averages.

    ``authored`` averages PRs directly, so authors with few PRs carry no
    extra weight.  The reviewed size figures are reviewer averages weighted
    by each reviewer's PR count.  Reviewer and author summaries are derived
    from *prs* when not supplied.
    """
    prs = valid_prs(prs)
    if reviewers is None:
        reviewers = summarize_reviewers(prs)
    if authors is None:
        authors = summarize_authors(prs)

    iterations = [pr.iteration_count for pr in prs]
    closes = [h for h in (close_hours(pr) for pr in prs) if h > 0]
    response_times = [
        h
        for h in (
            working_hours(pr.created_at, pr.first_response_at)
            for pr in prs
            if pr.first_response_at is not None
        )
        if h > 0
    ]

    total_reviews = 0
    total_approvals = 0
    total_no_comment = 0
    total_inline = 0
    for pr in prs:
        for review in pr.reviews:
            total_reviews += 1
            total_inline += review.inline_comment_count
            if review.state == ReviewState.APPROVED:
                total_approvals += 1
                if not review.has_comments:
                    total_no_comment += 1

    authored = AuthoredTeamStats(
        total_prs=len(prs),
        total_developers=len(authors),
        avg_pr_size=round_int(mean([pr.size for pr in prs])),
        avg_prod_lines=round_int(mean([pr.prod_lines for pr in prs])),
        avg_test_lines=round_int(mean([pr.test_lines for pr in prs])),
        avg_close_time=round_half_up(mean(closes), 2) if closes else None,
        avg_iterations=round_half_up(mean(iterations), 2),
        avg_churn_pct=round_half_up(mean([pr.churn_percentage for pr in prs]), 1),
        avg_file_churn=round_half_up(mean([pr.file_churn_count for pr in prs]), 1),
        avg_commits_per_pr=round_half_up(mean([pr.commit_count or 1 for pr in prs]), 2),
    )
    reviewed = ReviewedTeamStats(
        total_reviews=total_reviews,
        total_reviewers=len(reviewers),
        avg_pr_size_reviewed=round_int(
            weighted_average(reviewers, "avg_pr_size_reviewed", "prs_reviewed_count")
        ),
        avg_prod_lines_reviewed=round_int(
            weighted_average(reviewers, "avg_pr_prod_lines_reviewed", "prs_reviewed_count")
        ),
        avg_test_lines_reviewed=round_int(
            weighted_average(reviewers, "avg_pr_test_lines_reviewed", "prs_reviewed_count")
        ),
        median_response_time=_round2(median(response_times)),
        overall_no_comment_pct=(
            round_half_up(total_no_comment / total_approvals * 100, 1) if total_approvals > 0 else 0.0
        ),
        avg_inline_comments=(
            round_half_up(total_inline / total_reviews, 2) if total_reviews > 0 else 0.0
        ),
        avg_iterations_per_pr=round_half_up(mean(iterations), 2),
    )
    return TeamSummary(authored=authored, reviewed=reviewed)


@dataclass
class Summaries:
    reviewers: list[ReviewerSummary]
    authors: list[AuthorSummary]
    team: TeamSummary


def summarize(prs: Iterable[EnrichedPullRequest]) -> Summaries:
    """Reviewer, author and team summaries for one batch."""
    prs = list(prs)
    reviewers = summarize_reviewers(prs)
    authors = summarize_authors(prs)
    return Summaries(reviewers, authors, summarize_team(prs, reviewers, authors))


def review_matrix(prs: Iterable[EnrichedPullRequest]) -> dict[str, dict[str, int]]:
    """``matrix[reviewer][author]`` = reviews submitted by reviewer on author's PRs."""
    matrix: dict[str, dict[str, int]] = defaultdict(dict)
    for pr in valid_prs(prs):
        for review in pr.reviews:
            row = matrix[review.reviewer]
            row[pr.author] = row.get(pr.author, 0) + 1
    return dict(matrix)


# ── Complexity ──────────────────────────────────────────────────────────────

def size_distribution(
    prs: Iterable[EnrichedPullRequest],
    buckets: Sequence[tuple[str, int | None]] = SIZE_BUCKETS,
) -> list[tuple[str, int]]:
    """PR counts per size bucket; a PR lands in the first bucket whose bound covers it."""
    counts = {label: 0 for label, _ in buckets}
    for pr in valid_prs(prs):
        for label, upper in buckets:
            if upper is None or pr.size <= upper:
                counts[label] += 1
                break
    return list(counts.items())


def largest_prs(
    prs: Iterable[EnrichedPullRequest],
    limit: int = LARGEST_PRS_LIMIT,
) -> list[EnrichedPullRequest]:
    """The *limit* biggest PRs by total lines changed, biggest first."""
    return sorted(valid_prs(prs), key=lambda pr: pr.size, reverse=True)[:limit]


# ── Reviewer activity ───────────────────────────────────────────────────────

def reviewers_by_prs_reviewed(reviewers: Iterable[ReviewerSummary]) -> list[ReviewerSummary]:
    """Busiest reviewers first."""
    return sorted(reviewers, key=lambda r: r.prs_reviewed_count, reverse=True)


def reviewers_by_close_time(reviewers: Iterable[ReviewerSummary]) -> list[ReviewerSummary]:
    """Reviewers with a known reviewed-PR close time, slowest first."""
    known = [r for r in reviewers if r.avg_reviewed_pr_close_time is not None]
    return sorted(known, key=lambda r: r.avg_reviewed_pr_close_time, reverse=True)


def avg_inline_comments(reviewer: ReviewerSummary) -> float:
    """Inline comments per review submission, 2 decimals."""
    if not reviewer.total_reviews:
        return 0.0
    return round_half_up(reviewer.total_inline_comments / reviewer.total_reviews, 2)
