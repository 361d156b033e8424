"""Domain models for the PR review metrics pipeline.

Raw records (``PullRequest``, ``Review``, ``Comment``, ``Commit``,
``FileChange``) are produced by the collector.  ``EnrichedPullRequest`` is
built once per PR from them and never mutated; every summary is derived
from a batch of enriched PRs.

``to_dict`` methods emit the camelCase JSON contract consumed by the
dashboard; ``from_dict`` reloads enriched PRs from a saved report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from review_metrics.config import REPORT_TIMEZONE


class ReviewState:
    """GitHub review states."""

    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"


# ── Timestamps ──────────────────────────────────────────────────────────────

def parse_timestamp(value: str | None, tz: str | None = REPORT_TIMEZONE) -> datetime | None:
    """Parse an ISO-8601 timestamp into the reporting timezone.

    ``tz`` is an IANA zone name; ``None`` converts to the local system
    timezone.  Values without an offset are taken as UTC, which is what the
    GitHub API returns.
    """
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(ZoneInfo(tz)) if tz else dt.astimezone()


def format_timestamp(value: datetime | None) -> str | None:
    """Format as a UTC ``YYYY-MM-DDTHH:MM:SSZ`` string."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ── Raw records ─────────────────────────────────────────────────────────────

@dataclass
class FileChange:
    """A single file touched by a PR or by one commit."""

    filename: str
    additions: int = 0
    deletions: int = 0
    status: str = "modified"

    @property
    def lines(self) -> int:
        return self.additions + self.deletions


@dataclass
class Commit:
    """One commit of a PR with its per-file changes."""

    sha: str
    date: datetime | None
    files: list[FileChange] = field(default_factory=list)


@dataclass
class Comment:
    """An inline (code) comment or a conversation comment."""

    author: str
    created_at: datetime | None


@dataclass
class Review:
    """A review submission, with the inline comments attached to it."""

    reviewer: str
    state: str
    submitted_at: datetime | None
    body: str = ""
    inline_comments: list[Comment] = field(default_factory=list)


@dataclass(frozen=True)
class PullRequest:
    """A merged pull request as listed by the collector."""

    repo: str
    number: int
    title: str
    author: str
    created_at: datetime
    merged_at: datetime | None
    url: str = ""

    @property
    def key(self) -> str:
        return f"{self.repo}#{self.number}"


# ── Per-PR derived metrics ──────────────────────────────────────────────────

@dataclass
class FileMetrics:
    """Line and file counts split into production and test buckets."""

    total_additions: int = 0
    total_deletions: int = 0
    prod_additions: int = 0
    prod_deletions: int = 0
    test_additions: int = 0
    test_deletions: int = 0
    files_changed: int = 0
    test_files_changed: int = 0
    prod_files_changed: int = 0


@dataclass(frozen=True)
class ChurnMetrics:
    churn_percentage: float = 0.0
    file_churn_count: int = 0


@dataclass(frozen=True)
class EnrichedReview:
    """A review plus the reviewer's activity on the PR."""

    reviewer: str
    state: str
    submitted_at: datetime | None
    first_activity_at: datetime | None
    has_comments: bool
    inline_comment_count: int = 0
    conversation_comment_count: int = 0
    body: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewer": self.reviewer,
            "state": self.state,
            "submittedAt": format_timestamp(self.submitted_at),
            "firstActivityAt": format_timestamp(self.first_activity_at),
            "hasComments": self.has_comments,
            "inlineCommentCount": self.inline_comment_count,
            "conversationCommentCount": self.conversation_comment_count,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], tz: str | None = REPORT_TIMEZONE) -> EnrichedReview:
        submitted = parse_timestamp(data.get("submittedAt"), tz)
        return cls(
            reviewer=data["reviewer"],
            state=data.get("state", ""),
            submitted_at=submitted,
            first_activity_at=parse_timestamp(data.get("firstActivityAt"), tz) or submitted,
            has_comments=bool(data.get("hasComments", False)),
            inline_comment_count=data.get("inlineCommentCount", 0),
            conversation_comment_count=data.get("conversationCommentCount") or 0,
            body=data.get("body") or "",
        )


@dataclass(frozen=True)
class EnrichedPullRequest:
    """A PR with file, review and churn metrics folded in.

    A record carrying ``error`` could not be fetched completely; it is kept
    in the report's details but every aggregator skips it.
    """

    repo: str
    number: int
    title: str
    author: str
    created_at: datetime
    merged_at: datetime | None
    url: str = ""
    total_additions: int = 0
    total_deletions: int = 0
    prod_additions: int = 0
    prod_deletions: int = 0
    test_additions: int = 0
    test_deletions: int = 0
    files_changed: int = 0
    test_files_changed: int = 0
    prod_files_changed: int = 0
    iteration_count: int = 0
    reviews: tuple[EnrichedReview, ...] = ()
    first_response_at: datetime | None = None
    commit_count: int = 1
    churn_percentage: float = 0.0
    file_churn_count: int = 0
    error: str | None = None

    @property
    def key(self) -> str:
        return f"{self.repo}#{self.number}"

    @property
    def is_valid(self) -> bool:
        return self.error is None

    @property
    def size(self) -> int:
        return self.total_additions + self.total_deletions

    @property
    def prod_lines(self) -> int:
        return self.prod_additions + self.prod_deletions

    @property
    def test_lines(self) -> int:
        return self.test_additions + self.test_deletions

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "repo": self.repo,
            "number": self.number,
            "title": self.title,
            "author": self.author,
            "createdAt": format_timestamp(self.created_at),
            "mergedAt": format_timestamp(self.merged_at),
            "url": self.url,
        }
        if self.error is not None:
            data["error"] = self.error
            data["iterationCount"] = 0
            data["reviews"] = []
            return data
        data.update({
            "totalAdditions": self.total_additions,
            "totalDeletions": self.total_deletions,
            "prodAdditions": self.prod_additions,
            "prodDeletions": self.prod_deletions,
            "testAdditions": self.test_additions,
            "testDeletions": self.test_deletions,
            "filesChanged": self.files_changed,
            "testFilesChanged": self.test_files_changed,
            "prodFilesChanged": self.prod_files_changed,
            "iterationCount": self.iteration_count,
            "reviews": [r.to_dict() for r in self.reviews],
            "firstResponseAt": format_timestamp(self.first_response_at),
            "commitCount": self.commit_count,
            "churnPercentage": self.churn_percentage,
            "fileChurnCount": self.file_churn_count,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], tz: str | None = REPORT_TIMEZONE) -> EnrichedPullRequest:
        """Rebuild a record from the report JSON.

        Fields missing from older reports fall back to the same defaults the
        collector would have produced.
        """
        return cls(
            repo=data["repo"],
            number=data["number"],
            title=data.get("title", ""),
            author=data["author"],
            created_at=parse_timestamp(data["createdAt"], tz),
            merged_at=parse_timestamp(data.get("mergedAt"), tz),
            url=data.get("url", ""),
            total_additions=data.get("totalAdditions", 0),
            total_deletions=data.get("totalDeletions", 0),
            prod_additions=data.get("prodAdditions", 0),
            prod_deletions=data.get("prodDeletions", 0),
            test_additions=data.get("testAdditions", 0),
            test_deletions=data.get("testDeletions", 0),
            files_changed=data.get("filesChanged", 0),
            test_files_changed=data.get("testFilesChanged", 0),
            prod_files_changed=data.get("prodFilesChanged", 0),
            iteration_count=data.get("iterationCount", 0),
            reviews=tuple(EnrichedReview.from_dict(r, tz) for r in data.get("reviews") or []),
            first_response_at=parse_timestamp(data.get("firstResponseAt"), tz),
            commit_count=data.get("commitCount") or 1,
            churn_percentage=data.get("churnPercentage") or 0.0,
            file_churn_count=data.get("fileChurnCount") or 0,
            error=data.get("error"),
        )


# ── Summaries ───────────────────────────────────────────────────────────────

@dataclass
class ReviewerSummary:
    """Review activity of one reviewer across a batch of PRs."""

    reviewer: str
    total_reviews: int
    prs_reviewed_count: int
    approvals: int
    changes_requested: int
    comment_only_reviews: int
    no_comment_approvals: int
    no_comment_approval_pct: float
    total_inline_comments: int
    total_conversation_comments: int
    median_response_hours: float | None
    p90_response_hours: float | None
    fastest_response_hours: float | None
    avg_pr_size_reviewed: int
    avg_pr_prod_lines_reviewed: int
    avg_pr_test_lines_reviewed: int
    avg_iterations_per_pr: float
    avg_reviewed_pr_close_time: float | None
    prs_with_multiple_rounds: int
    counts_by_repo: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewer": self.reviewer,
            "totalReviews": self.total_reviews,
            "prsReviewedCount": self.prs_reviewed_count,
            "approvals": self.approvals,
            "changesRequested": self.changes_requested,
            "commentOnlyReviews": self.comment_only_reviews,
            "noCommentApprovals": self.no_comment_approvals,
            "noCommentApprovalPct": self.no_comment_approval_pct,
            "totalInlineComments": self.total_inline_comments,
            "totalConversationComments": self.total_conversation_comments,
            "medianResponseHours": self.median_response_hours,
            "p90ResponseHours": self.p90_response_hours,
            "fastestResponseHours": self.fastest_response_hours,
            "avgPrSizeReviewed": self.avg_pr_size_reviewed,
            "avgPrProdLinesReviewed": self.avg_pr_prod_lines_reviewed,
            "avgPrTestLinesReviewed": self.avg_pr_test_lines_reviewed,
            "avgIterationsPerPr": self.avg_iterations_per_pr,
            "avgReviewedPrCloseTime": self.avg_reviewed_pr_close_time,
            "prsWithMultipleRounds": self.prs_with_multiple_rounds,
            "countsByRepo": dict(self.counts_by_repo),
        }


@dataclass
class AuthorSummary:
    """Authoring activity of one developer across a batch of PRs."""

    author: str
    prs_authored: int
    avg_size: int
    avg_prod_lines: int
    avg_test_lines: int
    avg_review_time: float | None
    avg_close_time: float
    avg_review_count: float
    avg_iterations: float
    avg_commits: float
    avg_churn_pct: float
    avg_file_churn: float
    counts_by_repo: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "author": self.author,
            "prsAuthored": self.prs_authored,
            "authoredPrAvgSize": self.avg_size,
            "authoredPrAvgProdLines": self.avg_prod_lines,
            "authoredPrAvgTestLines": self.avg_test_lines,
            "authoredPrAvgReviewTime": self.avg_review_time,
            "authoredPrAvgCloseTime": self.avg_close_time,
            "authoredPrAvgReviewCount": self.avg_review_count,
            "authoredPrAvgIterations": self.avg_iterations,
            "authoredPrAvgCommits": self.avg_commits,
            "authoredPrAvgChurnPct": self.avg_churn_pct,
            "authoredPrAvgFileChurn": self.avg_file_churn,
            "countsByRepo": dict(self.counts_by_repo),
        }


@dataclass
class AuthoredTeamStats:
    total_prs: int = 0
    total_developers: int = 0
    avg_pr_size: int = 0
    avg_prod_lines: int = 0
    avg_test_lines: int = 0
    avg_close_time: float | None = None
    avg_iterations: float = 0.0
    avg_churn_pct: float = 0.0
    avg_file_churn: float = 0.0
    avg_commits_per_pr: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalPRs": self.total_prs,
            "totalDevelopers": self.total_developers,
            "avgPrSize": self.avg_pr_size,
            "avgProdLines": self.avg_prod_lines,
            "avgTestLines": self.avg_test_lines,
            "avgCloseTime": self.avg_close_time,
            "avgIterations": self.avg_iterations,
            "avgChurnPct": self.avg_churn_pct,
            "avgFileChurn": self.avg_file_churn,
            "avgCommitsPerPr": self.avg_commits_per_pr,
        }


@dataclass
class ReviewedTeamStats:
    total_reviews: int = 0
    total_reviewers: int = 0
    avg_pr_size_reviewed: int = 0
    avg_prod_lines_reviewed: int = 0
    avg_test_lines_reviewed: int = 0
    median_response_time: float | None = None
    overall_no_comment_pct: float = 0.0
    avg_inline_comments: float = 0.0
    avg_iterations_per_pr: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalReviews": self.total_reviews,
            "totalReviewers": self.total_reviewers,
            "avgPrSizeReviewed": self.avg_pr_size_reviewed,
            "avgProdLinesReviewed": self.avg_prod_lines_reviewed,
            "avgTestLinesReviewed": self.avg_test_lines_reviewed,
            "medianResponseTime": self.median_response_time,
            "overallNoCommentPct": self.overall_no_comment_pct,
            "avgInlineComments": self.avg_inline_comments,
            "avgIterationsPerPr": self.avg_iterations_per_pr,
        }


@dataclass
class TeamSummary:
    authored: AuthoredTeamStats = field(default_factory=AuthoredTeamStats)
    reviewed: ReviewedTeamStats = field(default_factory=ReviewedTeamStats)

    def to_dict(self) -> dict[str, Any]:
        return {"authored": self.authored.to_dict(), "reviewed": self.reviewed.to_dict()}


@dataclass
class QualityInput:
    """Per-developer averages fed to the quality score."""

    avg_src_size: float
    avg_src_files: float
    avg_iterations: float
    avg_working_hours_to_close: float | None
    churn_pct: float
