"""Per-PR review activity and enrichment.

Reviews, their inline comments and the PR's conversation comments are folded
into one ``first_activity_at`` per review and one ``first_response_at`` per
PR.  Response time is measured to the first activity of anyone other than
the PR author; a comment posted before the formal review submission counts.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from review_metrics.churn import compute_churn
from review_metrics.classify import classify_file_changes
from review_metrics.models import (
    Comment,
    Commit,
    EnrichedPullRequest,
    EnrichedReview,
    FileChange,
    PullRequest,
    Review,
)


@dataclass(frozen=True)
class ReviewActivity:
    reviews: tuple[EnrichedReview, ...]
    first_response_at: datetime | None
    iteration_count: int


def _earliest(timestamps: Iterable[datetime | None]) -> datetime | None:
    """Earliest timestamp; the first one listed wins on an exact tie."""
    earliest: datetime | None = None
    for ts in timestamps:
        if ts is None:
            continue
        if earliest is None or ts.timestamp() < earliest.timestamp():
            earliest = ts
    return earliest


def reduce_review_activity(
    author: str,
    reviews: Sequence[Review],
    conversation_comments: Sequence[Comment],
) -> ReviewActivity:
    """Enrich *reviews* and find the PR's first non-author response."""
    conversation_by_user: dict[str, list[datetime]] = defaultdict(list)
    for comment in conversation_comments:
        if comment.author and comment.created_at is not None:
            conversation_by_user[comment.author].append(comment.created_at)

    response_timestamps: list[datetime] = []
    for user, timestamps in conversation_by_user.items():
        if user != author:
            response_timestamps.extend(timestamps)

    enriched: list[EnrichedReview] = []
    for review in reviews:
        conversation = conversation_by_user.get(review.reviewer, [])
        activity = [review.submitted_at]
        activity.extend(c.created_at for c in review.inline_comments)
        activity.extend(conversation)
        activity = [ts for ts in activity if ts is not None]

        if review.reviewer != author:
            response_timestamps.extend(activity)

        has_comments = (
            bool(review.body and review.body.strip())
            or bool(review.inline_comments)
            or bool(conversation)
        )
        enriched.append(EnrichedReview(
            reviewer=review.reviewer,
            state=review.state,
            submitted_at=review.submitted_at,
            first_activity_at=_earliest(activity) or review.submitted_at,
            has_comments=has_comments,
            inline_comment_count=len(review.inline_comments),
            conversation_comment_count=len(conversation),
            body=review.body or "",
        ))

    return ReviewActivity(
        reviews=tuple(enriched),
        first_response_at=_earliest(response_timestamps),
        iteration_count=len(enriched),
    )


def enrich_pull_request(
    pr: PullRequest,
    files: Sequence[FileChange],
    reviews: Sequence[Review],
    conversation_comments: Sequence[Comment] = (),
    commits: Sequence[Commit] = (),
    test_patterns: Iterable[str] | None = None,
    test_matching: str | None = None,
) -> EnrichedPullRequest:
    """Build the enriched record for one PR from its raw parts."""
    file_metrics = classify_file_changes(files, test_patterns, test_matching)
    activity = reduce_review_activity(pr.author, reviews, conversation_comments)
    churn = compute_churn(commits)

    return EnrichedPullRequest(
        repo=pr.repo,
        number=pr.number,
        title=pr.title,
        author=pr.author,
        created_at=pr.created_at,
        merged_at=pr.merged_at,
        url=pr.url,
        total_additions=file_metrics.total_additions,
        total_deletions=file_metrics.total_deletions,
        prod_additions=file_metrics.prod_additions,
        prod_deletions=file_metrics.prod_deletions,
        test_additions=file_metrics.test_additions,
        test_deletions=file_metrics.test_deletions,
        files_changed=file_metrics.files_changed,
        test_files_changed=file_metrics.test_files_changed,
        prod_files_changed=file_metrics.prod_files_changed,
        iteration_count=activity.iteration_count,
        reviews=activity.reviews,
        first_response_at=activity.first_response_at,
        commit_count=len(commits) or 1,
        churn_percentage=churn.churn_percentage,
        file_churn_count=churn.file_churn_count,
    )


def failed_pull_request(pr: PullRequest, message: str) -> EnrichedPullRequest:
    """Placeholder for a PR whose details could not be fetched."""
    return EnrichedPullRequest(
        repo=pr.repo,
        number=pr.number,
        title=pr.title,
        author=pr.author,
        created_at=pr.created_at,
        merged_at=pr.merged_at,
        url=pr.url,
        error=message,
    )
