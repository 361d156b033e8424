"""Headline figures for the dashboard's summary cards."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from review_metrics.aggregation import close_hours, valid_prs
from review_metrics.config import MIN_PRS_FOR_HIGHLIGHT, MIN_REVIEWS_FOR_HIGHLIGHT
from review_metrics.models import AuthorSummary, EnrichedPullRequest, ReviewerSummary, TeamSummary
from review_metrics.quality import quality_inputs, quality_score
from review_metrics.stats import mean, median, round_half_up
from review_metrics.working_hours import working_hours


@dataclass(frozen=True)
class Highlight:
    name: str
    value: float


def most_active_developer(
    authors: Sequence[AuthorSummary],
    reviewers: Sequence[ReviewerSummary],
) -> Highlight | None:
    """Developer with the most PRs authored plus reviews submitted."""
    activity: dict[str, int] = defaultdict(int)
    for author in authors:
        activity[author.author] += author.prs_authored
    for reviewer in reviewers:
        activity[reviewer.reviewer] += reviewer.total_reviews

    best: Highlight | None = None
    for name, count in activity.items():
        if count > 0 and (best is None or count > best.value):
            best = Highlight(name, count)
    return best


def fastest_velocity(prs: Iterable[EnrichedPullRequest]) -> Highlight | None:
    """Author with the lowest average working hours to merge."""
    closes: dict[str, list[float]] = defaultdict(list)
    for pr in valid_prs(prs):
        hours = close_hours(pr)
        if hours > 0:
            closes[pr.author].append(hours)

    best: Highlight | None = None
    for author, hours in closes.items():
        if len(hours) < MIN_PRS_FOR_HIGHLIGHT:
            continue
        avg = mean(hours)
        if best is None or avg < best.value:
            best = Highlight(author, avg)
    return best


def most_responsive_reviewer(prs: Iterable[EnrichedPullRequest]) -> Highlight | None:
    """Reviewer with the lowest median working hours to first activity."""
    responses: dict[str, list[float]] = defaultdict(list)
    for pr in valid_prs(prs):
        for review in pr.reviews:
            if review.first_activity_at is not None:
                responses[review.reviewer].append(
                    working_hours(pr.created_at, review.first_activity_at)
                )

    best: Highlight | None = None
    for reviewer, times in responses.items():
        if len(times) < MIN_REVIEWS_FOR_HIGHLIGHT:
            continue
        med = median(times)
        if best is None or med < best.value:
            best = Highlight(reviewer, med)
    return best


def average_churn_rate(prs: Iterable[EnrichedPullRequest]) -> float:
    prs = valid_prs(prs)
    if not prs:
        return 0.0
    return round_half_up(mean([pr.churn_percentage for pr in prs]), 1)


def top_quality_developer(
    prs: Iterable[EnrichedPullRequest],
    team: TeamSummary | None = None,
) -> Highlight | None:
    """Author with the highest quality score among those with enough PRs."""
    baseline = team.authored if team is not None else None
    best: Highlight | None = None
    for author, (count, dev) in quality_inputs(prs).items():
        if count < MIN_PRS_FOR_HIGHLIGHT:
            continue
        score = quality_score(dev, baseline)
        if best is None or score > best.value:
            best = Highlight(author, score)
    return best
