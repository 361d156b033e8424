"""Developer quality score.

    Score = 0.35 * Size + 0.30 * CloseTime + 0.20 * Iterations + 0.15 * Churn

Each sub-score is linear between a "good" and a "bad" threshold and clamped
to [0, 100]:

    Size        avg of source lines (100 → 400) and source files (4 → 10)
    CloseTime   working hours to merge (2 → 8), 50 when unknown
    Iterations  average review rounds (1 → 4)
    Churn       rework percentage (0 → 50)

Size uses production (non-test) lines and files only, so adding tests never
lowers a score.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from review_metrics.aggregation import close_hours, valid_prs
from review_metrics.config import (
    CHURN_PCT_BAD,
    CLOSE_HOURS_BAD,
    CLOSE_HOURS_GOOD,
    ITERATIONS_BAD,
    ITERATIONS_GOOD,
    NEUTRAL_SUB_SCORE,
    QUALITY_CHURN_WEIGHT,
    QUALITY_CLOSE_TIME_WEIGHT,
    QUALITY_ITERATION_WEIGHT,
    QUALITY_SIZE_WEIGHT,
    SRC_FILES_BAD,
    SRC_FILES_GOOD,
    SRC_LINES_BAD,
    SRC_LINES_GOOD,
)
from review_metrics.models import EnrichedPullRequest, QualityInput
from review_metrics.stats import mean, round_int


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def linear_score(value: float, good: float, bad: float) -> float:
    """100 at or below *good*, 0 at or above *bad*, linear in between."""
    return _clamp(100 * (1 - max(0.0, value - good) / (bad - good)))


def size_score(avg_src_size: float, avg_src_files: float) -> float:
    lines = linear_score(avg_src_size, SRC_LINES_GOOD, SRC_LINES_BAD)
    files = linear_score(avg_src_files, SRC_FILES_GOOD, SRC_FILES_BAD)
    return (lines + files) / 2


def close_time_score(avg_hours: float | None) -> float:
    if avg_hours is None:
        return NEUTRAL_SUB_SCORE
    return linear_score(avg_hours, CLOSE_HOURS_GOOD, CLOSE_HOURS_BAD)


def iteration_score(avg_iterations: float) -> float:
    return linear_score(avg_iterations, ITERATIONS_GOOD, ITERATIONS_BAD)


def churn_score(churn_pct: float) -> float:
    return linear_score(churn_pct, 0.0, CHURN_PCT_BAD)


def quality_score(dev: QualityInput, team_baseline: Any = None) -> int:
    """Combine the four sub-scores into an integer in [0, 100].

    ``team_baseline`` (the team's authored stats) is accepted for adaptive
    thresholds; the thresholds are currently fixed and it is not read.
    """
    score = (
        size_score(dev.avg_src_size, dev.avg_src_files) * QUALITY_SIZE_WEIGHT
        + close_time_score(dev.avg_working_hours_to_close) * QUALITY_CLOSE_TIME_WEIGHT
        + iteration_score(dev.avg_iterations) * QUALITY_ITERATION_WEIGHT
        + churn_score(dev.churn_pct) * QUALITY_CHURN_WEIGHT
    )
    return max(0, min(100, round_int(score)))


def quality_input(prs: Sequence[EnrichedPullRequest]) -> QualityInput:
    """Averages for one developer's PRs (assumed non-empty and valid)."""
    n = len(prs)
    closes = [h for h in (close_hours(pr) for pr in prs) if h > 0]
    return QualityInput(
        avg_src_size=sum(pr.prod_lines for pr in prs) / n,
        avg_src_files=sum(pr.prod_files_changed for pr in prs) / n,
        avg_iterations=sum(pr.iteration_count for pr in prs) / n,
        avg_working_hours_to_close=mean(closes) if closes else None,
        churn_pct=mean([pr.churn_percentage for pr in prs]),
    )


def quality_inputs(prs: Iterable[EnrichedPullRequest]) -> dict[str, tuple[int, QualityInput]]:
    """``author -> (prs_authored, QualityInput)`` over valid PRs."""
    by_author: dict[str, list[EnrichedPullRequest]] = defaultdict(list)
    for pr in valid_prs(prs):
        by_author[pr.author].append(pr)
    return {author: (len(items), quality_input(items)) for author, items in by_author.items()}


def team_quality_score(scores: Iterable[tuple[int, int]]) -> int:
    """PR-count-weighted mean of ``(prs_authored, score)`` pairs."""
    total_prs = 0
    weighted = 0
    for prs_authored, score in scores:
        total_prs += prs_authored
        weighted += score * prs_authored
    return round_int(weighted / total_prs) if total_prs > 0 else 0
