"""Rework (churn) detection across the commits of one PR.

Churn = lines added to files that were already modified in an earlier
commit of the same PR.  This is a lower bound on rework: re-touching a file
is detected, rewriting the same lines in a file touched once is not.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from review_metrics.models import ChurnMetrics, Commit
from review_metrics.stats import round_half_up


def compute_churn(commits: Sequence[Commit] | None) -> ChurnMetrics:
    """Churn percentage and re-touched file count for chronological *commits*.

    Fewer than two commits cannot contain rework, so the result is zero.
    """
    if not commits or len(commits) <= 1:
        return ChurnMetrics()

    commits_by_file: dict[str, set[int]] = defaultdict(set)
    total_additions = 0
    rework_additions = 0

    for idx, commit in enumerate(commits):
        for change in commit.files:
            total_additions += change.additions
            seen = commits_by_file[change.filename]
            if seen:
                rework_additions += change.additions
            seen.add(idx)

    file_churn_count = sum(1 for seen in commits_by_file.values() if len(seen) > 1)
    churn_percentage = (
        round_half_up(rework_additions * 100 / total_additions, 1) if total_additions > 0 else 0.0
    )
    return ChurnMetrics(churn_percentage=churn_percentage, file_churn_count=file_churn_count)
