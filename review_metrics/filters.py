"""Interactive filtering applied before re-aggregation."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import replace

from review_metrics.models import EnrichedPullRequest


def exclude(
    prs: Iterable[EnrichedPullRequest],
    developers: Collection[str] = (),
    pr_keys: Collection[str] = (),
) -> list[EnrichedPullRequest]:
    """Remove excluded developers and PRs from a batch.

    PRs authored by an excluded developer are dropped, and their reviews are
    stripped from everyone else's PRs.  Iteration counts and
    ``first_response_at`` stay as collected.
    """
    developers = set(developers)
    pr_keys = set(pr_keys)
    result: list[EnrichedPullRequest] = []

    for pr in prs:
        if pr.author in developers or pr.key in pr_keys:
            continue
        if developers and any(r.reviewer in developers for r in pr.reviews):
            pr = replace(pr, reviews=tuple(r for r in pr.reviews if r.reviewer not in developers))
        result.append(pr)

    return result


def for_repo(prs: Iterable[EnrichedPullRequest], repo: str | None) -> list[EnrichedPullRequest]:
    """Keep PRs of *repo*; ``None`` keeps everything."""
    if repo is None:
        return list(prs)
    return [pr for pr in prs if pr.repo == repo]


def all_developers(prs: Iterable[EnrichedPullRequest]) -> list[str]:
    """Sorted logins of every author and reviewer in the batch."""
    names: set[str] = set()
    for pr in prs:
        names.add(pr.author)
        names.update(r.reviewer for r in pr.reviews)
    return sorted(names, key=str.lower)
