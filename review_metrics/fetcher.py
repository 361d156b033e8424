"""Collector: merged PRs of one month → enriched PR records.

1. List closed PRs per repository (REST, newest update first) and keep the
   ones merged into the base branch during the target month.
2. For each PR, fetch files, reviews, each review's inline comments,
   conversation comments and commits, then fold them with
   ``activity.enrich_pull_request``.  PRs are processed on a bounded thread
   pool; a PR that fails is kept as an error record.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx

from review_metrics.activity import enrich_pull_request, failed_pull_request
from review_metrics.config import BASE_BRANCH, PR_CONCURRENCY, PROGRESS_LOG_EVERY, REPORT_TIMEZONE
from review_metrics.github_client import GitHubClient
from review_metrics.models import (
    Comment,
    Commit,
    EnrichedPullRequest,
    FileChange,
    PullRequest,
    Review,
    parse_timestamp,
)
from review_metrics.report import month_bounds

logger = logging.getLogger(__name__)

FETCH_ERRORS = (httpx.HTTPError, RuntimeError, KeyError, ValueError, TypeError)


# ── Parsing raw API data ───────────────────────────────────────────────────

def _login(raw: dict[str, Any] | None) -> str:
    return (raw or {}).get("login") or "ghost"


def parse_pull(raw: dict[str, Any], repo: str, tz: str | None = REPORT_TIMEZONE) -> PullRequest:
    """Convert a REST pull object; raises ``KeyError`` on missing core fields."""
    created_at = parse_timestamp(raw["created_at"], tz)
    if created_at is None:
        raise ValueError(f"PR #{raw.get('number')} has no created_at")
    return PullRequest(
        repo=repo,
        number=raw["number"],
        title=raw.get("title", ""),
        author=raw["user"]["login"],
        created_at=created_at,
        merged_at=parse_timestamp(raw.get("merged_at"), tz),
        url=raw.get("html_url", ""),
    )


def parse_file(raw: dict[str, Any]) -> FileChange:
    return FileChange(
        filename=raw["filename"],
        additions=raw.get("additions") or 0,
        deletions=raw.get("deletions") or 0,
        status=raw.get("status", "modified"),
    )


def parse_comment(raw: dict[str, Any], tz: str | None = REPORT_TIMEZONE) -> Comment:
    return Comment(author=_login(raw.get("user")), created_at=parse_timestamp(raw.get("created_at"), tz))


def parse_review(
    raw: dict[str, Any],
    inline_comments: Sequence[Comment] = (),
    tz: str | None = REPORT_TIMEZONE,
) -> Review:
    return Review(
        reviewer=_login(raw.get("user")),
        state=raw.get("state", ""),
        submitted_at=parse_timestamp(raw.get("submitted_at"), tz),
        body=raw.get("body") or "",
        inline_comments=list(inline_comments),
    )


# ── Phase 1: merged PRs of the month ───────────────────────────────────────

def fetch_merged_prs(
    client: GitHubClient,
    org: str,
    repo: str,
    month: str,
    tz: str | None = REPORT_TIMEZONE,
    base_branch: str = BASE_BRANCH,
) -> list[PullRequest]:
    """PRs merged into *base_branch* during *month*."""
    logger.info("Fetching PRs for %s...", repo)
    start, end = month_bounds(month, tz)

    prs: list[PullRequest] = []
    for raw in client.paginate(
        f"/repos/{org}/{repo}/pulls",
        params={"state": "closed", "sort": "updated", "direction": "desc"},
    ):
        updated_at = parse_timestamp(raw.get("updated_at"), tz)
        if updated_at is not None and updated_at < start:
            # Sorted by last update: a PR merged in the month was updated
            # at or after its merge, so nothing further can qualify.
            break
        if not raw.get("merged_at") or (raw.get("base") or {}).get("ref") != base_branch:
            continue
        try:
            pr = parse_pull(raw, repo, tz)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed PR record in %s: %s", repo, exc)
            continue
        if start <= pr.merged_at < end:
            prs.append(pr)

    logger.info("  Found %d merged PRs in %s", len(prs), month)
    return prs


# ── Phase 2: per-PR details ────────────────────────────────────────────────

def fetch_inline_comments(
    client: GitHubClient, org: str, pr: PullRequest, review_id: int, tz: str | None
) -> list[Comment]:
    try:
        raw = client.rest_get_all(f"/repos/{org}/{pr.repo}/pulls/{pr.number}/reviews/{review_id}/comments")
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Could not fetch comments for review %s on %s: %s", review_id, pr.key, exc)
        return []
    return [parse_comment(c, tz) for c in raw]


def fetch_conversation_comments(
    client: GitHubClient, org: str, pr: PullRequest, tz: str | None
) -> list[Comment]:
    try:
        raw = client.rest_get_all(f"/repos/{org}/{pr.repo}/issues/{pr.number}/comments")
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Could not fetch conversation comments for %s: %s", pr.key, exc)
        return []
    return [parse_comment(c, tz) for c in raw]


def fetch_commits(client: GitHubClient, org: str, pr: PullRequest, tz: str | None) -> list[Commit]:
    """Commits of a PR in order, each with its per-file changes."""
    try:
        listed = client.rest_get_all(f"/repos/{org}/{pr.repo}/pulls/{pr.number}/commits")
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.warning("Could not fetch commits for %s: %s", pr.key, exc)
        return []

    commits: list[Commit] = []
    for item in listed:
        sha = item["sha"]
        try:
            detail = client.rest_get(f"/repos/{org}/{pr.repo}/commits/{sha}")
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Could not fetch commit details for %s: %s", sha[:7], exc)
            continue
        date = ((item.get("commit") or {}).get("author") or {}).get("date")
        commits.append(Commit(
            sha=sha,
            date=parse_timestamp(date, tz),
            files=[parse_file(f) for f in detail.get("files") or []],
        ))
    return commits


def process_pr(
    client: GitHubClient,
    org: str,
    pr: PullRequest,
    index: int = 1,
    total: int = 1,
    tz: str | None = REPORT_TIMEZONE,
    test_matching: str | None = None,
) -> EnrichedPullRequest:
    """Fetch everything for one PR and enrich it; failures become error records."""
    if index % PROGRESS_LOG_EVERY == 1 or index == total:
        logger.info("Fetching PR details: %d/%d", index, total)
    logger.debug("[%s] Processing PR #%d: %s", pr.repo, pr.number, pr.title)
    base = f"/repos/{org}/{pr.repo}/pulls/{pr.number}"

    try:
        files = [parse_file(f) for f in client.rest_get_all(f"{base}/files")]
        raw_reviews = client.rest_get_all(f"{base}/reviews")
        conversation = fetch_conversation_comments(client, org, pr, tz)
        reviews = [
            parse_review(r, fetch_inline_comments(client, org, pr, r["id"], tz), tz)
            for r in raw_reviews
        ]
        commits = fetch_commits(client, org, pr, tz)
        return enrich_pull_request(
            pr, files, reviews, conversation, commits, test_matching=test_matching
        )
    except FETCH_ERRORS as exc:
        logger.error("Error processing %s: %s", pr.key, exc)
        return failed_pull_request(pr, str(exc))


def process_prs(
    client: GitHubClient,
    org: str,
    prs: Sequence[PullRequest],
    concurrency: int = PR_CONCURRENCY,
    tz: str | None = REPORT_TIMEZONE,
    test_matching: str | None = None,
) -> list[EnrichedPullRequest]:
    """Process PRs with at most *concurrency* in flight; keeps input order."""
    total = len(prs)
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        futures = [
            pool.submit(process_pr, client, org, pr, i, total, tz, test_matching)
            for i, pr in enumerate(prs, 1)
        ]
        return [f.result() for f in futures]


# ── Orchestrator ────────────────────────────────────────────────────────────

def collect(
    client: GitHubClient,
    org: str,
    repos: Sequence[str],
    month: str,
    concurrency: int = PR_CONCURRENCY,
    tz: str | None = REPORT_TIMEZONE,
    test_matching: str | None = None,
) -> list[EnrichedPullRequest]:
    """List and enrich every PR merged in *month* across *repos*.

    A repository that cannot be listed is logged and skipped.
    """
    all_prs: list[PullRequest] = []
    for repo in repos:
        try:
            all_prs.extend(fetch_merged_prs(client, org, repo, month, tz))
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.error("Error fetching PRs from %s: %s", repo, exc)

    if not all_prs:
        return []

    logger.info("Processing %d total PRs...", len(all_prs))
    details = process_prs(client, org, all_prs, concurrency, tz, test_matching)
    failed = sum(1 for pr in details if not pr.is_valid)
    logger.info("Processed %d PRs (%d failed)", len(details), failed)
    return details
