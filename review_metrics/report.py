"""Report document, CSV projection and monthly file layout.

Files for month ``YYYY-MM`` live side by side in the output directory:

    pr-reviews-YYYY-MM.json   full report (summaries + PR details)
    pr-reviews-YYYY-MM.csv    reviewer summary
    pr-authors-YYYY-MM.csv    author summary
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from review_metrics.aggregation import Summaries, summarize
from review_metrics.config import REPORT_TIMEZONE, TEST_FILE_MATCHING
from review_metrics.models import (
    AuthorSummary,
    EnrichedPullRequest,
    ReviewerSummary,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
REPORT_FILE_RE = re.compile(r"^pr-reviews-(\d{4}-\d{2})\.json$")


# ── Months ──────────────────────────────────────────────────────────────────

def resolve_month(value: str | None, today: date | None = None) -> str:
    """Validate ``YYYY-MM``; default to the calendar month before *today*."""
    if value:
        if not MONTH_RE.match(value) or not 1 <= int(value[5:]) <= 12:
            raise ValueError("Month must be in YYYY-MM format")
        return value

    today = today or date.today()
    year, month = today.year, today.month - 1
    if month == 0:
        year, month = year - 1, 12
    return f"{year:04d}-{month:02d}"


def month_bounds(month: str, tz: str | None = REPORT_TIMEZONE) -> tuple[datetime, datetime]:
    """``[first instant, first instant of next month)`` in the reporting tz."""
    year, mon = int(month[:4]), int(month[5:])
    next_year, next_mon = (year + 1, 1) if mon == 12 else (year, mon + 1)
    if tz:
        zone = ZoneInfo(tz)
        return datetime(year, mon, 1, tzinfo=zone), datetime(next_year, next_mon, 1, tzinfo=zone)
    return datetime(year, mon, 1).astimezone(), datetime(next_year, next_mon, 1).astimezone()


# ── CSV ─────────────────────────────────────────────────────────────────────

def to_csv(rows: Sequence[dict[str, Any]]) -> str:
    """Render *rows* as comma-separated JSON-encoded cells.

    The header is the first row's keys; keys missing from a later row render
    as ``""``.  Cells are JSON strings rather than RFC 4180 quoted fields,
    so every cell can be decoded back with ``json.loads``.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        cells = []
        for key in headers:
            value = row.get(key)
            cells.append(json.dumps("" if value is None else value))
        lines.append(",".join(cells))
    return "\n".join(lines)


def summary_rows(
    summaries: Sequence[ReviewerSummary | AuthorSummary],
    repos: Sequence[str],
) -> list[dict[str, Any]]:
    """Flatten summaries for CSV, one column per repository of the batch."""
    return [_flatten(summary.to_dict(), repos) for summary in summaries]


def _flatten(row: dict[str, Any], repos: Sequence[str]) -> dict[str, Any]:
    flat = dict(row)
    counts = flat.pop("countsByRepo", None) or {}
    for repo in repos:
        flat[repo] = counts.get(repo, "")
    return flat


# ── Report document ─────────────────────────────────────────────────────────

@dataclass
class Report:
    """A report reloaded from disk; summaries are re-derived on demand."""

    month: str
    org: str
    repos: list[str]
    generated_at: datetime | None
    details: list[EnrichedPullRequest] = field(default_factory=list)
    test_file_matching: str | None = None

    def summarize(self) -> Summaries:
        return summarize(self.details)


def build_report(
    month: str,
    org: str,
    repos: Sequence[str],
    details: Sequence[EnrichedPullRequest],
    summaries: Summaries | None = None,
    generated_at: datetime | None = None,
    test_file_matching: str = TEST_FILE_MATCHING,
) -> dict[str, Any]:
    """Assemble the JSON document written for one month."""
    summaries = summaries or summarize(details)
    return {
        "month": month,
        "org": org,
        "repos": list(repos),
        "generatedAt": format_timestamp(generated_at or datetime.now(timezone.utc)),
        "testFileMatching": test_file_matching,
        "summary": [s.to_dict() for s in summaries.reviewers],
        "authorSummary": [s.to_dict() for s in summaries.authors],
        "teamSummary": summaries.team.to_dict(),
        "details": [pr.to_dict() for pr in details],
    }


def report_paths(output_dir: Path, month: str) -> tuple[Path, Path, Path]:
    """JSON, reviewer CSV and author CSV paths for *month*."""
    return (
        output_dir / f"pr-reviews-{month}.json",
        output_dir / f"pr-reviews-{month}.csv",
        output_dir / f"pr-authors-{month}.csv",
    )


def write_report(report: dict[str, Any], output_dir: Path) -> tuple[Path, Path, Path]:
    """Write the JSON report and both CSV projections."""
    output_dir.mkdir(parents=True, exist_ok=True)
    json_path, reviewer_csv, author_csv = report_paths(output_dir, report["month"])
    repos = report["repos"]
    reviewer_rows = [_flatten(row, repos) for row in report["summary"]]
    author_rows = [_flatten(row, repos) for row in report["authorSummary"]]

    json_path.write_text(json.dumps(report, indent=2))
    logger.info("Written JSON → %s", json_path)
    reviewer_csv.write_text(to_csv(reviewer_rows))
    logger.info("Written reviewer CSV → %s", reviewer_csv)
    author_csv.write_text(to_csv(author_rows))
    logger.info("Written author CSV → %s", author_csv)
    return json_path, reviewer_csv, author_csv


def rebuild_report(path: Path, output_dir: Path | None = None) -> Summaries:
    """Re-derive summaries and CSVs for a saved report from its details.

    Older reports written before a summary existed, or with summaries from
    an earlier formula, are brought up to date this way.
    """
    saved = load_report(path)
    summaries = saved.summarize()
    report = build_report(
        saved.month,
        saved.org,
        saved.repos,
        saved.details,
        summaries,
        generated_at=saved.generated_at,
        test_file_matching=saved.test_file_matching or TEST_FILE_MATCHING,
    )
    write_report(report, output_dir or path.parent)
    return summaries


def list_months(output_dir: Path) -> list[str]:
    """Months with a JSON report in *output_dir*, most recent first."""
    if not output_dir.is_dir():
        return []
    months = [m.group(1) for m in (REPORT_FILE_RE.match(p.name) for p in output_dir.iterdir()) if m]
    return sorted(months, reverse=True)


def load_report(path: Path, tz: str | None = REPORT_TIMEZONE) -> Report:
    """Load a saved report, keeping only what is needed to re-aggregate."""
    data = json.loads(path.read_text())
    details: list[EnrichedPullRequest] = []
    for item in data.get("details", []):
        try:
            details.append(EnrichedPullRequest.from_dict(item, tz))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed PR record in %s: %r", path.name, exc)
    logger.info("Loaded %d PRs from %s", len(details), path)
    return Report(
        month=data["month"],
        org=data.get("org", ""),
        repos=list(data.get("repos", [])),
        generated_at=parse_timestamp(data.get("generatedAt"), tz),
        details=details,
        test_file_matching=data.get("testFileMatching"),
    )
