"""Tests for the report document, CSV projection and file layout."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from builders import TUESDAY, at, make_pr, make_review
from review_metrics.aggregation import summarize
from review_metrics.models import EnrichedPullRequest
from review_metrics.report import (
    build_report,
    list_months,
    load_report,
    month_bounds,
    rebuild_report,
    report_paths,
    resolve_month,
    summary_rows,
    to_csv,
    write_report,
)

GENERATED = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


def _details() -> list[EnrichedPullRequest]:
    return [
        make_pr(number=1, repo="web", reviews=[make_review("bob", inline=1)], first_response_at=at(TUESDAY, 12)),
        make_pr(number=2, repo="api", author="bob", reviews=[make_review("carol")]),
        make_pr(number=3, repo="web", author="dave", error="Not Found"),
    ]


# ── Months ──────────────────────────────────────────────────────────────────


def test_resolve_month_defaults_to_previous_month() -> None:
    assert resolve_month(None, today=date(2024, 3, 15)) == "2024-02"
    assert resolve_month("", today=date(2024, 1, 3)) == "2023-12"


def test_resolve_month_accepts_valid_value() -> None:
    assert resolve_month("2024-11") == "2024-11"


@pytest.mark.parametrize("value", ["2024-1", "24-01", "2024/01", "2024-13", "2024-00", "January"])
def test_resolve_month_rejects_bad_format(value: str) -> None:
    with pytest.raises(ValueError, match="YYYY-MM"):
        resolve_month(value)


def test_month_bounds_half_open() -> None:
    start, end = month_bounds("2024-12", "UTC")
    assert start == datetime(2024, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)


# ── CSV ─────────────────────────────────────────────────────────────────────


def test_to_csv_empty() -> None:
    assert to_csv([]) == ""


def test_to_csv_cells_are_json() -> None:
    rows = [
        {"name": 'say "hi", ok', "count": 3, "pct": 12.5, "median": None},
        {"name": "bob", "count": 0},
    ]
    lines = to_csv(rows).split("\n")
    assert lines[0] == "name,count,pct,median"
    assert lines[1] == '"say \\"hi\\", ok",3,12.5,""'
    # Missing keys render as empty strings.
    assert [json.loads(cell) for cell in lines[2].split(",")] == ["bob", 0, "", ""]


def test_summary_rows_flatten_counts_by_repo() -> None:
    summaries = summarize(_details())
    rows = summary_rows(summaries.authors, ["web", "api"])
    alice = next(r for r in rows if r["author"] == "alice")
    assert "countsByRepo" not in alice
    assert alice["web"] == 1
    assert alice["api"] == ""
    assert list(alice)[-2:] == ["web", "api"]


# ── Report document ─────────────────────────────────────────────────────────


def test_build_report_shape() -> None:
    report = build_report("2024-01", "acme", ["web", "api"], _details(), generated_at=GENERATED)
    assert report["month"] == "2024-01"
    assert report["org"] == "acme"
    assert report["generatedAt"] == "2024-02-01T09:30:00Z"
    assert report["testFileMatching"] == "glob"
    assert [r["reviewer"] for r in report["summary"]] == ["bob", "carol"]
    assert [a["author"] for a in report["authorSummary"]] == ["alice", "bob"]
    assert report["teamSummary"]["authored"]["totalPRs"] == 2
    assert len(report["details"]) == 3
    assert report["details"][2] == {
        "repo": "web",
        "number": 3,
        "title": "PR #3",
        "author": "dave",
        "createdAt": "2024-01-02T10:00:00Z",
        "mergedAt": "2024-01-02T14:00:00Z",
        "url": "https://github.com/acme/web/pull/3",
        "error": "Not Found",
        "iterationCount": 0,
        "reviews": [],
    }


def test_detail_round_trip() -> None:
    pr = _details()[0]
    restored = EnrichedPullRequest.from_dict(pr.to_dict(), "UTC")
    assert restored == pr


def test_from_dict_defaults_for_older_reports() -> None:
    data = {
        "repo": "web",
        "number": 9,
        "author": "alice",
        "createdAt": "2024-01-02T10:00:00Z",
        "mergedAt": "2024-01-02T12:00:00Z",
        "reviews": [{"reviewer": "bob", "state": "APPROVED", "submittedAt": "2024-01-02T11:00:00Z"}],
    }
    pr = EnrichedPullRequest.from_dict(data, "UTC")
    assert pr.commit_count == 1
    assert pr.churn_percentage == 0.0
    assert pr.file_churn_count == 0
    assert pr.first_response_at is None
    assert pr.reviews[0].first_activity_at == pr.reviews[0].submitted_at
    assert pr.reviews[0].conversation_comment_count == 0


# ── Files ───────────────────────────────────────────────────────────────────


def test_write_and_load_report(tmp_path: Path) -> None:
    report = build_report("2024-01", "acme", ["web", "api"], _details(), generated_at=GENERATED)
    json_path, reviewer_csv, author_csv = write_report(report, tmp_path / "out")

    assert (json_path, reviewer_csv, author_csv) == report_paths(tmp_path / "out", "2024-01")
    assert json.loads(json_path.read_text()) == report
    assert reviewer_csv.read_text().split("\n")[0].endswith(",web,api")
    assert author_csv.read_text().startswith("author,prsAuthored,")

    loaded = load_report(json_path, "UTC")
    assert loaded.month == "2024-01"
    assert loaded.repos == ["web", "api"]
    assert loaded.generated_at == GENERATED
    assert loaded.test_file_matching == "glob"
    assert loaded.details[:2] == _details()[:2]
    failed = loaded.details[2]
    assert failed.error == "Not Found"
    assert not failed.is_valid
    assert failed.reviews == ()


def test_load_report_skips_malformed_records(tmp_path: Path) -> None:
    report = build_report("2024-01", "acme", ["web"], _details()[:1], generated_at=GENERATED)
    report["details"].append({"repo": "web", "number": 8, "author": "erin", "error": "Not Found"})
    report["details"].append({"repo": "web", "number": 9, "author": "erin", "createdAt": "yesterday"})
    path = tmp_path / "pr-reviews-2024-01.json"
    path.write_text(json.dumps(report))

    loaded = load_report(path, "UTC")

    assert [pr.key for pr in loaded.details] == ["web#1"]
    summaries = rebuild_report(path)
    assert [a.author for a in summaries.authors] == ["alice"]


def test_rebuild_report_refreshes_summaries(tmp_path: Path) -> None:
    report = build_report("2024-01", "acme", ["web", "api"], _details(), generated_at=GENERATED)
    report["summary"] = []
    report["authorSummary"] = []
    del report["teamSummary"]
    json_path, _, _ = write_report(report, tmp_path)

    summaries = rebuild_report(json_path)

    assert [r.reviewer for r in summaries.reviewers] == ["bob", "carol"]
    rebuilt = json.loads(json_path.read_text())
    assert len(rebuilt["summary"]) == 2
    assert rebuilt["teamSummary"]["reviewed"]["totalReviews"] == 2
    assert rebuilt["generatedAt"] == "2024-02-01T09:30:00Z"


def test_list_months(tmp_path: Path) -> None:
    for name in ["pr-reviews-2024-01.json", "pr-reviews-2024-03.json", "pr-reviews-2024-02.csv", "notes.json"]:
        (tmp_path / name).write_text("{}")
    assert list_months(tmp_path) == ["2024-03", "2024-01"]
    assert list_months(tmp_path / "missing") == []
