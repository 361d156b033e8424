"""Centralised configuration and constants."""

from __future__ import annotations

import os
from pathlib import Path

# ── Paths ───────────────────────────────────────────────────────────────────
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
OUTPUT_DIR: Path = Path(os.getenv("REVIEW_METRICS_OUTPUT_DIR", PROJECT_ROOT / "output"))

# ── GitHub API ──────────────────────────────────────────────────────────────
GITHUB_TOKEN: str | None = os.getenv("GITHUB_TOKEN")
GITHUB_API_BASE: str = "https://api.github.com"
REQUEST_TIMEOUT: int = 30  # seconds
PER_PAGE: int = 100
BASE_BRANCH: str = "main"

# ── Collection target ──────────────────────────────────────────────────────
DEFAULT_ORG: str | None = os.getenv("REVIEW_METRICS_ORG")
DEFAULT_REPOS: list[str] = [
    r.strip() for r in os.getenv("REVIEW_METRICS_REPOS", "").split(",") if r.strip()
]

# ── Reporting timezone (None = local system time) ──────────────────────────
REPORT_TIMEZONE: str | None = os.getenv("REVIEW_METRICS_TZ") or None

# ── Working-hours window ───────────────────────────────────────────────────
WORKDAY_START_HOUR: int = 10
WORKDAY_END_HOUR: int = 18
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})  # datetime.weekday(): Sat, Sun

# ── Test-file classification ───────────────────────────────────────────────
TEST_FILE_PATTERNS: list[str] = [
    "*.test.*",
    "*.spec.*",
    "__tests__/",
    "__mocks__/",
    "e2e/",
    "tests/",
    "test/",
    "*.stories.*",
    "integration/",
    "fixtures/",
    ".test/",
    ".spec/",
]
TEST_MATCH_GLOB: str = "glob"
TEST_MATCH_SUBSTRING: str = "substring"
TEST_FILE_MATCHING: str = os.getenv("REVIEW_METRICS_TEST_MATCHING", TEST_MATCH_GLOB)

# ── Fetch settings ─────────────────────────────────────────────────────────
PR_CONCURRENCY: int = 5
PROGRESS_LOG_EVERY: int = 50
RETRY_MAX: int = 3
RETRY_BACKOFF: float = 2.0  # seconds, exponential base
RATE_LIMIT_BUFFER: int = 5
RATE_LIMIT_WARNING_THRESHOLD: int = 100

# ── Quality score thresholds ───────────────────────────────────────────────
QUALITY_SIZE_WEIGHT: float = 0.35
QUALITY_CLOSE_TIME_WEIGHT: float = 0.30
QUALITY_ITERATION_WEIGHT: float = 0.20
QUALITY_CHURN_WEIGHT: float = 0.15
SRC_LINES_GOOD: float = 100.0
SRC_LINES_BAD: float = 400.0
SRC_FILES_GOOD: float = 4.0
SRC_FILES_BAD: float = 10.0
CLOSE_HOURS_GOOD: float = 2.0
CLOSE_HOURS_BAD: float = 8.0
ITERATIONS_GOOD: float = 1.0
ITERATIONS_BAD: float = 4.0
CHURN_PCT_BAD: float = 50.0
NEUTRAL_SUB_SCORE: float = 50.0

# ── Dashboard defaults ─────────────────────────────────────────────────────
MIN_PRS_FOR_HIGHLIGHT: int = 2
MIN_REVIEWS_FOR_HIGHLIGHT: int = 2
TEAM_ROW_LABEL: str = "TEAM AVG/TOTAL"
LARGEST_PRS_LIMIT: int = 20
# (label, inclusive upper bound in changed lines; None = unbounded)
SIZE_BUCKETS: list[tuple[str, int | None]] = [
    ("0-100", 100),
    ("101-300", 300),
    ("301-500", 500),
    ("501-1000", 1000),
    ("1000+", None),
]
