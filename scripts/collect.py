"""CLI: Collect monthly PR review metrics via the GitHub API."""

from __future__ import annotations

from review_metrics.cli import main

if __name__ == "__main__":
    main()
