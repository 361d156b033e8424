"""CLI: Re-derive summaries and CSVs for every saved monthly report."""

from __future__ import annotations

import logging

from review_metrics.config import OUTPUT_DIR
from review_metrics.report import list_months, rebuild_report, report_paths

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s"
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Rebuild every ``pr-reviews-YYYY-MM.json`` in the output directory."""
    months = list_months(OUTPUT_DIR)
    if not months:
        print(f"No reports found in {OUTPUT_DIR}. Run: review-metrics collect")
        return

    for month in months:
        json_path, _, _ = report_paths(OUTPUT_DIR, month)
        summaries = rebuild_report(json_path)
        logger.info(
            "Rebuilt %s: %d reviewers, %d authors",
            month,
            len(summaries.reviewers),
            len(summaries.authors),
        )


if __name__ == "__main__":
    main()
