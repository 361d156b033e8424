"""Command-line entry points: ``collect`` and ``rebuild``."""

from __future__ import annotations

import logging
from pathlib import Path

import click
import httpx

from review_metrics import __version__
from review_metrics.aggregation import summarize
from review_metrics.config import (
    DEFAULT_ORG,
    DEFAULT_REPOS,
    OUTPUT_DIR,
    PR_CONCURRENCY,
    REPORT_TIMEZONE,
    TEST_FILE_MATCHING,
    TEST_MATCH_GLOB,
    TEST_MATCH_SUBSTRING,
)
from review_metrics.fetcher import collect as collect_details
from review_metrics.github_client import GitHubClient
from review_metrics.report import build_report, rebuild_report, resolve_month, write_report

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, prog_name="review-metrics")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """PR review metrics: collect from GitHub and build monthly reports."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )


@cli.command()
@click.option("--org", default=DEFAULT_ORG, help="GitHub organisation (required).")
@click.option("--repos", default=",".join(DEFAULT_REPOS), help="Comma-separated repository names (required).")
@click.option("--month", default=None, help="Target month YYYY-MM (default: previous month).")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=OUTPUT_DIR,
    show_default=True,
)
@click.option(
    "--test-matching",
    type=click.Choice([TEST_MATCH_GLOB, TEST_MATCH_SUBSTRING]),
    default=TEST_FILE_MATCHING,
    show_default=True,
    help="How test-file patterns are matched.",
)
@click.option("--concurrency", type=int, default=PR_CONCURRENCY, show_default=True)
@click.pass_context
def collect(
    ctx: click.Context,
    org: str | None,
    repos: str,
    month: str | None,
    output_dir: Path,
    test_matching: str,
    concurrency: int,
) -> None:
    """Collect review metrics for PRs merged in one month."""
    repo_list = [r.strip() for r in (repos or "").split(",") if r.strip()]
    if not org:
        logger.error("Organization is required. Use --org=your-org")
        ctx.exit(1)
    if not repo_list:
        logger.error("At least one repository is required. Use --repos=repo1,repo2")
        ctx.exit(1)
    try:
        target_month = resolve_month(month)
    except ValueError as exc:
        logger.error("%s", exc)
        ctx.exit(1)

    logger.info("Organization: %s", org)
    logger.info("Repositories: %s", ", ".join(repo_list))
    logger.info("Target month: %s", target_month)

    try:
        with GitHubClient() as client:
            client.check_rate_limit()
            details = collect_details(
                client,
                org,
                repo_list,
                target_month,
                concurrency=concurrency,
                tz=REPORT_TIMEZONE,
                test_matching=test_matching,
            )
            if not details:
                logger.info("No PRs found for the specified month and repositories")
                return

            summaries = summarize(details)
            report = build_report(
                target_month, org, repo_list, details, summaries, test_file_matching=test_matching
            )
            write_report(report, output_dir)
            logger.info(
                "Done! Processed %d PRs, %d reviewers, %d authors",
                len(details),
                len(summaries.reviewers),
                len(summaries.authors),
            )
            client.check_rate_limit()
    except (ValueError, RuntimeError, httpx.HTTPError) as exc:
        logger.error("Fatal error: %s", exc)
        ctx.exit(1)


@cli.command()
@click.argument("report_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where to write (default: next to REPORT_FILE).",
)
def rebuild(report_file: Path, output_dir: Path | None) -> None:
    """Re-derive summaries and CSVs from a saved report's PR details."""
    summaries = rebuild_report(report_file, output_dir)
    logger.info(
        "Rebuilt %s: %d reviewers, %d authors",
        report_file.name,
        len(summaries.reviewers),
        len(summaries.authors),
    )


def main() -> None:
    cli()
