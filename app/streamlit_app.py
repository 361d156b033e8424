"""Streamlit dashboard for monthly PR review metrics."""

from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from review_metrics.aggregation import (
    avg_inline_comments,
    close_hours,
    largest_prs,
    review_matrix,
    reviewers_by_close_time,
    reviewers_by_prs_reviewed,
    size_distribution,
    summarize,
)
from review_metrics.config import OUTPUT_DIR, TEAM_ROW_LABEL
from review_metrics.filters import all_developers, exclude, for_repo
from review_metrics.highlights import (
    average_churn_rate,
    fastest_velocity,
    most_active_developer,
    most_responsive_reviewer,
    top_quality_developer,
)
from review_metrics.models import EnrichedPullRequest
from review_metrics.quality import quality_inputs, quality_score, team_quality_score
from review_metrics.report import Report, list_months, load_report


# ── Data loading (cached) ──────────────────────────────────────────────────

@st.cache_data
def _load_months() -> list[str]:
    return list_months(OUTPUT_DIR)


@st.cache_resource
def _load_report(month: str) -> Report:
    return load_report(OUTPUT_DIR / f"pr-reviews-{month}.json")


def _hours(value: float | None) -> str:
    return "N/A" if value is None else f"{value:.1f} hrs"


# ── Sections ────────────────────────────────────────────────────────────────

def _summary_cards(prs: list[EnrichedPullRequest]) -> None:
    summaries = summarize(prs)
    active = most_active_developer(summaries.authors, summaries.reviewers)
    fastest = fastest_velocity(prs)
    responsive = most_responsive_reviewer(prs)
    top_quality = top_quality_developer(prs, summaries.team)

    cols = st.columns(6)
    cols[0].metric("PRs merged", summaries.team.authored.total_prs)
    cols[1].metric(
        "Most active",
        active.name if active else "N/A",
        f"{active.value:.0f} PRs + reviews" if active else None,
    )
    cols[2].metric(
        "Fastest velocity",
        fastest.name if fastest else "N/A",
        _hours(fastest.value) if fastest else None,
        delta_color="off",
    )
    cols[3].metric(
        "Most responsive",
        responsive.name if responsive else "N/A",
        _hours(responsive.value) if responsive else None,
        delta_color="off",
    )
    cols[4].metric(
        "Top quality",
        top_quality.name if top_quality else "N/A",
        f"{top_quality.value:.0f} / 100" if top_quality else None,
    )
    cols[5].metric("Avg churn", f"{average_churn_rate(prs):.1f}%")


def _authored_table(prs: list[EnrichedPullRequest]) -> pd.DataFrame:
    summaries = summarize(prs)
    inputs = quality_inputs(prs)
    scores: dict[str, int] = {
        author: quality_score(dev, summaries.team.authored) for author, (_, dev) in inputs.items()
    }
    rows = [
        {
            "Developer": a.author,
            "PRs": a.prs_authored,
            "Avg prod lines": a.avg_prod_lines,
            "Avg test lines": a.avg_test_lines,
            "Avg size": a.avg_size,
            "Avg close (hrs)": a.avg_close_time,
            "Avg iterations": a.avg_iterations,
            "Churn %": a.avg_churn_pct,
            "File churn": a.avg_file_churn,
            "Commits / PR": a.avg_commits,
            "Quality": scores[a.author],
        }
        for a in summaries.authors
    ]
    team = summaries.team.authored
    rows.append({
        "Developer": TEAM_ROW_LABEL,
        "PRs": team.total_prs,
        "Avg prod lines": team.avg_prod_lines,
        "Avg test lines": team.avg_test_lines,
        "Avg size": team.avg_pr_size,
        "Avg close (hrs)": team.avg_close_time,
        "Avg iterations": team.avg_iterations,
        "Churn %": team.avg_churn_pct,
        "File churn": team.avg_file_churn,
        "Commits / PR": team.avg_commits_per_pr,
        "Quality": team_quality_score(
            (a.prs_authored, scores[a.author]) for a in summaries.authors
        ),
    })
    return pd.DataFrame(rows)


def _reviewed_table(prs: list[EnrichedPullRequest]) -> pd.DataFrame:
    summaries = summarize(prs)
    rows = [
        {
            "Developer": r.reviewer,
            "PRs reviewed": r.prs_reviewed_count,
            "Reviews": r.total_reviews,
            "Avg prod lines": r.avg_pr_prod_lines_reviewed,
            "Avg test lines": r.avg_pr_test_lines_reviewed,
            "Avg size": r.avg_pr_size_reviewed,
            "Median response (hrs)": r.median_response_hours,
            "No-comment approvals %": r.no_comment_approval_pct,
            "Avg inline comments": avg_inline_comments(r),
            "Avg iterations": r.avg_iterations_per_pr,
        }
        for r in summaries.reviewers
    ]
    team = summaries.team.reviewed
    rows.append({
        "Developer": TEAM_ROW_LABEL,
        "PRs reviewed": None,
        "Reviews": team.total_reviews,
        "Avg prod lines": team.avg_prod_lines_reviewed,
        "Avg test lines": team.avg_test_lines_reviewed,
        "Avg size": team.avg_pr_size_reviewed,
        "Median response (hrs)": team.median_response_time,
        "No-comment approvals %": team.overall_no_comment_pct,
        "Avg inline comments": team.avg_inline_comments,
        "Avg iterations": team.avg_iterations_per_pr,
    })
    return pd.DataFrame(rows)


def _matrix_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    matrix = review_matrix(prs)
    if not matrix:
        return None
    reviewers = sorted(matrix, key=str.lower)
    authors = sorted({a for row in matrix.values() for a in row}, key=str.lower)
    fig = go.Figure(go.Heatmap(
        z=[[matrix[r].get(a, 0) for a in authors] for r in reviewers],
        x=authors,
        y=reviewers,
        colorscale="Blues",
    ))
    fig.update_layout(
        xaxis_title="Author",
        yaxis_title="Reviewer",
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _response_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    reviewers = [r for r in summarize(prs).reviewers if r.median_response_hours is not None]
    if not reviewers:
        return None
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=[r.reviewer for r in reviewers],
        y=[r.median_response_hours for r in reviewers],
        name="Median",
        marker_color="#4ECDC4",
    ))
    fig.add_trace(go.Bar(
        x=[r.reviewer for r in reviewers],
        y=[r.p90_response_hours for r in reviewers],
        name="P90",
        marker_color="#FF6B6B",
    ))
    fig.update_layout(
        barmode="group",
        xaxis_title="Reviewer",
        yaxis_title="Working hours to first activity",
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _prs_reviewed_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    reviewers = reviewers_by_prs_reviewed(summarize(prs).reviewers)
    if not reviewers:
        return None
    fig = go.Figure(go.Bar(
        x=[r.reviewer for r in reviewers],
        y=[r.prs_reviewed_count for r in reviewers],
        marker_color="#4ECDC4",
    ))
    fig.update_layout(
        xaxis_title="Reviewer",
        yaxis_title="PRs reviewed",
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _reviewed_close_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    reviewers = reviewers_by_close_time(summarize(prs).reviewers)
    if not reviewers:
        return None
    fig = go.Figure(go.Bar(
        x=[r.reviewer for r in reviewers],
        y=[r.avg_reviewed_pr_close_time for r in reviewers],
        marker_color="#FF6B6B",
    ))
    fig.update_layout(
        xaxis_title="Reviewer",
        yaxis_title="Avg close time of reviewed PRs (hrs)",
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _review_load_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    reviewers = reviewers_by_prs_reviewed(summarize(prs).reviewers)
    if not reviewers:
        return None
    names = [r.reviewer for r in reviewers]
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=names,
        y=[r.prs_reviewed_count for r in reviewers],
        name="PRs reviewed",
        marker_color="#4ECDC4",
        offsetgroup=0,
    ))
    fig.add_trace(go.Bar(
        x=names,
        y=[r.avg_pr_size_reviewed for r in reviewers],
        name="Avg PR size (lines)",
        marker_color="#FFB347",
        offsetgroup=1,
        yaxis="y2",
    ))
    fig.update_layout(
        barmode="group",
        xaxis_title="Reviewer",
        yaxis=dict(title="PRs reviewed"),
        yaxis2=dict(title="Avg PR size (lines)", overlaying="y", side="right"),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        margin=dict(t=10, b=40, l=50, r=50),
    )
    return fig


# ── Complexity ──────────────────────────────────────────────────────────────

def _size_vs_iterations_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    valid = [pr for pr in prs if pr.is_valid]
    if not valid:
        return None
    fig = go.Figure(go.Scatter(
        x=[pr.prod_lines for pr in valid],
        y=[pr.iteration_count for pr in valid],
        mode="markers",
        text=[f"{pr.key} · {pr.author}" for pr in valid],
        hovertemplate="%{text}<br>Prod lines: %{x}<br>Iterations: %{y}<extra></extra>",
        marker=dict(color="#4ECDC4", size=9, opacity=0.8),
    ))
    fig.update_layout(
        xaxis_title="Prod lines changed",
        yaxis_title="Review iterations",
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _largest_prs_chart(prs: list[EnrichedPullRequest]) -> go.Figure | None:
    top = largest_prs(prs)
    if not top:
        return None
    keys = [pr.key for pr in top]
    fig = go.Figure()
    fig.add_trace(go.Bar(x=keys, y=[pr.prod_lines for pr in top], name="Prod", marker_color="#4ECDC4"))
    fig.add_trace(go.Bar(x=keys, y=[pr.test_lines for pr in top], name="Test", marker_color="#FFB347"))
    fig.update_layout(
        barmode="stack",
        xaxis_title="PR",
        yaxis_title="Lines changed",
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _size_distribution_chart(prs: list[EnrichedPullRequest]) -> go.Figure:
    buckets = size_distribution(prs)
    fig = go.Figure(go.Bar(
        x=[label for label, _ in buckets],
        y=[count for _, count in buckets],
        marker_color="#6C5CE7",
    ))
    fig.update_layout(
        xaxis_title="PR size (lines changed)",
        yaxis_title="PRs",
        margin=dict(t=10, b=40, l=50, r=10),
    )
    return fig


def _show(fig: go.Figure | None, empty_message: str) -> None:
    if fig is None:
        st.info(empty_message)
    else:
        st.plotly_chart(fig, use_container_width=True)


def _details_table(prs: list[EnrichedPullRequest], excluded: set[str]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "PR": pr.key,
            "Title": pr.title,
            "Author": pr.author,
            "Size": pr.size,
            "Prod": pr.prod_lines,
            "Test": pr.test_lines,
            "Iterations": pr.iteration_count,
            "Close (hrs)": round(close_hours(pr), 1),
            "Churn %": pr.churn_percentage,
            "Reviewers": ", ".join(sorted({r.reviewer for r in pr.reviews})),
            "Excluded": pr.key in excluded,
            "Error": pr.error or "",
            "URL": pr.url,
        }
        for pr in prs
    ])


# ── Dashboard ───────────────────────────────────────────────────────────────

def main() -> None:
    """Render the Streamlit dashboard."""
    st.set_page_config(page_title="PR Review Metrics", layout="wide")

    months = _load_months()
    if not months:
        st.error(
            "No reports found. Run the collector first:\n\n"
            "```bash\n"
            "review-metrics collect --org=your-org --repos=repo1,repo2\n"
            "```"
        )
        return

    with st.sidebar:
        st.header("Filters")
        month = st.selectbox("Month", months)
        report = _load_report(month)

        repo_choice = st.selectbox("Repository", ["All"] + report.repos)
        excluded_devs = st.multiselect("Exclude developers", all_developers(report.details))
        dev_filtered = exclude(report.details, developers=excluded_devs)
        excluded_prs = st.multiselect("Exclude PRs", [pr.key for pr in dev_filtered])

    prs = for_repo(
        exclude(dev_filtered, pr_keys=excluded_prs),
        None if repo_choice == "All" else repo_choice,
    )

    st.markdown(f"## PR Review Metrics · {report.org} · {report.month}")
    st.caption(
        f"{len(report.repos)} repositories · {len(report.details)} merged PRs · "
        f"test files matched by {report.test_file_matching or 'unknown'} patterns"
    )
    if not prs:
        st.warning("No PRs match the current filters.")
        return

    _summary_cards(prs)

    tab_dev, tab_reviews, tab_complexity, tab_details = st.tabs(
        ["Developer stats", "Reviewer activity", "Complexity", "PR details"]
    )

    with tab_dev:
        view = st.radio("View", ["Authored", "Reviewed"], horizontal=True)
        table = _authored_table(prs) if view == "Authored" else _reviewed_table(prs)
        st.dataframe(table, use_container_width=True, hide_index=True)

    with tab_reviews:
        col_resp, col_matrix = st.columns(2)
        with col_resp:
            st.markdown("**Response time by reviewer**")
            _show(_response_chart(prs), "No review activity in this selection.")
        with col_matrix:
            st.markdown("**Reviewer vs author**")
            _show(_matrix_chart(prs), "No reviews in this selection.")

        col_count, col_close = st.columns(2)
        with col_count:
            st.markdown("**PRs reviewed**")
            _show(_prs_reviewed_chart(prs), "No reviews in this selection.")
        with col_close:
            st.markdown("**Avg close time of reviewed PRs**")
            _show(_reviewed_close_chart(prs), "No reviewed PRs with a close time.")

        st.markdown("**Review load**")
        _show(_review_load_chart(prs), "No reviews in this selection.")

    with tab_complexity:
        col_scatter, col_hist = st.columns(2)
        with col_scatter:
            st.markdown("**Prod size vs iterations**")
            _show(_size_vs_iterations_chart(prs), "No valid PRs in this selection.")
        with col_hist:
            st.markdown("**Size distribution**")
            st.plotly_chart(_size_distribution_chart(prs), use_container_width=True)

        st.markdown("**Largest PRs**")
        _show(_largest_prs_chart(prs), "No valid PRs in this selection.")

    with tab_details:
        st.dataframe(
            _details_table(dev_filtered, set(excluded_prs)),
            use_container_width=True,
            hide_index=True,
            column_config={"URL": st.column_config.LinkColumn("URL")},
        )

    with st.expander("How metrics are computed"):
        st.markdown("""
**Working hours** exclude 18:00–10:00 on weekdays and all of Saturday and Sunday.

| Metric | Definition |
|---|---|
| **Response time** | Working hours from PR open to the reviewer's first activity (review, inline comment or conversation comment) |
| **Close time** | Working hours from PR open to merge |
| **Iterations** | Number of review submissions on the PR |
| **Churn %** | Share of added lines landing in files already changed by an earlier commit of the same PR |
| **No-comment approval** | Approval with no body, no inline comments and no conversation comments |
| **Quality** | 0.35 × size + 0.30 × close time + 0.20 × iterations + 0.15 × churn, each 0–100 |

Team authored averages are taken over PRs directly; team reviewed sizes are
reviewer averages weighted by PRs reviewed.  Medians use the upper middle
value for even-sized samples.
""")


if __name__ == "__main__":
    main()
