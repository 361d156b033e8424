"""Production vs test classification of changed files."""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Sequence

from review_metrics.config import (
    TEST_FILE_MATCHING,
    TEST_FILE_PATTERNS,
    TEST_MATCH_GLOB,
    TEST_MATCH_SUBSTRING,
)
from review_metrics.models import FileChange, FileMetrics


def _matches_glob(path: str, pattern: str) -> bool:
    if pattern.endswith("/"):
        # Directory pattern: match a whole path segment at any depth.
        return f"/{pattern}" in f"/{path}"
    basename = path.split("/")[-1]
    return fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(basename, pattern)


def is_test_file(
    path: str,
    patterns: Iterable[str] = TEST_FILE_PATTERNS,
    mode: str = TEST_FILE_MATCHING,
) -> bool:
    """Return True if *path* matches any test-file pattern.

    ``mode="substring"`` reproduces the historical behaviour, where every
    pattern is a literal substring and wildcard patterns such as ``*.test.*``
    never match.  ``mode="glob"`` treats them as real globs.
    """
    if mode == TEST_MATCH_SUBSTRING:
        return any(pattern in path for pattern in patterns)
    if mode == TEST_MATCH_GLOB:
        return any(_matches_glob(path, pattern) for pattern in patterns)
    raise ValueError(f"Unknown test-file matching mode: {mode!r}")


def classify_file_changes(
    files: Sequence[FileChange],
    patterns: Iterable[str] | None = None,
    mode: str | None = None,
) -> FileMetrics:
    """Sum additions, deletions and file counts into prod and test buckets."""
    patterns = list(TEST_FILE_PATTERNS if patterns is None else patterns)
    mode = mode or TEST_FILE_MATCHING

    result = FileMetrics(files_changed=len(files))
    for change in files:
        result.total_additions += change.additions
        result.total_deletions += change.deletions

        if is_test_file(change.filename, patterns, mode):
            result.test_additions += change.additions
            result.test_deletions += change.deletions
            result.test_files_changed += 1
        else:
            result.prod_additions += change.additions
            result.prod_deletions += change.deletions
            result.prod_files_changed += 1

    return result
