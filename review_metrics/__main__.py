"""Entry-point for ``python -m review_metrics``."""

from __future__ import annotations

from review_metrics.cli import main

if __name__ == "__main__":
    main()
