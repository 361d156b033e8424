"""GitHub REST client with pagination, retries and rate-limit handling."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from review_metrics.config import (
    GITHUB_API_BASE,
    GITHUB_TOKEN,
    PER_PAGE,
    RATE_LIMIT_BUFFER,
    RATE_LIMIT_WARNING_THRESHOLD,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF,
    RETRY_MAX,
)

logger = logging.getLogger(__name__)


class GitHubClient:
    """GitHub REST client with automatic retries.

    A single instance is shared by the collector's worker threads;
    ``httpx.Client`` is safe to use concurrently.
    """

    def __init__(self, token: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self._token = token or GITHUB_TOKEN
        if not self._token:
            raise ValueError("GITHUB_TOKEN environment variable is required")
        self._client = httpx.Client(
            base_url=GITHUB_API_BASE,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )
        self._remaining: int = 5000
        self._reset_at: float = 0.0

    # ── REST ────────────────────────────────────────────────────────────

    def rest_get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a GET request and return the parsed JSON body."""
        return self._get(endpoint, params).json()

    def paginate(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ):
        """Yield items of a list endpoint, following ``Link: rel="next"``."""
        query = {"per_page": PER_PAGE, **(params or {})}
        url: str | None = endpoint
        while url:
            resp = self._get(url, query)
            yield from resp.json()
            url = resp.links.get("next", {}).get("url")
            # The next URL already carries the query string.
            query = None

    def rest_get_all(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> list[Any]:
        """Collect every page of a list endpoint."""
        return list(self.paginate(endpoint, params))

    def _get(self, url: str, params: dict[str, Any] | None) -> httpx.Response:
        for attempt in range(1, RETRY_MAX + 1):
            self._wait_if_rate_limited()

            try:
                resp = self._client.get(url, params=params)
            except httpx.TransportError as exc:
                logger.warning("GET %s failed [%d/%d]: %s", url, attempt, RETRY_MAX, exc)
                if attempt == RETRY_MAX:
                    raise RuntimeError(f"All {RETRY_MAX} retries exhausted: {url}") from exc
                time.sleep(RETRY_BACKOFF ** attempt)
                continue

            self._track_rate_limit(resp)

            if resp.status_code == 429 or (
                resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"
            ):
                self._handle_rate_limit_response(resp, attempt)
                continue

            if resp.status_code >= 500 and attempt < RETRY_MAX:
                logger.warning(
                    "HTTP %d from %s (attempt %d/%d)", resp.status_code, url, attempt, RETRY_MAX
                )
                time.sleep(RETRY_BACKOFF ** attempt)
                continue

            resp.raise_for_status()
            return resp

        raise RuntimeError(f"All {RETRY_MAX} retries exhausted: {url}")

    # ── Rate-limit helpers ──────────────────────────────────────────────

    def check_rate_limit(self) -> int | None:
        """Log the remaining core API budget; None if it cannot be read."""
        try:
            data = self.rest_get("/rate_limit")
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Could not check rate limit: %s", exc)
            return None

        core = data.get("resources", {}).get("core", {})
        remaining = core.get("remaining")
        reset = core.get("reset")
        if remaining is None:
            return None
        logger.info(
            "API rate limit: %d calls remaining (resets at %s)",
            remaining,
            time.strftime("%H:%M:%S", time.localtime(reset)) if reset else "?",
        )
        if remaining < RATE_LIMIT_WARNING_THRESHOLD:
            logger.warning("Low API calls remaining: %d", remaining)
        return remaining

    def _track_rate_limit(self, resp: httpx.Response) -> None:
        remaining = resp.headers.get("X-RateLimit-Remaining")
        reset_ts = resp.headers.get("X-RateLimit-Reset")
        if remaining is not None:
            self._remaining = int(remaining)
        if reset_ts is not None:
            self._reset_at = float(reset_ts)

    def _wait_if_rate_limited(self) -> None:
        """Block until the reset time once the budget drops under the buffer."""
        if self._remaining >= RATE_LIMIT_BUFFER:
            return
        wait = max(0.0, self._reset_at - time.time()) + 5
        logger.info("Only %d API calls left, waiting %.0fs for reset", self._remaining, wait)
        time.sleep(wait)
        self._remaining = RATE_LIMIT_BUFFER

    def _handle_rate_limit_response(self, resp: httpx.Response, attempt: int) -> None:
        """Sleep out a 403/429; ``Retry-After`` wins over ``X-RateLimit-Reset``."""
        if "Retry-After" in resp.headers:
            wait = int(resp.headers["Retry-After"])
        elif self._reset_at:
            wait = int(max(0.0, self._reset_at - time.time())) + 1
        else:
            wait = 60
        logger.warning(
            "Rate limited by %s (HTTP %d), retrying in %ds [%d/%d]",
            resp.request.url.path,
            resp.status_code,
            wait,
            attempt,
            RETRY_MAX,
        )
        time.sleep(wait)
        self._remaining = RATE_LIMIT_BUFFER

    # ── Context manager ─────────────────────────────────────────────────

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
