import aiohttp
import asyncio
import logging
import random
from typing import Any, Dict, Mapping, Optional

from github_exporter.domain.exceptions import (
    AuthError,
    NotFound,
    RateLimited,
    Transient,
    WouldExceedBudget,
)
from github_exporter.infrastructure.clock import Clock, SYSTEM_CLOCK
from github_exporter.infrastructure.rate_budget import RateBudget

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30
MAX_RETRIES = 3
# Used when a secondary rate limit carries neither Retry-After nor a reset header
DEFAULT_RATE_LIMIT_WAIT = 60


class GitHubRestClient:
    """
    Client for the GitHub REST API.
    Every call is permitted by the shared RateBudget, classified into the
    FetchError taxonomy and retried locally only when Transient.
    """

    def __init__(
        self,
        token: str,
        rate_budget: RateBudget,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = SYSTEM_CLOCK,
    ):
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "github-exporter",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.api_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=min(10, timeout))
        self.rate_budget = rate_budget
        self.clock = clock

    async def get_json(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Fetches and decodes one API resource.

        Args:
            session (aiohttp.ClientSession): Session shared by the scheduler's fetches.
            path (str): Path relative to the API root, e.g. ``repos/octocat/Hello-World``.
            params (Optional[Dict[str, Any]]): Query string parameters.

        Returns:
            Any: The decoded JSON body.

        Raises:
            FetchError: NotFound, AuthError, RateLimited, or Transient once retries are spent.
        """
        for attempt in range(MAX_RETRIES):
            try:
                return await self._get_once(session, path, params)
            except Transient as e:
                if attempt + 1 >= MAX_RETRIES:
                    raise
                sleep_time = (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    f"Transient failure on {path} (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                    f"Retrying in {sleep_time:.1f}s..."
                )
                await self.clock.sleep(sleep_time)

        raise Transient(f"Failed to fetch {path} after {MAX_RETRIES} attempts.")

    async def _get_once(self, session, path, params) -> Any:
        try:
            self.rate_budget.reserve(1)
        except WouldExceedBudget as e:
            raise RateLimited(reset_at=e.reset_at, message="Local rate budget exhausted.") from e

        url = f"{self.api_url}/{path.lstrip('/')}"
        try:
            async with session.get(url, params=params, headers=self.headers, timeout=self.timeout) as response:
                self._record_rate_limit(response.headers)

                if 200 <= response.status < 300:
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise Transient(f"Malformed JSON from {path}: {e}") from e

                self._raise_for_status(path, response.status, response.headers)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise Transient(f"Request to {path} failed: {e!r}") from e

    def _record_rate_limit(self, headers: Mapping[str, str]) -> None:
        remaining = _int_header(headers, "X-RateLimit-Remaining")
        reset_at = _int_header(headers, "X-RateLimit-Reset")
        if remaining is not None and reset_at is not None:
            self.rate_budget.record_response(remaining, reset_at)

    def _raise_for_status(self, path: str, status: int, headers: Mapping[str, str]) -> None:
        if status in (404, 410):
            raise NotFound(f"{path} not found ({status}).")

        if status == 401:
            raise AuthError(f"Bad credentials for {path} (401).")

        if status in (403, 429):
            retry_after = _int_header(headers, "Retry-After")
            remaining = _int_header(headers, "X-RateLimit-Remaining")
            reset_at = _int_header(headers, "X-RateLimit-Reset")

            if retry_after is not None:
                raise RateLimited(reset_at=self.clock.time() + retry_after,
                                  message=f"Secondary rate limit on {path} ({status}).")
            if remaining == 0 or status == 429:
                if reset_at is None:
                    reset_at = self.clock.time() + DEFAULT_RATE_LIMIT_WAIT
                raise RateLimited(reset_at=reset_at, message=f"Rate limit hit on {path} ({status}).")

            raise AuthError(f"Forbidden: {path} (403).")

        if status >= 500:
            raise Transient(f"Server error on {path} ({status}).")

        raise Transient(f"Unexpected status on {path} ({status}).")


def _int_header(headers: Mapping[str, str], name: str) -> Optional[int]:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
