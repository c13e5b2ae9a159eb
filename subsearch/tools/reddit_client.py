"""HTTP access to Reddit listings with auth, retry and bounded concurrency."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from subsearch.errors import AuthError, ParseError, RateLimitError, SubsearchError, UpstreamError
from subsearch.models.search import SearchResult
from subsearch.services.reddit_auth import RedditAuth
from subsearch.tools.reddit_parser import parse_listing
from subsearch.tools.retry import RetryPolicy

OAUTH_BASE_URL = "https://oauth.reddit.com"
PUBLIC_BASE_URL = "https://www.reddit.com"
RATE_LIMIT_RESET_HEADER = "X-Ratelimit-Reset"
RETRYABLE_CLIENT_STATUSES = {408, 425}

Sleep = Callable[[float], Awaitable[Any]]


class RedditClient:
    """Issues GET requests against the Reddit API.

    ``max_concurrency`` caps outbound requests across every caller sharing
    this client. The slot is held per attempt only, never across a backoff
    sleep, so a branch waiting out a 429 does not starve its siblings.
    """

    def __init__(
        self,
        auth: RedditAuth,
        *,
        user_agent: str,
        http_client: httpx.AsyncClient | None = None,
        oauth_base_url: str = OAUTH_BASE_URL,
        public_base_url: str = PUBLIC_BASE_URL,
        max_concurrency: int = 5,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.auth = auth
        self.user_agent = user_agent
        self.oauth_base_url = oauth_base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._semaphore = asyncio.Semaphore(max(max_concurrency, 1))
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def get_listing(self, path: str, params: dict[str, Any] | None = None) -> list[SearchResult]:
        body = await self.fetch(path, params)
        return parse_listing(body)

    async def fetch(self, path: str, params: dict[str, Any] | None = None) -> bytes:
        """GET ``path`` and return the raw body of the first 200 response."""
        policy = self.retry_policy
        query = {"raw_json": 1, **(params or {})}
        token = await self._optional_token()
        delay = policy.base_delay
        wait: float | None = None
        auth_retried = False
        public_fallback = False
        last_error: SubsearchError | None = None

        for attempt in range(1, policy.max_attempts + 1):
            if wait is not None:
                await self._sleep(wait)
                wait = None

            base_url = self.oauth_base_url if token else self.public_base_url
            try:
                async with self._semaphore:
                    response = await self._http.get(
                        base_url + path,
                        params=query,
                        headers=self._headers(token),
                        timeout=self.timeout,
                    )
            except httpx.TransportError as exc:
                last_error = UpstreamError(f"Request to {path} failed: {exc.__class__.__name__}")
                logger.warning(f"Transport error on {path} (attempt {attempt}/{policy.max_attempts}): {exc}")
                wait = policy.sleep_for(delay)
                delay = policy.next_delay(delay)
                continue

            status = response.status_code
            if status == 200:
                return response.content

            if status == 401:
                if not token or auth_retried:
                    raise AuthError(f"Reddit rejected credentials for {path}", status=status)
                auth_retried = True
                self.auth.invalidate(token)
                token = await self.auth.get_token()
                delay = policy.base_delay
                logger.info(f"Refreshed Reddit token after 401 on {path}")
                continue

            if status == 403 and token and not public_fallback:
                public_fallback = True
                token = None
                logger.warning(f"403 on OAuth host for {path}; retrying against public host")
                continue

            if status == 429:
                retry_after = _retry_after(response)
                last_error = RateLimitError(f"Rate limited on {path}", retry_after=retry_after)
                wait = min(retry_after, policy.max_delay) if retry_after else policy.sleep_for(delay)
                delay = policy.next_delay(delay)
                logger.warning(
                    f"429 on {path} (attempt {attempt}/{policy.max_attempts}), waiting {wait:.2f}s"
                )
                continue

            if status >= 500 or status in RETRYABLE_CLIENT_STATUSES:
                last_error = UpstreamError(f"Reddit returned HTTP {status} for {path}", status=status)
                wait = policy.sleep_for(delay)
                delay = policy.next_delay(delay)
                logger.warning(f"HTTP {status} on {path} (attempt {attempt}/{policy.max_attempts})")
                continue

            raise UpstreamError(f"Reddit returned HTTP {status} for {path}", status=status)

        if last_error is None:
            last_error = UpstreamError(f"Retries exhausted for {path}")
        raise last_error

    async def _optional_token(self) -> str | None:
        if not self.auth.has_credentials:
            return None
        try:
            return await self.auth.get_token()
        except (AuthError, ParseError) as exc:
            logger.warning(f"Continuing without Reddit token: {exc}")
            return None

    def _headers(self, token: str | None) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get(RATE_LIMIT_RESET_HEADER) or response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds > 0 else None
