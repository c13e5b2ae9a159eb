"""Application-only OAuth token management for the Reddit API."""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from subsearch.errors import AuthError, ParseError
from subsearch.models.payloads import TokenResponse

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"


@dataclass(slots=True)
class AccessToken:
    value: str
    expires_at: float

    def is_fresh(self, now: float, buffer: float) -> bool:
        return bool(self.value) and now + buffer < self.expires_at


class RedditAuth:
    """Caches one bearer token and refreshes it single-flight.

    Readers take the fast path without locking while the token is fresh.
    A refresh happens under an ``asyncio.Lock`` with a second freshness
    check, so concurrent callers share the one exchange.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        user_agent: str,
        token_url: str = TOKEN_URL,
        http_client: httpx.AsyncClient | None = None,
        refresh_buffer: float = 300.0,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_agent = user_agent
        self.token_url = token_url
        self.refresh_buffer = refresh_buffer
        self.timeout = timeout
        self._http = http_client
        self._clock = clock
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_token(self) -> str:
        token = self._token
        if token is not None and token.is_fresh(self._clock(), self.refresh_buffer):
            return token.value

        async with self._lock:
            token = self._token
            if token is not None and token.is_fresh(self._clock(), self.refresh_buffer):
                return token.value
            self._token = await self._refresh()
            return self._token.value

    def invalidate(self, rejected: str | None = None) -> None:
        """Drop the cached token.

        With ``rejected`` set, the token is only dropped if it is still the one
        upstream refused. A sibling may already have replaced it, and that fresh
        token must survive a late 401.
        """
        token = self._token
        if token is None:
            return
        if rejected is not None and token.value != rejected:
            return
        self._token = None
        logger.info("Reddit access token invalidated")

    def status(self) -> dict[str, Any]:
        token = self._token
        remaining = None
        if token is not None:
            remaining = max(int(token.expires_at - self._clock()), 0)
        return {
            "configured": self.has_credentials,
            "authenticated": token is not None and token.is_fresh(self._clock(), self.refresh_buffer),
            "expires_in_seconds": remaining,
        }

    async def _refresh(self) -> AccessToken:
        if not self.has_credentials:
            raise AuthError("Reddit API credentials are not configured")

        self.refresh_count += 1
        logger.debug("Requesting new Reddit access token")
        try:
            if self._http is not None:
                response = await self._post(self._http)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client)
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if response.status_code != 200:
            raise AuthError(
                f"Token endpoint returned HTTP {response.status_code}",
                status=response.status_code,
            )

        try:
            payload = TokenResponse.model_validate(response.json())
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            raise ParseError(f"Undecodable token response: {exc}") from exc

        if not payload.access_token:
            detail = f": {payload.error}" if payload.error else ""
            raise AuthError(f"Token response did not include an access token{detail}")

        logger.info(f"Obtained Reddit access token, expires in {int(payload.expires_in)}s")
        return AccessToken(
            value=payload.access_token,
            expires_at=self._clock() + payload.expires_in,
        )

    async def _post(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self.token_url,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            timeout=self.timeout,
        )
