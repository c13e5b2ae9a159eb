"""Tests for Reddit token acquisition and refresh."""
import asyncio

import httpx
import pytest

from subsearch.errors import AuthError, ParseError
from subsearch.services.reddit_auth import AccessToken, RedditAuth


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _auth(handler, clock=None, **kwargs) -> RedditAuth:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RedditAuth(
        "client-id",
        "client-secret",
        user_agent="test-agent",
        http_client=http,
        clock=clock or FakeClock(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_get_token_posts_client_credentials():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["auth"] = request.headers.get("authorization", "")
        seen["agent"] = request.headers.get("user-agent")
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})

    auth = _auth(handler)
    token = await auth.get_token()

    assert token == "tok-1"
    assert seen["method"] == "POST"
    assert seen["auth"].startswith("Basic ")
    assert seen["agent"] == "test-agent"
    assert "grant_type=client_credentials" in seen["body"]


@pytest.mark.asyncio
async def test_cached_token_is_reused_until_refresh_buffer():
    calls = 0
    clock = FakeClock()

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"access_token": f"tok-{calls}", "expires_in": 3600})

    auth = _auth(handler, clock=clock, refresh_buffer=300)
    assert await auth.get_token() == "tok-1"

    clock.now = 3000
    assert await auth.get_token() == "tok-1"

    clock.now = 3301
    assert await auth.get_token() == "tok-2"
    assert calls == 2


@pytest.mark.asyncio
async def test_concurrent_callers_trigger_single_refresh():
    calls = 0

    async def handler(request):
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return httpx.Response(200, json={"access_token": "shared", "expires_in": 3600})

    auth = _auth(handler)
    auth._token = AccessToken(value="stale", expires_at=-1)

    tokens = await asyncio.gather(*[auth.get_token() for _ in range(20)])

    assert calls == 1
    assert auth.refresh_count == 1
    assert set(tokens) == {"shared"}


@pytest.mark.asyncio
async def test_invalidate_forces_refresh():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"access_token": f"tok-{calls}", "expires_in": 3600})

    auth = _auth(handler)
    assert await auth.get_token() == "tok-1"
    auth.invalidate()
    assert await auth.get_token() == "tok-2"


@pytest.mark.asyncio
async def test_invalidate_ignores_token_that_was_already_replaced():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"access_token": f"tok-{calls}", "expires_in": 3600})

    auth = _auth(handler)
    assert await auth.get_token() == "tok-1"
    auth.invalidate("tok-1")
    assert await auth.get_token() == "tok-2"

    # A late rejection of the old token must not discard the new one.
    auth.invalidate("tok-1")
    assert await auth.get_token() == "tok-2"
    assert calls == 2


@pytest.mark.asyncio
async def test_non_success_status_raises_auth_error():
    auth = _auth(lambda request: httpx.Response(401, json={"error": "invalid_client"}))
    with pytest.raises(AuthError):
        await auth.get_token()


@pytest.mark.asyncio
async def test_missing_token_value_raises_auth_error():
    auth = _auth(lambda request: httpx.Response(200, json={"error": "unsupported_grant_type"}))
    with pytest.raises(AuthError, match="unsupported_grant_type"):
        await auth.get_token()


@pytest.mark.asyncio
async def test_undecodable_payload_raises_parse_error():
    auth = _auth(lambda request: httpx.Response(200, content=b"<html>nope</html>"))
    with pytest.raises(ParseError):
        await auth.get_token()


@pytest.mark.asyncio
async def test_missing_credentials_raise_auth_error():
    auth = RedditAuth("", "", user_agent="test-agent")
    assert auth.has_credentials is False
    with pytest.raises(AuthError):
        await auth.get_token()


@pytest.mark.asyncio
async def test_status_reports_token_state():
    clock = FakeClock()
    auth = _auth(
        lambda request: httpx.Response(200, json={"access_token": "t", "expires_in": 3600}),
        clock=clock,
    )
    assert auth.status() == {"configured": True, "authenticated": False, "expires_in_seconds": None}

    await auth.get_token()
    clock.now = 100
    status = auth.status()
    assert status["authenticated"] is True
    assert status["expires_in_seconds"] == 3500
