"""Service container built once at startup and handed to routes via ``Depends``."""
from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from subsearch.config import Settings
from subsearch.llm_client import get_client
from subsearch.services.answer_service import AnswerService
from subsearch.services.model_registry import ModelRegistry, build_registry
from subsearch.services.query_analyzer import QueryAnalyzer
from subsearch.services.reddit_auth import RedditAuth
from subsearch.services.relevance import RelevanceRanker
from subsearch.services.result_cache import ResultCache
from subsearch.services.search_orchestrator import SearchOrchestrator
from subsearch.tools.reddit_client import RedditClient
from subsearch.tools.retry import RetryPolicy, uniform_jitter


@dataclass(slots=True)
class SearchServices:
    http: httpx.AsyncClient
    auth: RedditAuth
    cache: ResultCache
    client: RedditClient
    orchestrator: SearchOrchestrator
    answers: AnswerService
    registry: ModelRegistry

    async def aclose(self) -> None:
        self.cache.close()
        await self.client.aclose()
        await self.http.aclose()


def build_services(settings: Settings) -> SearchServices:
    http = httpx.AsyncClient(timeout=settings.reddit_request_timeout_seconds)
    retry_policy = RetryPolicy(
        max_retries=settings.retry_max_retries,
        base_delay=settings.retry_base_delay_seconds,
        multiplier=settings.retry_multiplier,
        max_delay=settings.retry_max_delay_seconds,
        jitter=uniform_jitter(settings.retry_jitter_ratio),
    )

    auth = RedditAuth(
        settings.reddit_client_id,
        settings.reddit_client_secret,
        user_agent=settings.reddit_user_agent,
        token_url=settings.reddit_token_url,
        http_client=http,
        refresh_buffer=settings.token_refresh_buffer_seconds,
        timeout=settings.reddit_request_timeout_seconds,
    )
    cache = ResultCache(
        max_items=settings.cache_max_items,
        max_size_bytes=settings.cache_max_size_bytes,
        default_ttl=settings.cache_ttl_seconds,
        cleanup_interval=settings.cache_cleanup_interval_seconds,
    )
    client = RedditClient(
        auth,
        user_agent=settings.reddit_user_agent,
        http_client=http,
        oauth_base_url=settings.reddit_oauth_base_url,
        public_base_url=settings.reddit_public_base_url,
        max_concurrency=settings.search_max_concurrency,
        retry_policy=retry_policy,
        timeout=settings.reddit_request_timeout_seconds,
    )
    orchestrator = SearchOrchestrator(
        client,
        cache,
        analyzer=QueryAnalyzer(),
        ranker=RelevanceRanker(),
        default_limit=settings.search_default_limit,
        max_limit=settings.search_max_limit,
        timeout=settings.search_timeout_seconds,
        cache_ttl=settings.cache_ttl_seconds,
        time_sensitive_ttl=settings.cache_time_sensitive_ttl_seconds,
    )
    registry = build_registry(settings)
    answers = AnswerService(
        get_client(),
        registry=registry,
        retry_policy=RetryPolicy(
            max_retries=max(settings.llm_max_retries - 1, 0),
            base_delay=settings.retry_base_delay_seconds,
            jitter=uniform_jitter(settings.retry_jitter_ratio),
        ),
    )
    return SearchServices(
        http=http,
        auth=auth,
        cache=cache,
        client=client,
        orchestrator=orchestrator,
        answers=answers,
        registry=registry,
    )


def get_services(request: Request) -> SearchServices:
    return request.app.state.services
