"""Fan a query out to retrieval strategies and merge what comes back."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

from loguru import logger

from subsearch.errors import (
    AuthError,
    RateLimitError,
    SearchTimeoutError,
    SubsearchError,
    UpstreamError,
    ValidationError,
)
from subsearch.models.search import IntentType, QueryIntent, SearchMode, SearchResult
from subsearch.services.query_analyzer import QueryAnalyzer, communities_for_categories
from subsearch.services import logger as log_service
from subsearch.services.relevance import RelevanceRanker
from subsearch.services.result_cache import ResultCache, cache_key
from subsearch.tools.reddit_client import RedditClient
from subsearch.tools.strategies import (
    AuthorSearch,
    CommentSearch,
    CommunitySearch,
    PostSearch,
    RetrievalStrategy,
    StrategyContext,
    TrendingSearch,
)

DEFAULT_LIMIT = 25
MAX_LIMIT = 100
MAX_QUERY_LENGTH = 512


@dataclass(slots=True)
class BranchOutcome:
    strategy: RetrievalStrategy
    results: list[SearchResult] = field(default_factory=list)
    error: BaseException | None = None


@dataclass(slots=True)
class SearchOutcome:
    intent: QueryIntent
    mode: SearchMode
    limit: int
    results: list[SearchResult] = field(default_factory=list)
    from_cache: bool = False


def plan_strategies(intent: QueryIntent, mode: SearchMode) -> list[RetrievalStrategy]:
    """Choose the strategies for one query; the first entry has dedup priority."""
    terms = intent.search_terms
    timeframe = intent.timeframe.value

    if mode == SearchMode.POSTS:
        return [PostSearch(terms, sort=intent.sort, timeframe=timeframe, communities=tuple(intent.communities))]
    if mode == SearchMode.COMMENTS:
        return [CommentSearch(terms, sort=intent.sort, timeframe=timeframe)]
    if mode == SearchMode.COMMUNITIES:
        return [CommunitySearch(" ".join(intent.communities) or terms)]

    match intent.intent_type:
        case IntentType.COMMUNITY:
            return [
                PostSearch(terms, sort=intent.sort, timeframe=timeframe, communities=tuple(intent.communities)),
                CommunitySearch(" ".join(intent.communities)),
            ]
        case IntentType.COMMENT:
            return [
                CommentSearch(terms, sort=intent.sort, timeframe=timeframe),
                PostSearch(terms, sort=intent.sort, timeframe=timeframe),
            ]
        case IntentType.POST:
            return [
                PostSearch(terms, sort=intent.sort, timeframe=timeframe),
                CommentSearch(terms, sort=intent.sort, timeframe=timeframe),
            ]
        case IntentType.AUTHOR:
            strategies: list[RetrievalStrategy] = [
                AuthorSearch(author, sort="top" if intent.has_ranking_aspect else "new", timeframe=timeframe)
                for author in intent.authors
            ]
            if intent.keywords:
                strategies.append(PostSearch(terms, sort=intent.sort, timeframe=timeframe))
            return strategies
        case IntentType.TIME_BASED | IntentType.RANKING | IntentType.TRENDING:
            listing_sort = "top" if intent.has_ranking_aspect else ("new" if intent.sort == "new" else "hot")
            return [
                PostSearch(terms, sort=intent.sort, timeframe=timeframe),
                TrendingSearch(
                    terms,
                    sort=listing_sort,
                    timeframe=timeframe,
                    communities=tuple(communities_for_categories(intent.categories)),
                ),
                CommentSearch(terms, sort=intent.sort, timeframe=timeframe),
            ]
        case _:
            return [
                PostSearch(terms, sort=intent.sort, timeframe=timeframe),
                CommentSearch(terms, sort=intent.sort, timeframe=timeframe),
                CommunitySearch(terms),
            ]


def dedupe_results(outcomes: list[BranchOutcome]) -> list[SearchResult]:
    """Union of branch results; the first occurrence of a (type, id) pair wins."""
    merged: list[SearchResult] = []
    seen: set[tuple[str, str]] = set()
    for outcome in outcomes:
        for result in outcome.results:
            if result.key in seen:
                continue
            seen.add(result.key)
            merged.append(result)
    return merged


class SearchOrchestrator:
    def __init__(
        self,
        client: RedditClient,
        cache: ResultCache,
        *,
        analyzer: QueryAnalyzer | None = None,
        ranker: RelevanceRanker | None = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        timeout: float | None = 20.0,
        cache_ttl: float | None = None,
        time_sensitive_ttl: float | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.analyzer = analyzer or QueryAnalyzer()
        self.ranker = ranker or RelevanceRanker()
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.timeout = timeout
        self.cache_ttl = cache_ttl if cache_ttl is not None else cache.default_ttl
        self.time_sensitive_ttl = time_sensitive_ttl if time_sensitive_ttl is not None else self.cache_ttl

    async def search(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.ALL,
        limit: int | None = None,
        *,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        outcome = await self.search_detailed(query, mode, limit, timeout=timeout)
        return outcome.results

    async def search_detailed(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.ALL,
        limit: int | None = None,
        *,
        timeout: float | None = None,
    ) -> SearchOutcome:
        """Like ``search`` but also returns the analysed intent and cache status."""
        query, mode, limit = self._validate(query, mode, limit)
        intent = self.analyzer.analyze(query)

        key = cache_key(query, mode.value, limit)
        cached, found = self.cache.get(key)
        if found:
            log_service.log_search(
                query=query,
                intent=intent.intent_type.value,
                mode=mode.value,
                result_count=len(cached),
                cached=True,
            )
            return SearchOutcome(intent=intent, mode=mode, limit=limit, results=list(cached), from_cache=True)

        strategies = plan_strategies(intent, mode)
        logger.info(
            f"Searching '{query}' intent={intent.intent_type.value} with "
            + "; ".join(strategy.describe() for strategy in strategies)
        )

        started = time.monotonic()
        branches = await self._run_branches(
            strategies, intent, limit, timeout if timeout is not None else self.timeout
        )
        ranked = self.ranker.rank(dedupe_results(branches), intent, limit)

        log_service.log_search(
            query=query,
            intent=intent.intent_type.value,
            mode=mode.value,
            result_count=len(ranked),
            branches=len(branches),
            failed_branches=sum(1 for branch in branches if branch.error is not None),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        if ranked:
            ttl = self.time_sensitive_ttl if intent.is_time_sensitive else self.cache_ttl
            self.cache.set_with_ttl(key, list(ranked), ttl)
        return SearchOutcome(intent=intent, mode=mode, limit=limit, results=ranked)

    def _validate(self, query: str, mode: SearchMode | str, limit: int | None) -> tuple[str, SearchMode, int]:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query must be a non-empty string")
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(f"Query must be at most {MAX_QUERY_LENGTH} characters")

        try:
            mode = SearchMode(mode)
        except ValueError:
            valid = ", ".join(m.value for m in SearchMode)
            raise ValidationError(f"Unknown search mode '{mode}', expected one of: {valid}") from None

        if limit is None:
            limit = self.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= self.max_limit:
            raise ValidationError(f"Limit must be an integer between 1 and {self.max_limit}")
        return query.strip(), mode, limit

    async def _run_branches(
        self,
        strategies: list[RetrievalStrategy],
        intent: QueryIntent,
        limit: int,
        timeout: float | None,
    ) -> list[BranchOutcome]:
        if not strategies:
            return []
        ctx = StrategyContext(client=self.client, intent=intent, limit=limit)
        outcomes = [BranchOutcome(strategy=strategy) for strategy in strategies]
        tasks = {
            asyncio.create_task(strategy.execute(ctx), name=strategy.kind.value): outcome
            for strategy, outcome in zip(strategies, outcomes)
        }

        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        for task in done:
            outcome = tasks[task]
            error = task.exception()
            if error is None:
                outcome.results = task.result()
            else:
                outcome.error = error
                logger.warning(f"Branch {outcome.strategy.describe()} failed: {error}")

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            for task in pending:
                tasks[task].error = SearchTimeoutError(f"{tasks[task].strategy.kind.value} did not finish in time")

        succeeded = [outcome for outcome in outcomes if outcome.error is None]
        if succeeded:
            return outcomes

        if pending:
            raise SearchTimeoutError(f"Search timed out after {timeout}s with no successful branch")
        raise _aggregate_failure([outcome.error for outcome in outcomes if outcome.error is not None])


def _aggregate_failure(errors: list[BaseException]) -> SubsearchError:
    for error_type in (RateLimitError, AuthError):
        if errors and all(isinstance(error, error_type) for error in errors):
            return errors[0]
    logger.error(f"All {len(errors)} search branches failed")
    return UpstreamError(
        f"All {len(errors)} search branches failed: " + "; ".join(str(error) for error in errors),
        errors=[error for error in errors if isinstance(error, Exception)],
    )
