"""Retrieval strategies: one class per way of pulling results from Reddit."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar
from urllib.parse import quote

from loguru import logger

from subsearch.errors import SubsearchError
from subsearch.models.search import QueryIntent, SearchResult
from subsearch.tools.reddit_client import RedditClient

MAX_REQUEST_LIMIT = 100
MAX_TRENDING_COMMUNITIES = 3
SEARCH_SORTS = {"relevance", "hot", "top", "new", "comments"}
LISTING_SORTS = {"hot", "top", "new", "rising"}


class StrategyKind(StrEnum):
    POST_SEARCH = "post_search"
    COMMENT_SEARCH = "comment_search"
    COMMUNITY_SEARCH = "community_search"
    AUTHOR_SEARCH = "author_search"
    TRENDING_SEARCH = "trending_search"


@dataclass(slots=True)
class StrategyContext:
    client: RedditClient
    intent: QueryIntent
    limit: int

    @property
    def request_limit(self) -> int:
        return max(1, min(self.limit, MAX_REQUEST_LIMIT))


class RetrievalStrategy(ABC):
    kind: ClassVar[StrategyKind]

    @abstractmethod
    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        ...

    @abstractmethod
    def describe(self) -> str:
        ...


def _search_sort(sort: str) -> str:
    if sort == "best":
        return "top"
    return sort if sort in SEARCH_SORTS else "relevance"


def matches_keywords(result: SearchResult, keywords: list[str]) -> bool:
    if not keywords:
        return True
    haystack = f"{result.title} {result.content}".lower()
    return any(keyword.lower() in haystack for keyword in keywords)


@dataclass(slots=True)
class PostSearch(RetrievalStrategy):
    kind: ClassVar[StrategyKind] = StrategyKind.POST_SEARCH

    query: str
    sort: str = "relevance"
    timeframe: str = "all"
    communities: tuple[str, ...] = ()

    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        params = {
            "q": self.query,
            "type": "link",
            "limit": ctx.request_limit,
            "sort": _search_sort(self.sort),
            "t": self.timeframe,
        }
        path = "/search.json"
        if self.communities:
            path = f"/r/{'+'.join(self.communities)}/search.json"
            params["restrict_sr"] = "on"
        return await ctx.client.get_listing(path, params)

    def describe(self) -> str:
        scope = f" in r/{'+'.join(self.communities)}" if self.communities else ""
        return f"post search '{self.query}' sort={_search_sort(self.sort)} t={self.timeframe}{scope}"


@dataclass(slots=True)
class CommentSearch(RetrievalStrategy):
    kind: ClassVar[StrategyKind] = StrategyKind.COMMENT_SEARCH

    query: str
    sort: str = "relevance"
    timeframe: str = "all"

    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        params = {
            "q": self.query,
            "type": "comment",
            "limit": ctx.request_limit,
            "sort": _search_sort(self.sort),
            "t": self.timeframe,
        }
        return await ctx.client.get_listing("/search.json", params)

    def describe(self) -> str:
        return f"comment search '{self.query}' sort={_search_sort(self.sort)} t={self.timeframe}"


@dataclass(slots=True)
class CommunitySearch(RetrievalStrategy):
    kind: ClassVar[StrategyKind] = StrategyKind.COMMUNITY_SEARCH

    query: str

    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        params = {"q": self.query, "limit": ctx.request_limit}
        return await ctx.client.get_listing("/subreddits/search.json", params)

    def describe(self) -> str:
        return f"community search '{self.query}'"


@dataclass(slots=True)
class AuthorSearch(RetrievalStrategy):
    kind: ClassVar[StrategyKind] = StrategyKind.AUTHOR_SEARCH

    author: str
    sort: str = "new"
    timeframe: str = "all"

    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        params = {
            "limit": ctx.request_limit,
            "sort": self.sort if self.sort in LISTING_SORTS else "new",
            "t": self.timeframe,
        }
        results = await ctx.client.get_listing(f"/user/{quote(self.author)}.json", params)
        keywords = ctx.intent.filtered_keywords
        return [result for result in results if matches_keywords(result, keywords)]

    def describe(self) -> str:
        return f"author search u/{self.author} sort={self.sort}"


@dataclass(slots=True)
class TrendingSearch(RetrievalStrategy):
    """Probe hot/top listings of a few communities and keep on-topic items.

    With no communities given, the best matches from a community search are
    used, falling back to r/popular.
    """

    kind: ClassVar[StrategyKind] = StrategyKind.TRENDING_SEARCH

    query: str
    sort: str = "hot"
    timeframe: str = "all"
    communities: tuple[str, ...] = field(default=())

    async def execute(self, ctx: StrategyContext) -> list[SearchResult]:
        communities = list(self.communities[:MAX_TRENDING_COMMUNITIES])
        if not communities:
            communities = await self._discover(ctx)

        sort = self.sort if self.sort in LISTING_SORTS else "hot"
        per_community = max(ctx.request_limit // len(communities), 5)
        outcomes = await asyncio.gather(
            *[
                ctx.client.get_listing(
                    f"/r/{quote(community)}/{sort}.json",
                    {"limit": min(per_community, MAX_REQUEST_LIMIT), "t": self.timeframe},
                )
                for community in communities
            ],
            return_exceptions=True,
        )

        results: list[SearchResult] = []
        failures: list[BaseException] = []
        for community, outcome in zip(communities, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning(f"Trending probe r/{community} failed: {outcome}")
                failures.append(outcome)
                continue
            results.extend(outcome)

        if failures and len(failures) == len(communities):
            raise failures[0]

        keywords = ctx.intent.scoring_keywords
        return [result for result in results if matches_keywords(result, keywords)]

    async def _discover(self, ctx: StrategyContext) -> list[str]:
        try:
            found = await ctx.client.get_listing(
                "/subreddits/search.json",
                {"q": self.query, "limit": MAX_TRENDING_COMMUNITIES},
            )
        except SubsearchError as exc:
            logger.warning(f"Community discovery failed, probing r/popular: {exc}")
            return ["popular"]
        names = [result.subreddit for result in found if result.subreddit]
        return names[:MAX_TRENDING_COMMUNITIES] or ["popular"]

    def describe(self) -> str:
        where = "+".join(self.communities) if self.communities else "discovered communities"
        return f"trending search in {where} sort={self.sort} t={self.timeframe}"
