from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ResultType(StrEnum):
    POST = "post"
    COMMENT = "comment"
    COMMUNITY = "community"


class SearchMode(StrEnum):
    ALL = "All"
    POSTS = "Posts"
    COMMENTS = "Comments"
    COMMUNITIES = "Communities"


class IntentType(StrEnum):
    GENERAL = "general"
    COMMUNITY = "community"
    POST = "post"
    COMMENT = "comment"
    AUTHOR = "author"
    TIME_BASED = "time_based"
    TRENDING = "trending"
    RANKING = "ranking"
    COMPARISON = "comparison"


class Timeframe(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


@dataclass(slots=True)
class SearchResult:
    id: str
    title: str
    type: ResultType
    subreddit: str = ""
    author: str = ""
    content: str = ""
    url: str = ""
    created_utc: float = 0.0
    score: int = 0
    num_comments: int = 0
    highlights: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return (self.type.value, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "subreddit": self.subreddit,
            "author": self.author,
            "content": self.content,
            "url": self.url,
            "created_utc": self.created_utc,
            "score": self.score,
            "num_comments": self.num_comments,
            "highlights": list(self.highlights),
        }


@dataclass(slots=True)
class QueryIntent:
    query: str
    intent_type: IntentType = IntentType.GENERAL
    communities: list[str] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
    excluded_terms: list[str] = field(default_factory=list)
    timeframe: Timeframe = Timeframe.ALL
    sort: str = "relevance"
    is_time_sensitive: bool = False
    has_ranking_aspect: bool = False
    requested_quantity: int | None = None
    categories: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    filtered_keywords: list[str] = field(default_factory=list)

    @property
    def search_terms(self) -> str:
        """Query text sent upstream: keywords when there are any, else the raw query."""
        if self.keywords:
            return " ".join(self.keywords)
        return self.query.strip()

    @property
    def scoring_keywords(self) -> list[str]:
        return self.filtered_keywords or self.keywords


@dataclass(slots=True)
class ReasoningStep:
    title: str
    content: str


@dataclass(slots=True)
class Citation:
    index: int
    text: str
    url: str
    title: str
    type: ResultType
    subreddit: str = ""


@dataclass(slots=True)
class AnswerExtraction:
    reasoning: str
    steps: list[ReasoningStep] = field(default_factory=list)
    answer: str = ""
    citations: list[Citation] = field(default_factory=list)
