"""Relevance scoring, ordering and type diversification of search results."""
from __future__ import annotations

import math
import time
from collections import Counter
from dataclasses import dataclass

from subsearch.models.search import IntentType, QueryIntent, ResultType, SearchResult, Timeframe
from subsearch.services.highlights import extract_highlights
from subsearch.services.query_analyzer import CATEGORY_COMMUNITIES

TYPE_MATCH_BONUS = 100.0
AUTHOR_MATCH_BONUS = 80.0
TITLE_KEYWORD_WEIGHT = 30.0
CONTENT_KEYWORD_WEIGHT = 12.0
CONTENT_KEYWORD_CAP = 24.0
KEYWORD_COVERAGE_WEIGHT = 50.0
SCORE_ENGAGEMENT_WEIGHT = 20.0
COMMENT_ENGAGEMENT_WEIGHT = 15.0
RECENCY_WEIGHT = 50.0
EXCLUSION_PENALTY = 1000.0
COMMUNITY_MATCH_BONUS = 80.0
CATEGORY_MATCH_BONUS = 25.0

DIVERSITY_SHARE = 0.6
MIN_RESULTS_FOR_DIVERSITY = 6

# Recency half-life in days per requested timeframe.
RECENCY_HALF_LIFE_DAYS = {
    Timeframe.DAY: 0.5,
    Timeframe.WEEK: 3.0,
    Timeframe.MONTH: 10.0,
    Timeframe.YEAR: 120.0,
    Timeframe.ALL: 365.0,
}

INTENT_RESULT_TYPES = {
    IntentType.POST: ResultType.POST,
    IntentType.COMMENT: ResultType.COMMENT,
    IntentType.COMMUNITY: ResultType.COMMUNITY,
}

_SECONDS_PER_DAY = 86400.0


@dataclass(slots=True)
class ScoredResult:
    result: SearchResult
    score: float
    position: int


class RelevanceRanker:
    """Additive, side-effect free scorer. ``now`` is injectable for reproducible runs."""

    def __init__(self, *, diversity_share: float = DIVERSITY_SHARE) -> None:
        self.diversity_share = diversity_share

    def rank(
        self,
        results: list[SearchResult],
        intent: QueryIntent,
        limit: int,
        *,
        now: float | None = None,
    ) -> list[SearchResult]:
        if not results or limit <= 0:
            return []
        now = time.time() if now is None else now

        scored = self.order(results, intent, now=now)
        kept = [item for item in scored if item.score >= 0] or scored
        selected = diversify(kept, limit, share=self.diversity_share)

        keywords = intent.keywords
        for item in selected:
            item.result.highlights = extract_highlights(item.result.content, keywords)
        return [item.result for item in selected]

    def order(self, results: list[SearchResult], intent: QueryIntent, *, now: float) -> list[ScoredResult]:
        """Score every result and sort descending, ties broken by retrieval order."""
        scored = [
            ScoredResult(result=result, score=self.score(result, intent, now=now), position=position)
            for position, result in enumerate(results)
        ]
        scored.sort(key=lambda item: (-item.score, item.position))
        return scored

    def score(self, result: SearchResult, intent: QueryIntent, *, now: float) -> float:
        total = 0.0
        total += _type_bonus(result, intent)
        total += _keyword_score(result, intent.scoring_keywords)
        total += _engagement_score(result)
        total += _recency_score(result, intent, now)
        total += _community_bonus(result, intent)
        total -= _exclusion_penalty(result, intent.excluded_terms)
        return total


def _type_bonus(result: SearchResult, intent: QueryIntent) -> float:
    wanted = INTENT_RESULT_TYPES.get(intent.intent_type)
    bonus = TYPE_MATCH_BONUS if wanted is not None and result.type == wanted else 0.0
    if intent.authors and result.author.lower() in {a.lower() for a in intent.authors}:
        bonus += AUTHOR_MATCH_BONUS
    return bonus


def _keyword_score(result: SearchResult, keywords: list[str]) -> float:
    if not keywords:
        return 0.0
    title = result.title.lower()
    content = result.content.lower()
    total = 0.0
    matched = 0
    for keyword in keywords:
        term = keyword.lower()
        hit = False
        if term in title:
            total += TITLE_KEYWORD_WEIGHT
            hit = True
        occurrences = content.count(term)
        if occurrences:
            total += min(CONTENT_KEYWORD_WEIGHT * (1.0 + math.log10(occurrences)), CONTENT_KEYWORD_CAP)
            hit = True
        if hit:
            matched += 1
    return total + KEYWORD_COVERAGE_WEIGHT * matched / len(keywords)


def _engagement_score(result: SearchResult) -> float:
    total = 0.0
    if result.score > 0:
        total += math.log10(result.score + 10) * SCORE_ENGAGEMENT_WEIGHT
    if result.num_comments > 0:
        total += math.log10(result.num_comments + 10) * COMMENT_ENGAGEMENT_WEIGHT
    return total


def _recency_score(result: SearchResult, intent: QueryIntent, now: float) -> float:
    if result.created_utc <= 0:
        return 0.0
    age_days = max(now - result.created_utc, 0.0) / _SECONDS_PER_DAY
    half_life = RECENCY_HALF_LIFE_DAYS[intent.timeframe]
    weight = RECENCY_WEIGHT * (2.0 if intent.intent_type == IntentType.TIME_BASED else 1.0)
    return weight * math.pow(0.5, age_days / half_life)


def _community_bonus(result: SearchResult, intent: QueryIntent) -> float:
    community = result.subreddit.lower()
    if not community:
        return 0.0
    if community in {c.lower() for c in intent.communities}:
        return COMMUNITY_MATCH_BONUS
    for category in intent.categories:
        if community in {c.lower() for c in CATEGORY_COMMUNITIES.get(category, ())}:
            return CATEGORY_MATCH_BONUS
    return 0.0


def _exclusion_penalty(result: SearchResult, excluded_terms: list[str]) -> float:
    if not excluded_terms:
        return 0.0
    haystack = f"{result.title} {result.content}".lower()
    return EXCLUSION_PENALTY * sum(1 for term in excluded_terms if term.lower() in haystack)


def diversify(scored: list[ScoredResult], limit: int, *, share: float = DIVERSITY_SHARE) -> list[ScoredResult]:
    """Pick at most ``limit`` results so no type holds more than ``ceil(share * N)`` of N.

    Small or single-type sets are only truncated. Otherwise the output is
    seeded with the best result, then one result of every other type is
    pulled from the upper half of the ranking, then the remaining slots are
    filled by score. When one type dominates, N shrinks until the cap holds.
    """
    types = Counter(item.result.type for item in scored)
    if len(scored) < MIN_RESULTS_FOR_DIVERSITY or len(types) < 2:
        return scored[:limit]

    size = min(limit, len(scored))
    while size > 1:
        cap = math.ceil(share * size)
        if sum(min(count, cap) for count in types.values()) >= size:
            break
        size -= 1
    cap = math.ceil(share * size)

    chosen: list[ScoredResult] = [scored[0]]
    per_type = Counter({scored[0].result.type: 1})

    upper_half = scored[1 : max(len(scored) // 2, 2)]
    for item in upper_half:
        if len(chosen) >= size:
            break
        if per_type[item.result.type] == 0:
            chosen.append(item)
            per_type[item.result.type] += 1

    picked = {id(item) for item in chosen}
    for item in scored[1:]:
        if len(chosen) >= size:
            break
        if id(item) in picked or per_type[item.result.type] >= cap:
            continue
        chosen.append(item)
        per_type[item.result.type] += 1

    chosen.sort(key=lambda item: (-item.score, item.position))
    return chosen
