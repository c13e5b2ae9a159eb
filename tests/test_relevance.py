"""Tests for relevance scoring and diversification."""
import math

import pytest

from subsearch.models.search import IntentType, QueryIntent, ResultType, SearchResult, Timeframe
from subsearch.services.query_analyzer import QueryAnalyzer
from subsearch.services.relevance import RelevanceRanker, ScoredResult, diversify

NOW = 1_700_000_000.0
DAY = 86400.0


def _result(rid, rtype=ResultType.POST, title="", content="", **kwargs):
    return SearchResult(id=rid, title=title or f"title {rid}", type=rtype, content=content, **kwargs)


@pytest.fixture
def ranker():
    return RelevanceRanker()


def _intent(query):
    return QueryAnalyzer().analyze(query)


def test_title_match_outweighs_content_match(ranker):
    intent = _intent("keyboard switches")
    in_title = _result("a", title="Keyboard switches explained")
    in_content = _result("b", title="Something", content="keyboard keyboard keyboard switches switches switches")

    assert ranker.score(in_title, intent, now=NOW) > ranker.score(in_content, intent, now=NOW)


def test_content_repetition_has_diminishing_returns(ranker):
    intent = _intent("keyboard")
    once = ranker.score(_result("a", title="x", content="keyboard"), intent, now=NOW)
    ten = ranker.score(_result("b", title="x", content="keyboard " * 10), intent, now=NOW)
    hundred = ranker.score(_result("c", title="x", content="keyboard " * 100), intent, now=NOW)

    assert once < ten <= hundred
    assert hundred - ten <= ten - once


def test_engagement_is_logarithmic(ranker):
    intent = _intent("cats")
    low = ranker.score(_result("a", score=100), intent, now=NOW)
    high = ranker.score(_result("b", score=100_000), intent, now=NOW)
    assert high > low
    assert high - low < 70


def test_exclusion_penalty_dominates(ranker):
    intent = _intent("python tutorials -django")
    clean = _result("a", title="Python tutorials", score=5)
    excluded = _result("b", title="Python tutorials for Django", score=50_000)
    assert ranker.score(excluded, intent, now=NOW) < 0 < ranker.score(clean, intent, now=NOW)


def test_recency_decay_depends_on_timeframe(ranker):
    day_intent = _intent("news today")
    all_intent = _intent("news")
    old = _result("a", created_utc=NOW - 3 * DAY)
    fresh = _result("b", created_utc=NOW - 0.1 * DAY)

    day_gap = ranker.score(fresh, day_intent, now=NOW) - ranker.score(old, day_intent, now=NOW)
    all_gap = ranker.score(fresh, all_intent, now=NOW) - ranker.score(old, all_intent, now=NOW)
    assert day_gap > all_gap > 0


def test_type_and_community_bonuses(ranker):
    intent = _intent("r/python packaging")
    inside = _result("a", title="packaging", subreddit="Python")
    outside = _result("b", title="packaging", subreddit="learnprogramming")
    assert ranker.score(inside, intent, now=NOW) > ranker.score(outside, intent, now=NOW)

    comment_intent = _intent("comments about packaging")
    comment = _result("c", ResultType.COMMENT, title="packaging")
    post = _result("d", ResultType.POST, title="packaging")
    assert ranker.score(comment, comment_intent, now=NOW) - ranker.score(post, comment_intent, now=NOW) == pytest.approx(100)


def test_rank_is_deterministic_and_stable(ranker):
    intent = _intent("mechanical keyboard")
    results = [
        _result(f"r{i}", [ResultType.POST, ResultType.COMMENT, ResultType.COMMUNITY][i % 3],
                title="mechanical keyboard" if i % 2 else "keyboard", score=i * 3, created_utc=NOW - i * DAY)
        for i in range(12)
    ]

    first = [r.id for r in ranker.rank(list(results), intent, 8, now=NOW)]
    second = [r.id for r in ranker.rank(list(results), intent, 8, now=NOW)]
    assert first == second

    ties = [_result("x"), _result("y"), _result("z")]
    assert [r.id for r in ranker.rank(ties, intent, 3, now=NOW)] == ["x", "y", "z"]


def _scored(types):
    return [
        ScoredResult(result=_result(f"r{i}", t), score=100.0 - i, position=i)
        for i, t in enumerate(types)
    ]


@pytest.mark.parametrize(
    "types,limit",
    [
        ([ResultType.POST] * 10 + [ResultType.COMMENT] * 2, 10),
        ([ResultType.POST] * 10 + [ResultType.COMMENT], 10),
        ([ResultType.POST, ResultType.COMMENT, ResultType.COMMUNITY] * 4, 6),
        ([ResultType.COMMENT] * 4 + [ResultType.POST] * 4, 8),
        ([ResultType.POST] * 20 + [ResultType.COMMUNITY] * 20, 25),
    ],
)
def test_diversify_caps_each_type(types, limit):
    selected = diversify(_scored(types), limit)
    n = len(selected)
    assert 0 < n <= limit
    cap = math.ceil(0.6 * n)
    for rtype in set(types):
        assert sum(1 for item in selected if item.result.type == rtype) <= cap


def test_diversify_seeds_top_and_backfills_missing_types():
    types = [ResultType.POST] * 6 + [ResultType.COMMENT] + [ResultType.POST] * 5
    selected = diversify(_scored(types), 5)

    ids = [item.result.id for item in selected]
    assert ids[0] == "r0"
    assert "r6" in ids
    assert [item.score for item in selected] == sorted((item.score for item in selected), reverse=True)


def test_diversify_leaves_single_type_and_small_sets_alone():
    posts = _scored([ResultType.POST] * 10)
    assert len(diversify(posts, 8)) == 8

    small = _scored([ResultType.POST] * 4 + [ResultType.COMMENT])
    assert len(diversify(small, 5)) == 5


def test_rank_attaches_highlights_and_truncates(ranker):
    intent = _intent("sourdough starter")
    results = [
        _result(
            f"r{i}",
            title="Sourdough starter tips",
            content="Feed your sourdough starter daily. It likes warmth. Keep the sourdough starter jar loose because sourdough needs air.",
            score=10 + i,
        )
        for i in range(5)
    ]
    ranked = ranker.rank(results, intent, 3, now=NOW)

    assert len(ranked) == 3
    assert ranked[0].highlights[0] == "Keep the sourdough starter jar loose because sourdough needs air."
    assert ranked[0].highlights[1] == "Feed your sourdough starter daily."
    assert all(r.highlights for r in ranked)


def test_rank_drops_excluded_results_unless_all_are_excluded(ranker):
    intent = _intent("python -django")
    keep = _result("keep", title="python asyncio")
    drop = _result("drop", title="python django orm")
    assert [r.id for r in ranker.rank([drop, keep], intent, 10, now=NOW)] == ["keep"]
    assert [r.id for r in ranker.rank([drop], intent, 10, now=NOW)] == ["drop"]


def test_rank_handles_empty_input(ranker):
    intent = QueryIntent(query="x", intent_type=IntentType.GENERAL, timeframe=Timeframe.ALL)
    assert ranker.rank([], intent, 10) == []
