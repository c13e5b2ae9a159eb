"""Turn a free-text query into a ``QueryIntent``.

Extraction is purely lexical: regexes for ``r/``, ``u/`` and ``-term``
tokens, phrase tables for temporal, ranking, trending and comparison cues,
and a keyword-to-category table. ``analyze`` never raises.
"""
from __future__ import annotations

import re

from subsearch.models.search import IntentType, QueryIntent, Timeframe

COMMUNITY_PATTERN = re.compile(r"(?<![\w/])/?r/([a-z0-9_]+)", re.IGNORECASE)
AUTHOR_PATTERN = re.compile(r"(?<![\w/])/?u/([a-z0-9_-]+)", re.IGNORECASE)
EXCLUDE_PATTERN = re.compile(r"(?:^|(?<=\s))-([a-z0-9_]+)", re.IGNORECASE)
QUANTITY_PATTERN = re.compile(
    r"\b(?:top|best|worst)\s+(\d+|[a-z]+)\b|\b(\d+)\s+(?:best|top|worst|greatest)\b",
    re.IGNORECASE,
)

STOPWORDS = frozenset(
    """
    a an the and or but is are was were be being been in on at to for with about
    what when where who why how of from by as this that these those which whose
    than then if else so just get can will should would could do does did has have
    had its it's it i me my we our you your they them their there here any some
    """.split()
)

# Words that steer intent but carry no topical meaning for scoring.
INTENT_NOISE_WORDS = frozenset(
    """
    top best worst greatest ranked ranking rank favorite favourite most
    trending popular hot viral now today tonight yesterday week month year
    recent recently latest new current currently right last past
    reddit subreddit subreddits post posts thread threads comment comments
    vs versus compare comparison difference better
    one two three four five six seven eight nine ten fifteen twenty
    """.split()
)

NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "fifteen": 15,
    "twenty": 20,
    "fifty": 50,
    "hundred": 100,
}

# Longer phrases first so "this week" wins over "week"-less fallbacks like "new".
TEMPORAL_CUES: tuple[tuple[str, Timeframe], ...] = (
    ("right now", Timeframe.DAY),
    ("today", Timeframe.DAY),
    ("tonight", Timeframe.DAY),
    ("yesterday", Timeframe.DAY),
    ("past 24 hours", Timeframe.DAY),
    ("last 24 hours", Timeframe.DAY),
    ("this week", Timeframe.WEEK),
    ("last week", Timeframe.WEEK),
    ("past week", Timeframe.WEEK),
    ("this month", Timeframe.MONTH),
    ("last month", Timeframe.MONTH),
    ("past month", Timeframe.MONTH),
    ("this year", Timeframe.YEAR),
    ("last year", Timeframe.YEAR),
    ("past year", Timeframe.YEAR),
    ("latest", Timeframe.DAY),
    ("currently", Timeframe.WEEK),
    ("current", Timeframe.WEEK),
    ("recent", Timeframe.WEEK),
    ("recently", Timeframe.WEEK),
    ("now", Timeframe.DAY),
    ("new", Timeframe.DAY),
)

RANKING_CUES = ("top", "best", "worst", "greatest", "ranked", "ranking", "favorite", "favourite", "most")
TRENDING_CUES = ("trending", "popular", "hot", "viral")
COMPARISON_CUES = ("vs", "versus", "compare", "compared", "comparison", "difference between", "better than")
COMMENT_MARKERS = ("comment", "comments", "reply", "replies")
POST_MARKERS = ("post", "posts", "thread", "threads")

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "entertainment": ("movie", "movies", "film", "films", "tv", "show", "shows", "series", "netflix", "episode", "anime"),
    "gaming": ("game", "games", "gaming", "ps5", "xbox", "nintendo", "switch", "steam", "esports"),
    "technology": ("tech", "technology", "phone", "laptop", "software", "programming", "python", "ai", "computer", "gadget"),
    "finance": ("stock", "stocks", "invest", "investing", "crypto", "bitcoin", "money", "budget", "finance", "etf"),
    "sports": ("sport", "sports", "nba", "nfl", "football", "soccer", "baseball", "hockey", "f1"),
    "food": ("food", "recipe", "recipes", "cooking", "restaurant", "restaurants", "baking", "meal"),
    "travel": ("travel", "trip", "flight", "flights", "hotel", "vacation", "visa"),
    "news": ("news", "election", "politics", "headline", "headlines"),
}

CATEGORY_COMMUNITIES: dict[str, tuple[str, ...]] = {
    "entertainment": ("movies", "television", "netflix", "TVshows", "entertainment"),
    "gaming": ("gaming", "Games", "pcgaming", "PS5", "NintendoSwitch"),
    "technology": ("technology", "gadgets", "programming", "tech", "Android"),
    "finance": ("personalfinance", "investing", "stocks", "wallstreetbets", "CryptoCurrency"),
    "sports": ("sports", "nba", "nfl", "soccer", "formula1"),
    "food": ("food", "Cooking", "recipes", "AskCulinary", "FoodPorn"),
    "travel": ("travel", "solotravel", "TravelHacks", "backpacking", "digitalnomad"),
    "news": ("news", "worldnews", "politics", "UpliftingNews", "nottheonion"),
}


def _has_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}\b", text) is not None


def _tokens(text: str) -> list[str]:
    return re.findall(r"[a-z0-9][a-z0-9'_+-]*", text.lower())


class QueryAnalyzer:
    """Stateless query parser; one instance is shared across requests."""

    def analyze(self, query: str) -> QueryIntent:
        raw = query or ""
        lowered = " ".join(raw.lower().split())
        intent = QueryIntent(query=raw)

        intent.communities = _unique(COMMUNITY_PATTERN.findall(raw))
        intent.authors = _unique(AUTHOR_PATTERN.findall(raw))
        intent.excluded_terms = _unique(term.lower() for term in EXCLUDE_PATTERN.findall(raw))

        stripped = COMMUNITY_PATTERN.sub(" ", lowered)
        stripped = AUTHOR_PATTERN.sub(" ", stripped)
        stripped = EXCLUDE_PATTERN.sub(" ", stripped)

        self._apply_temporal(intent, stripped)
        has_trending = any(_has_phrase(stripped, cue) for cue in TRENDING_CUES)
        intent.has_ranking_aspect = any(_has_phrase(stripped, cue) for cue in RANKING_CUES)
        intent.requested_quantity = extract_quantity(stripped)
        if intent.requested_quantity is not None:
            intent.has_ranking_aspect = True

        if intent.has_ranking_aspect:
            intent.sort = "top"
        elif has_trending:
            intent.sort = "hot"
        elif intent.is_time_sensitive:
            intent.sort = "new"

        intent.keywords = extract_keywords(stripped)
        intent.filtered_keywords = filter_keywords(intent.keywords)
        intent.categories = detect_categories(intent.keywords)
        intent.intent_type = self._classify(intent, stripped, has_trending)
        return intent

    @staticmethod
    def _apply_temporal(intent: QueryIntent, text: str) -> None:
        for phrase, timeframe in TEMPORAL_CUES:
            if _has_phrase(text, phrase):
                intent.timeframe = timeframe
                intent.is_time_sensitive = True
                return

    @staticmethod
    def _classify(intent: QueryIntent, text: str, has_trending: bool) -> IntentType:
        if intent.communities:
            return IntentType.COMMUNITY
        if any(_has_phrase(text, marker) for marker in COMMENT_MARKERS):
            return IntentType.COMMENT
        if any(_has_phrase(text, marker) for marker in POST_MARKERS):
            return IntentType.POST
        if intent.authors:
            return IntentType.AUTHOR
        if intent.is_time_sensitive:
            return IntentType.TIME_BASED
        if intent.has_ranking_aspect:
            return IntentType.RANKING
        if has_trending:
            return IntentType.TRENDING
        if any(_has_phrase(text, cue) for cue in COMPARISON_CUES):
            return IntentType.COMPARISON
        return IntentType.GENERAL


def extract_quantity(text: str) -> int | None:
    """Pull "top 5" / "top five" / "10 best" style counts out of a query."""
    for match in QUANTITY_PATTERN.finditer(text.lower()):
        token = match.group(1) or match.group(2)
        if token.isdigit():
            value = int(token)
        else:
            value = NUMBER_WORDS.get(token)
        if value and value <= 100:
            return value
    return None


def extract_keywords(text: str) -> list[str]:
    keywords = [
        token.removesuffix("'s").strip("'-_+")
        for token in _tokens(text)
    ]
    return _unique(
        token for token in keywords
        if len(token) > 2 and token not in STOPWORDS
    )


def filter_keywords(keywords: list[str]) -> list[str]:
    """Second pass that also drops intent-steering words such as "top" or "week"."""
    return [
        keyword for keyword in keywords
        if keyword not in STOPWORDS
        and keyword not in INTENT_NOISE_WORDS
        and not keyword.isdigit()
    ]


def detect_categories(keywords: list[str]) -> list[str]:
    found: list[str] = []
    keyword_set = set(keywords)
    for category, words in CATEGORY_KEYWORDS.items():
        if keyword_set.intersection(words):
            found.append(category)
    return found


def communities_for_categories(categories: list[str], *, limit: int = 3) -> list[str]:
    """Representative communities to probe for a query's categories."""
    communities: list[str] = []
    for category in categories:
        for community in CATEGORY_COMMUNITIES.get(category, ()):
            if community not in communities:
                communities.append(community)
            if len(communities) >= limit:
                return communities
    return communities


def _unique(values) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        ordered.append(value)
    return ordered
