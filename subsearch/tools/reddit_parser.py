"""Normalise raw Reddit listings into ``SearchResult`` objects."""
from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from subsearch.errors import ParseError
from subsearch.models.payloads import (
    CommentChild,
    Listing,
    PostChild,
    SubredditChild,
    child_adapter,
)
from subsearch.models.search import ResultType, SearchResult

REDDIT_BASE_URL = "https://www.reddit.com"


def parse_listing(payload: bytes | str | dict[str, Any] | list[Any]) -> list[SearchResult]:
    """Decode one upstream response body into canonical results.

    Malformed children are skipped. A body that is not JSON, or not shaped
    like a listing at all, raises ``ParseError``.
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ParseError(f"Undecodable response payload: {exc}") from exc

    # Comment pages come back as an array of listings.
    listings = payload if isinstance(payload, list) else [payload]

    results: list[SearchResult] = []
    for raw_listing in listings:
        try:
            listing = Listing.model_validate(raw_listing)
        except PydanticValidationError as exc:
            raise ParseError(f"Response is not a listing: {exc.error_count()} error(s)") from exc

        for raw_child in listing.data.children:
            result = parse_child(raw_child)
            if result is not None:
                results.append(result)
    return results


def parse_child(raw_child: Any) -> SearchResult | None:
    try:
        child = child_adapter.validate_python(raw_child)
    except PydanticValidationError as exc:
        kind = raw_child.get("kind") if isinstance(raw_child, dict) else type(raw_child).__name__
        logger.debug(f"Skipping listing child kind={kind}: {exc.error_count()} schema error(s)")
        return None

    if isinstance(child, PostChild):
        result = _from_post(child)
    elif isinstance(child, CommentChild):
        result = _from_comment(child)
    else:
        result = _from_subreddit(child)

    if not result.id or not result.title:
        logger.debug(f"Skipping {result.type.value} without id or title")
        return None
    return result


def _absolute(permalink: str) -> str:
    if permalink.startswith("http"):
        return permalink
    return REDDIT_BASE_URL + permalink


def _from_post(child: PostChild) -> SearchResult:
    data = child.data
    if data.permalink:
        url = _absolute(data.permalink)
    elif data.url:
        url = data.url
    else:
        url = f"{REDDIT_BASE_URL}/r/{data.subreddit}/comments/{data.id}"

    content = data.selftext
    tags = []
    if data.stickied:
        tags.append("stickied")
    if data.distinguished:
        tags.append(data.distinguished)
    if tags:
        content = f"[{', '.join(tags)}] {content}".rstrip()

    return SearchResult(
        id=data.id,
        title=data.title,
        type=ResultType.POST,
        subreddit=data.subreddit,
        author=data.author,
        content=content,
        url=url,
        created_utc=data.created_utc,
        score=data.score,
        num_comments=data.num_comments,
    )


def _from_comment(child: CommentChild) -> SearchResult:
    data = child.data
    if data.link_title:
        title = f"Comment on: {data.link_title}"
    else:
        title = f"Comment in r/{data.subreddit}"

    if data.permalink:
        url = _absolute(data.permalink)
    else:
        link_id = data.link_id.removeprefix("t3_")
        url = f"{REDDIT_BASE_URL}/r/{data.subreddit}/comments/{link_id}/_/{data.id}"

    return SearchResult(
        id=data.id,
        title=title,
        type=ResultType.COMMENT,
        subreddit=data.subreddit,
        author=data.author,
        content=data.body,
        url=url,
        created_utc=data.created_utc,
        score=data.score,
    )


def _from_subreddit(child: SubredditChild) -> SearchResult:
    data = child.data
    content = data.public_description or data.description or data.title
    if data.over18:
        content = f"[NSFW] {content}"

    url = _absolute(data.url) if data.url else f"{REDDIT_BASE_URL}/r/{data.display_name}"
    return SearchResult(
        id=data.id,
        title=f"r/{data.display_name}" if data.display_name else "",
        type=ResultType.COMMUNITY,
        subreddit=data.display_name,
        content=content,
        url=url,
        created_utc=data.created_utc,
        score=data.subscribers,
    )
