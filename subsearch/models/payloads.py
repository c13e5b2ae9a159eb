"""Per-kind schemas for Reddit listing children (t1 comment, t3 post, t5 subreddit)."""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter


def _coerce_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        return int(value)
    return value


def _coerce_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return value


def _coerce_str(value: Any) -> str:
    # Reddit sends false/null for several optional text fields.
    if value is None or value is False:
        return ""
    return value


Count = Annotated[int, BeforeValidator(_coerce_int)]
Timestamp = Annotated[float, BeforeValidator(_coerce_float)]
Text = Annotated[str, BeforeValidator(_coerce_str)]
Flag = Annotated[bool, BeforeValidator(bool)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PostData(_Payload):
    id: Text = ""
    title: Text = ""
    selftext: Text = ""
    author: Text = ""
    subreddit: Text = ""
    score: Count = 0
    num_comments: Count = 0
    created_utc: Timestamp = 0.0
    permalink: Text = ""
    url: Text = ""
    stickied: Flag = False
    distinguished: Text = ""


class CommentData(_Payload):
    id: Text = ""
    body: Text = ""
    author: Text = ""
    subreddit: Text = ""
    score: Count = 0
    created_utc: Timestamp = 0.0
    permalink: Text = ""
    link_id: Text = ""
    link_title: Text = ""


class SubredditData(_Payload):
    id: Text = ""
    display_name: Text = ""
    title: Text = ""
    description: Text = ""
    public_description: Text = ""
    subscribers: Count = 0
    created_utc: Timestamp = 0.0
    url: Text = ""
    over18: Flag = False


class CommentChild(_Payload):
    kind: Literal["t1"]
    data: CommentData


class PostChild(_Payload):
    kind: Literal["t3"]
    data: PostData


class SubredditChild(_Payload):
    kind: Literal["t5"]
    data: SubredditData


ListingChild = Annotated[
    Union[CommentChild, PostChild, SubredditChild],
    Field(discriminator="kind"),
]

child_adapter: TypeAdapter[ListingChild] = TypeAdapter(ListingChild)


class ListingData(_Payload):
    # Children stay untyped here so one bad child cannot reject the whole listing.
    children: list[Any] = Field(default_factory=list)


class Listing(_Payload):
    kind: str = "Listing"
    data: ListingData


class TokenResponse(_Payload):
    access_token: str = ""
    token_type: str = ""
    expires_in: float = 3600.0
    error: str = ""
