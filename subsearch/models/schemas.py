from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from subsearch.models.search import AnswerExtraction, SearchResult


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., min_length=1, max_length=512)
    search_mode: str = Field(default="All", alias="searchMode")
    limit: int | None = Field(default=None)
    model_name: str | None = Field(default=None, alias="modelName")
    include_answer: bool = Field(default=True, alias="includeAnswer")


class SearchResultOut(BaseModel):
    id: str
    title: str
    type: str
    subreddit: str
    author: str
    content: str
    url: str
    created_utc: float
    score: int
    num_comments: int
    highlights: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultOut":
        return cls(**result.to_dict())


class ReasoningStepOut(BaseModel):
    title: str
    content: str


class CitationOut(BaseModel):
    index: int
    text: str
    url: str
    title: str
    type: str
    subreddit: str


class SearchResponse(BaseModel):
    results: list[SearchResultOut]
    total_count: int
    answer: str = ""
    reasoning: str = ""
    reasoning_steps: list[ReasoningStepOut] = Field(default_factory=list)
    citations: list[CitationOut] = Field(default_factory=list)
    elapsed_seconds: float
    last_updated: datetime
    cached: bool = False
    answer_error: str | None = None
    request_params: dict

    @staticmethod
    def answer_fields(extraction: AnswerExtraction | None) -> dict:
        if extraction is None:
            return {}
        return {
            "answer": extraction.answer,
            "reasoning": extraction.reasoning,
            "reasoning_steps": [ReasoningStepOut(title=s.title, content=s.content) for s in extraction.steps],
            "citations": [
                CitationOut(
                    index=c.index,
                    text=c.text,
                    url=c.url,
                    title=c.title,
                    type=c.type.value,
                    subreddit=c.subreddit,
                )
                for c in extraction.citations
            ],
        }


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str
    max_results: int


class ModelsResponse(BaseModel):
    models: list[ModelInfo]
    default: str


class AuthStatusResponse(BaseModel):
    configured: bool
    authenticated: bool
    expires_in_seconds: int | None = None
    cache: dict[str, int] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: str
    detail: str
