from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from loguru import logger

from subsearch.api.deps import SearchServices, get_services
from subsearch.errors import LLMError
from subsearch.models.schemas import (
    AuthStatusResponse,
    ErrorResponse,
    SearchRequest,
    SearchResponse,
    SearchResultOut,
)
from subsearch.models.search import AnswerExtraction
from subsearch.services.prompt_store import render_prompt

router = APIRouter(
    prefix="/api/search",
    tags=["search"],
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)


@router.post("", response_model=SearchResponse)
async def search(request: SearchRequest, services: SearchServices = Depends(get_services)):
    """Search Reddit, rank the results, and answer the query from them.

    A failed answer never discards the results: the response carries a
    fallback answer and ``answer_error`` instead.
    """
    started = time.monotonic()
    outcome = await services.orchestrator.search_detailed(
        request.query,
        request.search_mode,
        request.limit,
    )

    extraction = None
    answer_error = None
    if request.include_answer:
        try:
            extraction = await services.answers.answer(
                outcome.intent,
                outcome.results,
                model=request.model_name,
            )
        except LLMError as exc:
            logger.warning(f"Answer generation failed for '{request.query}': {exc}")
            answer_error = exc.message
            extraction = AnswerExtraction(
                reasoning="",
                answer=render_prompt("answer.unavailable_answer"),
            )

    return SearchResponse(
        results=[SearchResultOut.from_result(r) for r in outcome.results],
        total_count=len(outcome.results),
        elapsed_seconds=round(time.monotonic() - started, 3),
        last_updated=datetime.now(timezone.utc),
        cached=outcome.from_cache,
        answer_error=answer_error,
        request_params={
            "query": request.query,
            "searchMode": outcome.mode.value,
            "limit": outcome.limit,
            "modelName": request.model_name,
            "intent": outcome.intent.intent_type.value,
            "timeframe": outcome.intent.timeframe.value,
        },
        **SearchResponse.answer_fields(extraction),
    )


@router.get("/auth-status", response_model=AuthStatusResponse)
async def auth_status(services: SearchServices = Depends(get_services)):
    return AuthStatusResponse(**services.auth.status(), cache=services.cache.stats())
