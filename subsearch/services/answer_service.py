"""Build the answer prompt, call the model, and parse its reply."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

from loguru import logger

from subsearch.errors import LLMError
from subsearch.llm_client import LLMClient
from subsearch.models.search import AnswerExtraction, QueryIntent, SearchResult
from subsearch.services import logger as log_service
from subsearch.services.answer_extractor import extract_answer
from subsearch.services.model_registry import DEFAULT_PROFILE_NAME, ModelProfile, ModelRegistry, PromptLimits
from subsearch.services.prompt_store import render_prompt
from subsearch.tools.retry import RetryPolicy
from subsearch.tools.text_utils import collapse_whitespace, format_time_ago, truncate_at_word

LIMITED_RESULTS_THRESHOLD = 5

Sleep = Callable[[float], Awaitable[Any]]


def format_result(index: int, result: SearchResult, *, max_content_chars: int, now: float | None = None) -> str:
    content = truncate_at_word(collapse_whitespace(result.content), max_content_chars) or "(no text)"
    excerpts = ""
    if result.highlights:
        excerpts = "\nKey excerpts:\n" + "\n".join(f"- {h}" for h in result.highlights)
    return render_prompt(
        "answer.result_block",
        index=index,
        title=result.title,
        type=result.type.value,
        subreddit=result.subreddit or "unknown",
        author=result.author or "unknown",
        score=result.score,
        num_comments=result.num_comments,
        posted=format_time_ago(result.created_utc, now=now),
        url=result.url,
        content=content,
        excerpts=excerpts,
    )


def build_prompt(
    intent: QueryIntent,
    results: list[SearchResult],
    limits: PromptLimits = PromptLimits(),
    *,
    now: float | None = None,
) -> str:
    shown = results[: limits.max_results]
    blocks = [
        format_result(i, result, max_content_chars=limits.max_content_chars, now=now)
        for i, result in enumerate(shown, start=1)
    ]

    instructions = []
    if intent.is_time_sensitive:
        instructions.append(render_prompt("answer.time_sensitive_instructions"))
    if intent.has_ranking_aspect:
        quantity = f" of {intent.requested_quantity} items" if intent.requested_quantity else ""
        instructions.append(render_prompt("answer.ranking_instructions", quantity=quantity))
    if len(results) < LIMITED_RESULTS_THRESHOLD:
        instructions.append(render_prompt("answer.limited_results_instructions"))
    extra = "\n\nAdditional instructions:\n" + "\n".join(f"- {i}" for i in instructions) if instructions else ""

    return render_prompt(
        "answer.user_prompt",
        query=intent.query,
        total_count=len(results),
        result_count=len(shown),
        results="\n\n".join(blocks),
        instructions=extra,
    )


class AnswerService:
    """Answers a query from ranked results with the model the caller picked.

    ``registry`` maps display names to per-model prompt limits and sampling
    settings. Without one, every request uses a single profile built from the
    keyword arguments and the client's default model.
    """

    def __init__(
        self,
        llm: LLMClient,
        *,
        registry: ModelRegistry | None = None,
        limits: PromptLimits = PromptLimits(),
        max_tokens: int = 2000,
        temperature: float = 0.7,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.llm = llm
        self.registry = registry or ModelRegistry(
            [],
            ModelProfile(
                name=DEFAULT_PROFILE_NAME,
                model_id=None,
                limits=limits,
                max_tokens=max_tokens,
                temperature=temperature,
            ),
        )
        self.retry_policy = retry_policy or RetryPolicy(max_retries=2)
        self._sleep = sleep

    async def answer(
        self,
        intent: QueryIntent,
        results: list[SearchResult],
        *,
        model: str | None = None,
    ) -> AnswerExtraction:
        if not results:
            return AnswerExtraction(
                reasoning="",
                answer=render_prompt("answer.no_results_answer", query=intent.query),
            )

        profile = self.registry.resolve(model)
        prompt = build_prompt(intent, results, profile.limits)
        text = await self._complete(prompt, profile)
        return extract_answer(text, results[: profile.limits.max_results])

    async def _complete(self, prompt: str, profile: ModelProfile) -> str:
        policy = self.retry_policy
        system = render_prompt("answer.system_prompt")
        delay = policy.base_delay
        last_error: Exception | None = None

        for attempt in range(1, policy.max_attempts + 1):
            started = time.monotonic()
            try:
                completion = await self.llm.complete(
                    system=system,
                    prompt=prompt,
                    model=profile.model_id,
                    max_tokens=profile.max_tokens,
                    temperature=profile.temperature,
                )
            except Exception as exc:
                last_error = exc
                log_service.log_llm_call(
                    model=profile.model_id or self.llm.default_model,
                    caller="answer_service",
                    duration_ms=int((time.monotonic() - started) * 1000),
                    status="error",
                    error=str(exc),
                )
                if attempt < policy.max_attempts:
                    await self._sleep(policy.sleep_for(delay))
                    delay = policy.next_delay(delay)
                continue

            log_service.log_llm_call(
                model=completion.model,
                caller="answer_service",
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            if completion.text.strip():
                return completion.text
            last_error = LLMError("Model returned an empty reply")
            logger.warning(f"Empty model reply (attempt {attempt}/{policy.max_attempts})")

        raise LLMError(f"Answer generation failed after {policy.max_attempts} attempts: {last_error}")
