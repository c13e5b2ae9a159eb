"""OpenRouter chat client via the OpenAI-compatible SDK."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from subsearch.config import settings

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass(slots=True)
class Completion:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient:
    def __init__(self, openai_client: Any, *, default_model: str) -> None:
        self._client = openai_client
        self.default_model = default_model

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        model = model or self.default_model
        response = await self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        choice = response.choices[0].message
        usage = getattr(response, "usage", None)
        return Completion(
            text=getattr(choice, "content", None) or "",
            model=model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )


def get_client() -> LLMClient:
    """Build a client from settings."""
    base_url = settings.openrouter_base_url.strip() or OPENROUTER_BASE_URL
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
    )
    return LLMClient(openai_client, default_model=settings.default_model)
