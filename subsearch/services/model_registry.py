"""Answer models offered to clients, keyed by display name."""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from subsearch.config import Settings

DEFAULT_PROFILE_NAME = "Default"


@dataclass(frozen=True, slots=True)
class PromptLimits:
    max_results: int = 8
    max_content_chars: int = 800


@dataclass(frozen=True, slots=True)
class ModelProfile:
    """How to prompt one model. ``model_id`` None means the client's default model."""

    name: str
    model_id: str | None
    description: str = ""
    limits: PromptLimits = field(default_factory=PromptLimits)
    max_tokens: int = 2000
    temperature: float = 0.7


BUILTIN_PROFILES = (
    ModelProfile(
        name="Claude",
        model_id="anthropic/claude-3.5-sonnet",
        description="Thorough answers over the largest slice of results.",
        limits=PromptLimits(max_results=8, max_content_chars=800),
    ),
    ModelProfile(
        name="DeepSeek R1",
        model_id="deepseek/deepseek-r1",
        description="Reasoning model, strong on technical questions.",
        limits=PromptLimits(max_results=5, max_content_chars=800),
    ),
    ModelProfile(
        name="Google Gemini",
        model_id="google/gemini-2.0-flash-001",
        description="Fast general-purpose answers.",
        limits=PromptLimits(max_results=5, max_content_chars=800),
    ),
)


class ModelRegistry:
    def __init__(self, profiles: tuple[ModelProfile, ...] | list[ModelProfile], default: ModelProfile) -> None:
        self.default = default
        self._profiles = {profile.name.lower(): profile for profile in profiles}

    def profiles(self) -> list[ModelProfile]:
        return [self.default, *self._profiles.values()]

    def resolve(self, name: str | None) -> ModelProfile:
        """Profile for a display name or OpenRouter id; unknown names get the default."""
        if not name:
            return self.default
        wanted = name.strip().lower()
        profile = self._profiles.get(wanted)
        if profile is not None:
            return profile
        for profile in self.profiles():
            if profile.model_id and profile.model_id.lower() == wanted:
                return profile
        logger.warning(f"Unknown model '{name}', using {self.default.name}")
        return self.default


def build_registry(settings: Settings) -> ModelRegistry:
    default = ModelProfile(
        name=DEFAULT_PROFILE_NAME,
        model_id=settings.default_model,
        description="Configured default model.",
        limits=PromptLimits(
            max_results=settings.answer_max_results_in_prompt,
            max_content_chars=settings.answer_max_content_chars,
        ),
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
    return ModelRegistry(BUILTIN_PROFILES, default)
