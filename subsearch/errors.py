"""Error taxonomy shared by the search pipeline and the HTTP layer."""
from __future__ import annotations

from typing import Any


class SubsearchError(Exception):
    """Base error; ``category`` is the stable name reported to API clients."""

    category = "internal"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ValidationError(SubsearchError):
    category = "validation"


class AuthError(SubsearchError):
    category = "auth"


class UpstreamError(SubsearchError):
    category = "upstream"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        errors: list[Exception] | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.status = status
        self.errors = list(errors or [])


class RateLimitError(SubsearchError):
    category = "rate_limit"

    def __init__(self, message: str, *, retry_after: float | None = None, **context: Any) -> None:
        super().__init__(message, **context)
        self.retry_after = retry_after


class ParseError(SubsearchError):
    category = "parse"


class SearchTimeoutError(SubsearchError, TimeoutError):
    category = "timeout"


class ExtractionAmbiguous(SubsearchError):
    """Model reply lacked usable delimiters. Never leaves the extractor."""

    category = "extraction"


class LLMError(SubsearchError):
    category = "llm"
