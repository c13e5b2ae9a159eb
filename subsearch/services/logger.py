"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from subsearch.config import settings

_configured = False


def configure_logging() -> None:
    """Install console and file sinks once per process."""
    global _configured
    if _configured:
        return

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.app_log_level.upper(),
        colorize=True,
    )

    logger.add(
        log_dir / "subsearch_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )

    # Reduce noise from framework/network libraries
    for logger_name in (
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "fastapi",
        "httpx",
        "httpcore",
        "openai._base_client",
        "asyncio",
    ):
        logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())

    _configured = True


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: str | None = None,
) -> None:
    """Log an LLM API call."""
    call_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "model": model,
        "caller": caller,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_search(
    query: str,
    intent: str,
    mode: str,
    result_count: int,
    branches: int = 0,
    failed_branches: int = 0,
    duration_ms: int = 0,
    cached: bool = False,
) -> None:
    """Log a completed search request."""
    search_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "query": query,
        "intent": intent,
        "mode": mode,
        "result_count": result_count,
        "branches": branches,
        "failed_branches": failed_branches,
        "duration_ms": duration_ms,
        "cached": cached,
    }
    if failed_branches:
        logger.warning(f"SEARCH_DEGRADED: {search_data}")
    else:
        logger.info(f"SEARCH: {search_data}")
