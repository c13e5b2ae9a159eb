"""Prompt templates for answer generation, stored as JSON next to the package."""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

# Keys the answer service renders; a catalog missing any of them is rejected on load.
REQUIRED_KEYS = (
    "answer.system_prompt",
    "answer.user_prompt",
    "answer.result_block",
    "answer.time_sensitive_instructions",
    "answer.ranking_instructions",
    "answer.limited_results_instructions",
    "answer.no_results_answer",
    "answer.unavailable_answer",
)


class PromptCatalog:
    """Dotted-key lookup over a nested JSON object of ``string.Template`` strings.

    The file is re-read when its mtime changes, so prompts can be tuned
    without restarting the server.
    """

    def __init__(self, path: Path = PROMPTS_PATH, *, required: tuple[str, ...] = REQUIRED_KEYS) -> None:
        self.path = Path(path)
        self.required = required
        self._templates: dict[str, Template] = {}
        self._mtime_ns: int | None = None

    def render(self, key: str, **values: Any) -> str:
        templates = self._load()
        if key not in templates:
            raise KeyError(f"Prompt key not found: {key}")
        try:
            return templates[key].substitute(**values)
        except KeyError as exc:
            raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc

    def _load(self) -> dict[str, Template]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._templates and self._mtime_ns == mtime_ns:
            return self._templates

        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog {self.path} must be a JSON object")

        templates = {key: Template(text) for key, text in _flatten(payload)}
        missing = [key for key in self.required if key not in templates]
        if missing:
            raise ValueError(f"Prompt catalog {self.path} is missing: {', '.join(missing)}")

        self._templates = templates
        self._mtime_ns = mtime_ns
        return templates


def _flatten(node: dict[str, Any], prefix: str = ""):
    for name, value in node.items():
        key = f"{prefix}{name}"
        if isinstance(value, dict):
            yield from _flatten(value, f"{key}.")
        elif isinstance(value, str):
            yield key, value
        else:
            raise TypeError(f"Prompt key must map to a string: {key}")


_default_catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return _default_catalog.render(key, **values)
