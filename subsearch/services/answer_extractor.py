"""Split a model reply into reasoning steps, an answer, and validated citations.

The prompt asks the model to wrap its output in BEGIN/END markers. Replies
that ignore the contract are still split heuristically; nothing here raises
to the caller.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger

from subsearch.errors import ExtractionAmbiguous
from subsearch.models.search import AnswerExtraction, Citation, ReasoningStep, SearchResult
from subsearch.tools.text_utils import collapse_whitespace, truncate_at_word

MAX_SYNTHETIC_STEPS = 4
MIN_PARAGRAPHS_FOR_STEPS = 3
MAX_STEP_TITLE_LENGTH = 50
MAX_CITATION_CONTEXT = 200
FALLBACK_STEP_TITLE = "Analysis of search results"
SKIPPED_HEADER_WORDS = ("answer", "conclusion")


@dataclass(frozen=True, slots=True)
class SegmentMarkers:
    begin_reasoning: str = "BEGIN_REASONING"
    end_reasoning: str = "END_REASONING"
    begin_answer: str = "BEGIN_ANSWER"
    end_answer: str = "END_ANSWER"

    def all(self) -> tuple[str, ...]:
        return (self.begin_reasoning, self.end_reasoning, self.begin_answer, self.end_answer)


DEFAULT_MARKERS = SegmentMarkers()

_NUMBERED_STEP = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\*\*)?step[ \t]+(\d+)(?:\*\*)?[ \t]*[:.)\-]?[ \t]*(.*?)(?:\*\*)?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_MARKDOWN_HEADER = re.compile(r"^[ \t]*(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_CITATION = re.compile(r"\[(\d+)\]")
_SENTENCE_END = re.compile(r"[.!?](?=\s|$)|\n[ \t]*\n")
_FIRST_SENTENCE = re.compile(r"^(.+?[.!?])(?:\s|$)", re.DOTALL)


def extract_answer(text: str, results: list[SearchResult]) -> AnswerExtraction:
    reasoning, answer = extract_segments(text)
    return AnswerExtraction(
        reasoning=reasoning,
        steps=extract_steps(reasoning),
        answer=answer,
        citations=extract_citations(answer, results),
    )


def extract_segments(text: str, markers: SegmentMarkers = DEFAULT_MARKERS) -> tuple[str, str]:
    """Return ``(reasoning, answer)``; always two strings, never raises."""
    if not text or not text.strip():
        return "", ""
    try:
        return _marked_segments(text, markers)
    except ExtractionAmbiguous as exc:
        logger.debug(f"Falling back to heuristic split: {exc}")

    cleaned = text
    for marker in markers.all():
        cleaned = cleaned.replace(marker, "")
    return _split_near_middle(cleaned.strip())


def _marked_segments(text: str, markers: SegmentMarkers) -> tuple[str, str]:
    reasoning_start = text.find(markers.begin_reasoning)
    reasoning_end = text.find(markers.end_reasoning, reasoning_start + 1) if reasoning_start >= 0 else -1
    answer_start = text.find(markers.begin_answer)
    answer_end = text.find(markers.end_answer, answer_start + 1) if answer_start >= 0 else -1

    if min(reasoning_start, reasoning_end, answer_start, answer_end) < 0:
        raise ExtractionAmbiguous("reply is missing one or more segment markers")
    if reasoning_end > answer_start:
        raise ExtractionAmbiguous("reasoning segment does not close before the answer begins")

    reasoning = text[reasoning_start + len(markers.begin_reasoning):reasoning_end]
    answer = text[answer_start + len(markers.begin_answer):answer_end]
    return reasoning.strip(), answer.strip()


def _split_near_middle(text: str) -> tuple[str, str]:
    if not text:
        return "", ""
    middle = len(text) / 2
    breaks = list(_PARAGRAPH_BREAK.finditer(text))
    if breaks:
        nearest = min(breaks, key=lambda m: abs((m.start() + m.end()) / 2 - middle))
        return text[:nearest.start()].strip(), text[nearest.end():].strip()

    spaces = [m.start() for m in re.finditer(r"\s", text)]
    cut = min(spaces, key=lambda i: abs(i - middle)) if spaces else len(text) // 2
    return text[:cut].strip(), text[cut:].strip()


def extract_steps(reasoning: str) -> list[ReasoningStep]:
    reasoning = (reasoning or "").strip()
    if not reasoning:
        return []

    steps = _numbered_steps(reasoning)
    if steps:
        return steps
    steps = _header_steps(reasoning)
    if steps:
        return steps

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(reasoning) if p.strip()]
    if len(paragraphs) >= MIN_PARAGRAPHS_FOR_STEPS:
        return _paragraph_steps(paragraphs)
    return [ReasoningStep(title=FALLBACK_STEP_TITLE, content=reasoning)]


def _numbered_steps(text: str) -> list[ReasoningStep]:
    matches = list(_NUMBERED_STEP.finditer(text))
    steps = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        heading = match.group(2).strip(" *")
        title = f"Step {match.group(1)}: {heading}" if heading else f"Step {match.group(1)}"
        steps.append(ReasoningStep(title=title, content=text[match.end():end].strip()))
    return steps


def _header_steps(text: str) -> list[ReasoningStep]:
    matches = list(_MARKDOWN_HEADER.finditer(text))
    steps = []
    for i, match in enumerate(matches):
        heading = match.group(2).strip(" *")
        if any(word in heading.lower() for word in SKIPPED_HEADER_WORDS):
            continue
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        steps.append(ReasoningStep(title=heading, content=text[match.end():end].strip()))
    return steps


def _paragraph_steps(paragraphs: list[str]) -> list[ReasoningStep]:
    groups = min(MAX_SYNTHETIC_STEPS, len(paragraphs))
    base, extra = divmod(len(paragraphs), groups)
    steps = []
    start = 0
    for number in range(1, groups + 1):
        size = base + (1 if number <= extra else 0)
        chunk = paragraphs[start:start + size]
        start += size
        steps.append(
            ReasoningStep(
                title=step_title(chunk[0], number),
                content="\n\n".join(chunk),
            )
        )
    return steps


def step_title(paragraph: str, number: int) -> str:
    first_line = paragraph.strip().splitlines()[0] if paragraph.strip() else ""
    match = _FIRST_SENTENCE.match(first_line)
    sentence = match.group(1) if match else first_line
    sentence = collapse_whitespace(sentence.lstrip("#*- ").rstrip())
    if len(sentence) > MAX_STEP_TITLE_LENGTH:
        sentence = sentence[:MAX_STEP_TITLE_LENGTH - 3].rstrip() + "..."
    return f"Step {number}: {sentence}"


def extract_citations(answer: str, results: list[SearchResult]) -> list[Citation]:
    """Citations for every distinct in-range ``[n]`` marker, in order of first use."""
    citations: list[Citation] = []
    seen: set[int] = set()
    for match in _CITATION.finditer(answer or ""):
        index = int(match.group(1))
        if index in seen or not 1 <= index <= len(results):
            continue
        seen.add(index)
        result = results[index - 1]
        citations.append(
            Citation(
                index=index,
                text=citation_context(answer, match.start(), match.end()),
                url=result.url,
                title=result.title,
                type=result.type,
                subreddit=result.subreddit,
            )
        )
    return citations


def citation_context(text: str, start: int, end: int) -> str:
    """Sentence surrounding ``text[start:end]``, trimmed to a bounded excerpt."""
    head = text[:start]
    boundary = max(head.rfind(". "), head.rfind("! "), head.rfind("? "))
    paragraph = head.rfind("\n\n")
    if paragraph > boundary:
        begin = paragraph + 2
    elif boundary >= 0:
        begin = boundary + 2
    else:
        begin = 0

    tail = _SENTENCE_END.search(text, end)
    if tail is None:
        finish = len(text)
    elif tail.group(0).startswith("\n"):
        finish = tail.start()
    else:
        finish = tail.end()

    return truncate_at_word(collapse_whitespace(text[begin:finish]), MAX_CITATION_CONTEXT)
