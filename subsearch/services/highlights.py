from __future__ import annotations

import re

from subsearch.tools.text_utils import collapse_whitespace, truncate_at_word

MAX_HIGHLIGHTS = 3
MAX_HIGHLIGHT_LENGTH = 200
MIN_SENTENCE_LENGTH = 10

ABBREVIATIONS = (
    "Mr.", "Mrs.", "Ms.", "Dr.", "Prof.", "Sr.", "Jr.", "St.",
    "Inc.", "Ltd.", "Co.", "Corp.", "vs.", "etc.", "i.e.", "e.g.",
    "U.S.", "U.K.", "E.U.", "Jan.", "Feb.", "Aug.", "Sept.", "Oct.", "Nov.", "Dec.",
)

_PERIOD_PLACEHOLDER = "\x00"
_ABBREVIATION_PATTERN = re.compile(
    r"(?<![\w.])(" + "|".join(re.escape(a) for a in sorted(ABBREVIATIONS, key=len, reverse=True)) + r")"
)
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])|\n\s*\n")


def split_sentences(text: str) -> list[str]:
    """Split on ./!/? followed by whitespace and a capital letter, or on blank lines."""
    if not text:
        return []
    protected = _ABBREVIATION_PATTERN.sub(
        lambda m: m.group(1).replace(".", _PERIOD_PLACEHOLDER), text
    )
    sentences = []
    for chunk in _SENTENCE_BOUNDARY.split(protected):
        sentence = chunk.replace(_PERIOD_PLACEHOLDER, ".").strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def score_sentence(sentence: str, keywords: list[str]) -> int:
    lowered = sentence.lower()
    score = 0
    for keyword in keywords:
        hits = lowered.count(keyword)
        if hits:
            score += 1
            if hits > 1:
                score += 1
    return score


def extract_highlights(
    text: str,
    keywords: list[str],
    *,
    max_highlights: int = MAX_HIGHLIGHTS,
    max_length: int = MAX_HIGHLIGHT_LENGTH,
) -> list[str]:
    """Best keyword-bearing sentences of ``text``, in descending score order."""
    terms = [k.lower() for k in keywords if len(k) > 2]
    if not text or not terms:
        return []

    scored: list[tuple[int, int, str]] = []
    for position, sentence in enumerate(split_sentences(text)):
        if len(sentence) < MIN_SENTENCE_LENGTH:
            continue
        score = score_sentence(sentence, terms)
        if score > 0:
            scored.append((score, position, sentence))

    scored.sort(key=lambda item: (-item[0], item[1]))
    return [
        truncate_at_word(collapse_whitespace(sentence), max_length)
        for _, _, sentence in scored[:max_highlights]
    ]
