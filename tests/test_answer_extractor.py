"""Tests for splitting model replies into reasoning, steps, answer and citations."""
import re

import pytest

from subsearch.models.search import ResultType, SearchResult
from subsearch.services.answer_extractor import (
    FALLBACK_STEP_TITLE,
    extract_answer,
    extract_citations,
    extract_segments,
    extract_steps,
    step_title,
)


def _results(n):
    return [
        SearchResult(
            id=f"r{i}",
            title=f"Result {i}",
            type=ResultType.POST,
            subreddit="test",
            url=f"https://www.reddit.com/r/test/comments/r{i}",
        )
        for i in range(1, n + 1)
    ]


def _squash(text):
    return re.sub(r"\s+", "", text)


def test_segments_with_markers_return_exact_inner_text():
    reply = (
        "Preamble the model added.\n"
        "BEGIN_REASONING\n\n  Step 1: Read results\nLooked at them.  \nEND_REASONING\n"
        "BEGIN_ANSWER\n The answer is 42 [1]. \nEND_ANSWER\ntrailing"
    )
    reasoning, answer = extract_segments(reply)
    assert reasoning == "Step 1: Read results\nLooked at them."
    assert answer == "The answer is 42 [1]."


def test_segments_without_markers_split_at_paragraph_nearest_middle():
    reply = "Para one is here.\n\nPara two is here.\n\nPara three is the answer.\n\nPara four too."
    reasoning, answer = extract_segments(reply)
    assert reasoning == "Para one is here.\n\nPara two is here."
    assert answer == "Para three is the answer.\n\nPara four too."


@pytest.mark.parametrize(
    "reply",
    [
        "One long line of text with no paragraph breaks at all in it",
        "first paragraph\n\nsecond paragraph",
        "x y",
        "BEGIN_ANSWER only an answer block without reasoning END_ANSWER and more text",
        "END_REASONING\nreversed\nBEGIN_REASONING\n\nBEGIN_ANSWER x END_ANSWER",
    ],
)
def test_segments_fallback_reconstructs_text(reply):
    reasoning, answer = extract_segments(reply)
    assert reasoning and answer
    cleaned = reply
    for marker in ("BEGIN_REASONING", "END_REASONING", "BEGIN_ANSWER", "END_ANSWER"):
        cleaned = cleaned.replace(marker, "")
    assert _squash(reasoning + answer) == _squash(cleaned)


def test_segments_of_empty_reply():
    assert extract_segments("") == ("", "")
    assert extract_segments("   \n ") == ("", "")


def test_numbered_steps_take_priority():
    reasoning = (
        "## Step 1: Gather\nCollected posts.\n\n"
        "**Step 2:** Compare\nWeighed opinions.\n\n"
        "# Conclusion\nDone."
    )
    steps = extract_steps(reasoning)
    assert [s.title for s in steps] == ["Step 1: Gather", "Step 2: Compare"]
    assert steps[0].content == "Collected posts."
    assert steps[1].content.startswith("Weighed opinions.")


def test_markdown_headers_skip_answer_sections():
    reasoning = "## Sources\nLots of posts.\n## Themes\nTwo camps.\n## Final answer\nSkip me."
    steps = extract_steps(reasoning)
    assert [s.title for s in steps] == ["Sources", "Themes"]
    assert steps[1].content == "Two camps."


def test_paragraphs_are_grouped_into_at_most_four_steps():
    paragraphs = [f"Paragraph number {i} says something. More detail." for i in range(1, 7)]
    steps = extract_steps("\n\n".join(paragraphs))

    assert len(steps) == 4
    assert steps[0].title == "Step 1: Paragraph number 1 says something."
    assert steps[0].content.count("Paragraph number") == 2
    assert sum(s.content.count("Paragraph number") for s in steps) == 6


def test_two_paragraphs_become_single_step():
    steps = extract_steps("Only this.\n\nAnd this.")
    assert len(steps) == 1
    assert steps[0].title == FALLBACK_STEP_TITLE


def test_empty_reasoning_has_no_steps():
    assert extract_steps("") == []
    assert extract_steps("  \n ") == []


def test_step_title_is_bounded():
    title = step_title("This is an extremely long first sentence that keeps going well past the limit. Next.", 2)
    assert title.startswith("Step 2: ")
    assert len(title) <= len("Step 2: ") + 50
    assert title.endswith("...")


def test_citations_dedupe_and_drop_out_of_range():
    citations = extract_citations("See [1] and [2]. Also [1] again. [9] invalid.", _results(2))

    assert [c.index for c in citations] == [1, 2]
    assert citations[0].text == "See [1] and [2]."
    assert citations[0].url == "https://www.reddit.com/r/test/comments/r1"
    assert citations[1].title == "Result 2"


def test_citation_context_stops_at_sentence_and_paragraph():
    answer = "Intro sentence. The key claim is here [3] and continues. Next sentence.\n\nNew para [1]"
    citations = extract_citations(answer, _results(3))

    assert citations[0].index == 3
    assert citations[0].text == "The key claim is here [3] and continues."
    assert citations[1].text == "New para [1]"


def test_citation_zero_is_dropped():
    assert extract_citations("Bad [0] marker.", _results(2)) == []


def test_extract_answer_end_to_end():
    reply = (
        "BEGIN_REASONING\nStep 1: Scan\nRead all results.\nStep 2: Weigh\nMost agree.\nEND_REASONING\n"
        "BEGIN_ANSWER\nUse tactile switches [2]. Some prefer linear [5].\nEND_ANSWER"
    )
    extraction = extract_answer(reply, _results(3))

    assert [s.title for s in extraction.steps] == ["Step 1: Scan", "Step 2: Weigh"]
    assert extraction.answer.startswith("Use tactile switches")
    assert [c.index for c in extraction.citations] == [2]
