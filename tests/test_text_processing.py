import math

from utils import text_processing
from utils.text_processing import (
    clip_by_tokens,
    estimate_tokens,
    split_paragraphs,
    tail_within_tokens,
    tail_words,
)


def test_estimate_tokens_empty_and_whitespace():
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("   \n\t ") == 0


def test_estimate_tokens_uses_chars_per_token():
    assert estimate_tokens("abcd") == math.ceil(4 / text_processing.settings.CHARS_PER_TOKEN)
    assert estimate_tokens("  abcd  ") == estimate_tokens("abcd")


def test_estimate_tokens_is_monotonic():
    previous = 0
    for n in range(0, 400):
        current = estimate_tokens("x" * n)
        assert current >= previous
        previous = current


def test_split_paragraphs_on_blank_line_runs():
    text = "One.\n\n\n\nTwo.\n  \nThree."
    assert split_paragraphs(text) == ["One.", "Two.", "Three."]


def test_clip_by_tokens_short_text_untouched():
    assert clip_by_tokens("  short text  ", 100) == "short text"
    assert clip_by_tokens("", 100) == ""


def test_clip_by_tokens_keeps_proportional_prefix_with_floor():
    text = "y" * 20000
    clipped = clip_by_tokens(text, 1600)
    assert text.startswith(clipped)
    assert 1000 <= len(clipped) < len(text)
    assert len(clip_by_tokens(text, 1)) == 1000


def test_tail_words():
    assert tail_words("one two  three\nfour", 2) == "three four"
    assert tail_words("one two", 10) == "one two"
    assert tail_words("one two", 0) == ""
    assert tail_words("", 5) == ""


def test_tail_within_tokens_respects_budget_and_word_boundary():
    text = " ".join(["alpha"] * 300)
    tail = tail_within_tokens(text, 20)
    assert tail
    assert text.endswith(tail)
    assert tail.startswith("alpha")
    assert estimate_tokens(tail) <= 20


def test_tail_within_tokens_zero_budget():
    assert tail_within_tokens("some text here", 0) == ""
    assert tail_within_tokens("   ", 10) == ""
