import pytest

from config import ConfigurationError
from processing.chunker import Chunk, chunk_text
from utils.hashing import fingerprint
from utils.text_processing import estimate_tokens


def _paragraph(word: str, count: int) -> str:
    return " ".join([word] * count)


def test_empty_input_yields_no_chunks():
    assert chunk_text("", 100, 10) == []
    assert chunk_text(None, 100, 10) == []
    assert chunk_text(" \r\n\r\n \n", 100, 10) == []


def test_small_text_is_single_chunk_with_normalized_line_endings():
    chunks = chunk_text("First.\r\n\r\nSecond.", 100, 10)
    assert len(chunks) == 1
    assert chunks[0].text == "First.\n\nSecond."
    assert chunks[0].estimated_tokens == estimate_tokens("First.\n\nSecond.")
    assert chunks[0].fingerprint == fingerprint("First.\n\nSecond.")


def test_two_paragraphs_one_per_chunk_with_overlap_tail():
    first = _paragraph("alpha", 250)
    second = _paragraph("omega", 250)
    text = f"{first}\n\n{second}"
    assert 2990 <= len(text) <= 3010

    chunks = chunk_text(text, 600, 120)

    assert len(chunks) == 2
    assert chunks[0].text == first
    tail, _, rest = chunks[1].text.partition("\n\n")
    assert rest == second
    assert tail.startswith("alpha")
    assert first.endswith(tail)
    assert estimate_tokens(tail) <= 120


def test_zero_overlap_has_no_tail():
    first = _paragraph("alpha", 250)
    second = _paragraph("omega", 250)
    chunks = chunk_text(f"{first}\n\n{second}", 600, 0)
    assert [c.text for c in chunks] == [first, second]


def test_overlap_shrinks_instead_of_hard_splitting_a_fitting_paragraph():
    first = _paragraph("alpha", 250)
    second = _paragraph("omega", 300)
    chunks = chunk_text(f"{first}\n\n{second}", 500, 200)
    assert len(chunks) == 2
    assert chunks[1].text.endswith(second)
    assert all(c.estimated_tokens <= 500 for c in chunks)


def test_size_bound_holds_without_oversized_paragraphs():
    paragraphs = [_paragraph(f"w{i}", 20 + (i * 37) % 90) for i in range(40)]
    chunks = chunk_text("\n\n".join(paragraphs), 300, 60)
    assert len(chunks) > 1
    assert all(estimate_tokens(c.text) <= 300 for c in chunks)


def test_every_paragraph_is_covered_in_document_order():
    paragraphs = [_paragraph(f"p{i}", 30 + i % 7) for i in range(30)]
    chunks = chunk_text("\n\n".join(paragraphs), 250, 40)
    last_chunk = 0
    for paragraph in paragraphs:
        holders = [i for i, c in enumerate(chunks) if paragraph in c.text]
        assert holders, paragraph[:20]
        assert holders[-1] >= last_chunk
        last_chunk = holders[-1]


def test_hard_split_for_oversized_paragraph_covers_text():
    text = "x" * 5000
    chunks = chunk_text(text, 100, 10)
    assert [len(c.text) for c in chunks] == [3750, 937, 313]
    assert "".join(c.text for c in chunks) == text
    assert estimate_tokens(chunks[-1].text) <= 100


def test_hard_split_respects_minimum_cut_width():
    text = "z" * 1200
    chunks = chunk_text(text, 10, 0, hard_split_min_chars=1000)
    assert len(chunks[0].text) == 1000
    assert "".join(c.text for c in chunks) == text


def test_chunking_is_deterministic():
    text = "\n\n".join(_paragraph(f"d{i}", 40) for i in range(25))
    assert chunk_text(text, 200, 50) == chunk_text(text, 200, 50)


def test_chunks_are_immutable():
    chunk = Chunk.from_text("hello")
    with pytest.raises(AttributeError):
        chunk.text = "bye"  # type: ignore[misc]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_tokens": 0, "overlap_tokens": 10},
        {"max_tokens": 100, "overlap_tokens": -1},
        {"max_tokens": 100, "overlap_tokens": 10, "hard_split_min_chars": 0},
        {"max_tokens": 100, "overlap_tokens": 10, "hard_split_ratio": 1.0},
    ],
)
def test_invalid_budgets_raise_configuration_error(kwargs):
    with pytest.raises(ConfigurationError):
        chunk_text("some text", **kwargs)


def test_exact_fit_budget_keeps_size_bound_over_overlap():
    first = _paragraph("alpha", 250)
    second = _paragraph("omega", 250)
    budget = estimate_tokens(second)

    chunks = chunk_text(f"{first}\n\n{second}", budget, 120)

    assert [c.text for c in chunks] == [first, second]
    assert all(c.estimated_tokens <= budget for c in chunks)


def test_partial_room_keeps_a_shorter_overlap_tail():
    first = _paragraph("alpha", 250)
    second = _paragraph("omega", 250)
    budget = estimate_tokens(second) + 44

    chunks = chunk_text(f"{first}\n\n{second}", budget, 120)

    assert len(chunks) == 2
    tail, _, rest = chunks[1].text.partition("\n\n")
    assert rest == second
    assert tail.startswith("alpha")
    assert first.endswith(tail)
    assert chunks[1].estimated_tokens <= budget
