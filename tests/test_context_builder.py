from __future__ import annotations

import pytest

from librarian.generation.config import GenerationConfig
from librarian.generation.context_builder import (
    approx_tokens,
    assemble_context,
    available_budget,
    truncate_content,
)
from librarian.rag.retriever import SOURCE_DOCUMENT, SOURCE_KEYWORD, RetrievalResult


def _chunk(i: int, content: str, name: str = "notes.md") -> RetrievalResult:
    return RetrievalResult(
        document_id=1,
        document_name=name,
        content=content,
        source=SOURCE_KEYWORD,
        chunk_id=100 + i,
        chunk_index=i,
    )


def test_truncate_content_fits_unchanged():
    assert truncate_content("short text", 100) == "short text"


def test_truncate_content_cuts_at_sentence_end():
    text = "First sentence here. Second sentence is much longer than the limit allows."
    assert truncate_content(text, 40) == "First sentence here."


def test_truncate_content_cuts_at_paragraph_then_newline():
    assert truncate_content("alpha beta\n\ngamma delta epsilon", 20) == "alpha beta"
    assert truncate_content("alpha beta\ngamma delta epsilon", 20) == "alpha beta"


def test_truncate_content_hard_cut_never_exceeds_limit():
    out = truncate_content("x" * 50, 20)
    assert out == "x" * 17 + "..."
    assert len(out) == 20
    assert truncate_content("abcdef", 0) == ""


def test_approx_tokens():
    assert approx_tokens("a" * 400) == 100
    assert approx_tokens("") == 1


def test_available_budget_is_clamped():
    config = GenerationConfig(model_context_tokens=131072)
    assert available_budget(1000, 1000, config=config) == config.max_context_chars
    small = GenerationConfig(model_context_tokens=2048)
    assert available_budget(1000, 1000, config=small) == small.min_context_chars


def test_available_budget_between_bounds():
    config = GenerationConfig(
        model_context_tokens=4000,
        response_reserve_tokens=1000,
        min_context_chars=100,
        max_context_chars=100000,
    )
    # 16000 - 500 - 500 - 4000
    assert available_budget(500, 500, config=config) == 11000


def test_assemble_context_labels_blocks():
    results = [_chunk(0, "Mitochondria make ATP."), _chunk(3, "Ribosomes make proteins.")]
    used, text = assemble_context(results, 1000)
    assert used == results
    assert text == (
        "--- Document: notes.md (chunk 0) ---\nMitochondria make ATP.\n\n"
        "--- Document: notes.md (chunk 3) ---\nRibosomes make proteins.\n\n"
    )


def test_assemble_context_whole_document_label():
    doc = RetrievalResult(document_id=2, document_name="essay.txt", content="Body.", source=SOURCE_DOCUMENT)
    used, text = assemble_context([doc], 1000)
    assert text.startswith("--- Document: essay.txt ---\n")
    assert used[0].is_whole_document


@pytest.mark.parametrize("budget", [60, 150, 400, 1000])
def test_assemble_context_respects_budget(budget: int):
    sentence = "Cells divide by mitosis. "
    results = [_chunk(i, sentence * 20) for i in range(5)]
    used, text = assemble_context(results, budget)
    assert len(text) <= budget
    assert len(used) == text.count("--- Document:")
    for r in used:
        assert r.content in text


def test_assemble_context_caps_each_chunk():
    long = "word " * 1000
    used, text = assemble_context([_chunk(0, long)], 10000, chunk_block_chars=100)
    assert len(used[0].content) <= 100


def test_assemble_context_nothing_fits():
    used, text = assemble_context([_chunk(0, "content")], 10)
    assert used == []
    assert text == ""
