from __future__ import annotations

import pytest

from librarian.rag.query_rewriter import QueryRewriter, enhance_query


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("what is the mitochondria", "mitochondria"),
        ("How does DNA replication work?", "DNA replication work"),
        ("explain the process of photosynthesis", "process of photosynthesis"),
        ("mitochondria function", "mitochondria function"),
        ("what is theory", "theory"),
        ("tell me about page 26", "page 26 26"),
    ],
)
def test_enhance_query(raw: str, expected: str):
    assert enhance_query(raw) == expected


def test_enhance_keeps_numbered_references():
    raw = "can you give me the answer for the chapter 0 exercises specifically 0.3?"
    enhanced = enhance_query(raw)
    assert enhanced == "the chapter 0 exercises 0.3 0 0.3"
    assert "specifically" not in enhanced


def test_trailing_filler_removed():
    assert enhance_query("explain exercise 2.1 and all its sub questions") == "exercise 2.1 2.1"


def test_prefix_alone_is_not_stripped():
    # Nothing would remain, so the query is kept as typed
    assert enhance_query("explain") == "explain"


def test_extract_references():
    rewriter = QueryRewriter()
    assert rewriter.extract_references("see Figure 3, then section 4.2 and page x") == ["3", "4.2"]


def test_rewrite_returns_both_forms():
    out = QueryRewriter().rewrite("  what are the stages of mitosis?  ")
    assert out["original"] == "what are the stages of mitosis?"
    assert out["keyword_query"] == "stages of mitosis"
    assert out["semantic_query"] == out["keyword_query"]


def test_custom_rules():
    rewriter = QueryRewriter(filler_prefixes=["yo"], filler_words=[], reference_keywords=[])
    assert rewriter.enhance("yo what is ATP specifically") == "what is ATP specifically"
