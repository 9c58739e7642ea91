"""
Tests for grounded chat and study-material generation.
"""

from __future__ import annotations

import pytest

from librarian.core.errors import NoDocumentsError
from librarian.db.models import DocumentKind, StudyItemKind
from librarian.db.store import BucketStore
from librarian.generation import ContentKind, GenerationConfig, StudyGenerator
from librarian.generation.prompts import GROUNDED_SYSTEM_PROMPT, NO_DOCUMENTS_SYSTEM_PROMPT
from librarian.llm.client import message
from librarian.rag import HybridRetriever

from fakes import FakeClient, FakeEmbedder


@pytest.fixture
def generator(biology_store: BucketStore, embedder: FakeEmbedder):
    client = FakeClient()
    return StudyGenerator(client=client, retriever=HybridRetriever(store=biology_store, embedder=embedder))


def test_chat_turn_wraps_question_in_context(generator: StudyGenerator):
    turn = generator.chat_turn("what is the mitochondria?")

    (messages,) = generator.client.calls
    assert messages[0] == message("system", GROUNDED_SYSTEM_PROMPT)
    assert messages[-1]["role"] == "user"
    assert "--- Document: cells.md (chunk 0) ---" in messages[-1]["content"]
    assert "what is the mitochondria?" in messages[-1]["content"]
    assert turn.answer == "A grounded answer."
    assert turn.context.document_names[0] == "cells.md"


def test_history_keeps_bare_questions(generator: StudyGenerator):
    turn = generator.chat_turn("what is the mitochondria?")
    history = turn.append_to([])
    assert history == [
        message("user", "what is the mitochondria?"),
        message("assistant", "A grounded answer."),
    ]

    generator.chat_turn("and photosynthesis?", history)
    sent = generator.client.calls[-1]
    assert sent[1:3] == history


def test_chat_without_documents_uses_fallback_prompt(store: BucketStore):
    client = FakeClient("I don't have any documents yet.")
    gen = StudyGenerator(client=client, retriever=HybridRetriever(store=store))

    turn = gen.chat_turn("what is ATP?")

    assert turn.context.is_empty
    assert client.calls[0][0]["content"] == NO_DOCUMENTS_SYSTEM_PROMPT
    assert client.calls[0][-1] == message("user", "what is ATP?")


def test_chat_budget_capped():
    config = GenerationConfig(chat_context_chars=2000)
    gen = StudyGenerator(client=FakeClient(), retriever=None, config=config)
    assert gen.chat_budget("q", []) == 2000


def test_stream_chat_yields_deltas(generator: StudyGenerator):
    context, stream = generator.stream_chat("mitochondria")
    assert not context.is_empty
    assert "".join(stream).strip() == "A grounded answer."


def test_build_messages_with_and_without_topic():
    msgs = StudyGenerator.build_messages(ContentKind.SUMMARY, "cell biology", "CTX")
    assert msgs[0]["role"] == "system"
    assert "focused on 'cell biology'" in msgs[1]["content"]
    assert msgs[1]["content"].endswith("CTX")

    msgs = StudyGenerator.build_messages(ContentKind.STUDY_GUIDE, None, "CTX")
    assert msgs[1]["content"].startswith("Create a study guide from")


def test_generate_without_topic_uses_overview(generator: StudyGenerator):
    content = generator.generate(ContentKind.STUDY_GUIDE)
    assert content.context.strategy == "overview"
    assert set(content.context.document_names) == {"cells.md", "plants.md", "exercises.txt"}
    assert content.topic is None


def test_generate_from_empty_bucket_fails(store: BucketStore):
    gen = StudyGenerator(client=FakeClient(), retriever=HybridRetriever(store=store))
    with pytest.raises(NoDocumentsError):
        gen.generate(ContentKind.QUIZ, "anything")
    with pytest.raises(NoDocumentsError):
        gen.generate(ContentKind.SUMMARY)


def test_flashcards_are_parsed(biology_store: BucketStore):
    reply = "Q: What produces ATP?\nA: Mitochondria\n\nQ: What does photosynthesis make?\nA: Glucose\n"
    gen = StudyGenerator(client=FakeClient(reply), retriever=HybridRetriever(store=biology_store))

    content, parsed = gen.flashcards("mitochondria")

    assert content.kind == ContentKind.FLASHCARDS
    assert content.topic == "mitochondria"
    assert [i.back for i in parsed.items] == ["Mitochondria", "Glucose"]


def test_quiz_skips_unanswered_questions(biology_store: BucketStore):
    reply = "1. Pick one\na) ATP\nb) DNA\n\n2. Energy currency is ___.\nAnswer: ATP\n"
    gen = StudyGenerator(client=FakeClient(reply), retriever=HybridRetriever(store=biology_store))

    _, parsed = gen.quiz()

    assert [i.kind for i in parsed.items] == [StudyItemKind.QUIZ_FILL_BLANK]
    assert parsed.skipped == 1


def test_content_kind_metadata():
    assert ContentKind.QUIZ.display_name == "Quiz"
    assert ContentKind.SUMMARY.document_kind == DocumentKind.GENERATED_SUMMARY
    assert ContentKind("study-guide") is ContentKind.STUDY_GUIDE


def test_homework_turn(generator: StudyGenerator):
    turn = generator.homework_turn("Exercise 0.3")
    assert "HOMEWORK PROBLEM: Exercise 0.3" in generator.client.calls[0][-1]["content"]
    assert turn.answer == "A grounded answer."
