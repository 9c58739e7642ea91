from __future__ import annotations

import datetime as dt

import numpy as np
import pytest
from sqlalchemy import text

from librarian.core.errors import CorruptRecordError, DocumentNotFoundError, DuplicateSourceError
from librarian.db.models import DocumentKind, StudyItemKind, UTCDateTime
from librarian.db.store import BucketStore, NewChunk, NewStudyItem, fts_query


def _add(store: BucketStore, source: str = "/notes/a.md", content: str = "Mitochondria make ATP.", **kwargs):
    return store.add_document(
        source_path=source,
        display_name=source.rsplit("/", 1)[-1],
        kind=DocumentKind.MARKDOWN,
        content=content,
        chunks=[NewChunk(chunk_index=0, content=content, embedding=np.ones(4, dtype=np.float32))],
        **kwargs,
    )


def test_fts_query_quotes_tokens():
    assert fts_query("exercise 0.3 and NOT") == '"exercise" OR "0.3" OR "and" OR "NOT"'
    assert fts_query("?!") == ""


def test_add_and_get_document(store: BucketStore):
    doc = _add(store, tags="bio")
    fetched = store.require_document(doc.id)
    assert fetched.display_name == "a.md"
    assert fetched.kind == DocumentKind.MARKDOWN
    assert fetched.tags == "bio"
    assert fetched.created_at.tzinfo is not None
    assert store.count_documents() == 1
    assert store.count_chunks(doc.id) == 1


def test_duplicate_source_rejected(store: BucketStore):
    doc = _add(store)
    with pytest.raises(DuplicateSourceError) as exc:
        _add(store)
    assert exc.value.existing_id == doc.id
    assert store.count_documents() == 1


def test_missing_document(store: BucketStore):
    assert store.get_document(999) is None
    with pytest.raises(DocumentNotFoundError):
        store.require_document(999)
    with pytest.raises(DocumentNotFoundError):
        store.update_tags(999, "x")


def test_delete_cascades_to_chunks_and_index(store: BucketStore):
    doc = _add(store)
    assert store.search_chunks("mitochondria") != []

    assert store.delete_document(doc.id) is True
    assert store.count_chunks() == 0
    assert store.search_chunks("mitochondria") == []
    assert store.search_documents("mitochondria") == []
    assert store.delete_document(doc.id) is False


def test_delete_keeps_study_items_unlinked(store: BucketStore):
    doc = _add(store)
    (item,) = store.add_study_items([NewStudyItem(StudyItemKind.FLASHCARD, "Q", "A", document_id=doc.id)])
    store.delete_document(doc.id)
    assert store.get_study_item(item.id).document_id is None


def test_search_chunks_ranks_matches(store: BucketStore):
    _add(store, "/notes/a.md", "Mitochondria produce ATP for the cell.")
    _add(store, "/notes/b.md", "Ribosomes build proteins.")
    hits = store.search_chunks("ribosomes proteins")
    chunks = store.get_chunks(hits)
    assert len(hits) == 1
    assert "Ribosomes" in chunks[hits[0]].content


def test_search_documents_matches_name_and_tags(store: BucketStore):
    _add(store, "/notes/genetics-lecture.md", "Base pairs.", tags="dna")
    assert [d.display_name for d in store.search_documents("genetics")] == ["genetics-lecture.md"]
    assert [d.display_name for d in store.search_documents("dna")] == ["genetics-lecture.md"]


def test_update_tags_reindexes(store: BucketStore):
    doc = _add(store)
    store.update_tags(doc.id, "exam-prep")
    assert [d.id for d in store.search_documents("exam-prep")] == [doc.id]


def test_list_documents_newest_first(store: BucketStore):
    first = _add(store, "/notes/1.md", "one")
    second = _add(store, "/notes/2.md", "two")
    assert [d.id for d in store.list_documents()] == [second.id, first.id]
    assert [d.id for d in store.list_documents(limit=1)] == [second.id]


def test_embeddings_round_trip_and_reembed(store: BucketStore):
    doc = store.add_document(
        source_path="/notes/c.md",
        display_name="c.md",
        kind=DocumentKind.MARKDOWN,
        content="x",
        chunks=[NewChunk(0, "first"), NewChunk(1, "second", np.array([1.0, 2.0], dtype=np.float32))],
    )
    embedded = store.embedded_chunks()
    assert len(embedded) == 1
    np.testing.assert_array_equal(embedded[0][1], [1.0, 2.0])

    (missing,) = store.unembedded_chunks()
    assert missing.content == "first"
    store.set_embedding(missing.id, np.array([0.5, 0.5], dtype=np.float32))
    assert store.unembedded_chunks() == []
    assert [c.chunk_index for c in store.chunks_for_document(doc.id)] == [0, 1]


def test_corrupt_embedding_blob_raises(store: BucketStore):
    _add(store)
    with store.session() as session:
        session.execute(text("UPDATE chunks SET embedding = :blob"), {"blob": b"\x01\x02\x03"})
    with pytest.raises(CorruptRecordError):
        store.embedded_chunks()


def test_corrupt_timestamp_raises():
    with pytest.raises(CorruptRecordError):
        UTCDateTime().process_result_value("not a date", None)


def test_naive_datetime_rejected():
    with pytest.raises(ValueError):
        UTCDateTime().process_bind_param(dt.datetime(2025, 1, 1), None)


def test_due_items_oldest_first(store: BucketStore):
    now = dt.datetime(2025, 1, 10, tzinfo=dt.timezone.utc)
    later = store.add_study_items([NewStudyItem(StudyItemKind.FLASHCARD, "later", "x")], now=now)
    earlier = store.add_study_items(
        [NewStudyItem(StudyItemKind.FLASHCARD, "earlier", "x")],
        now=now - dt.timedelta(days=3),
    )
    store.add_study_items(
        [NewStudyItem(StudyItemKind.FLASHCARD, "future", "x")],
        now=now + dt.timedelta(days=1),
    )

    due = store.due_study_items(now=now)
    assert [i.id for i in due] == [earlier[0].id, later[0].id]
    assert store.count_due(now=now) == 2
    assert store.count_study_items() == 3


def test_save_study_item_persists_schedule(store: BucketStore):
    (item,) = store.add_study_items([NewStudyItem(StudyItemKind.QUIZ_SHORT_ANSWER, "Q", "A")])
    item.interval_days = 6.0
    item.review_count = 2
    item.next_review_at = item.next_review_at + dt.timedelta(days=6)
    store.save_study_item(item)

    reloaded = store.get_study_item(item.id)
    assert reloaded.interval_days == 6.0
    assert reloaded.review_count == 2
    assert reloaded.next_review_at == item.next_review_at
    assert reloaded.item_type == StudyItemKind.QUIZ_SHORT_ANSWER


def test_list_and_delete_study_items(store: BucketStore):
    store.add_study_items(
        [
            NewStudyItem(StudyItemKind.FLASHCARD, "f", "b"),
            NewStudyItem(StudyItemKind.QUIZ_MULTIPLE_CHOICE, "q", "a"),
        ]
    )
    (mc,) = store.list_study_items(StudyItemKind.QUIZ_MULTIPLE_CHOICE)
    assert store.delete_study_item(mc.id) is True
    assert store.delete_study_item(mc.id) is False
    assert [i.item_type for i in store.list_study_items()] == [StudyItemKind.FLASHCARD]
