"""SQLite-backed storage for one bucket: documents, chunks and study items."""

from __future__ import annotations

import datetime as dt
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from librarian.core.errors import DocumentNotFoundError, DuplicateSourceError

from .models import Chunk, Document, DocumentKind, StudyItem, StudyItemKind, utcnow
from .session import create_store_engine, make_session_factory
from .vectors import bytes_to_embedding, embedding_to_bytes

_FTS_TOKEN_RE = re.compile(r"\w+(?:[.\-]\w+)*")


def fts_query(raw: str) -> str:
    """
    Build an FTS5 MATCH expression from free text.

    Every token is quoted (so "0.3" or "and" are never parsed as syntax) and
    the tokens are OR-ed; bm25 ranking orders chunks matching more of them first.
    """
    tokens = _FTS_TOKEN_RE.findall(raw)
    return " OR ".join(f'"{tok}"' for tok in tokens)


@dataclass
class NewChunk:
    """Chunk row to insert alongside a new document."""

    chunk_index: int
    content: str
    embedding: Optional[np.ndarray] = None


@dataclass
class NewStudyItem:
    kind: StudyItemKind
    front: str
    back: str
    document_id: Optional[int] = None


class BucketStore:
    """
    Persistence for a single bucket.

    Each public method runs in its own transaction. Returned ORM objects are
    detached (expire_on_commit=False), so callers can read them freely and
    hand mutated study items back through save_study_item().
    """

    def __init__(self, path: Path | str, *, echo: bool = False) -> None:
        self.path = Path(path)
        self.engine = create_store_engine(self.path, echo=echo)
        self._session_factory = make_session_factory(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for a transactional session."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()

    # Documents

    def add_document(
        self,
        *,
        source_path: str,
        display_name: str,
        kind: DocumentKind,
        content: str,
        tags: Optional[str] = None,
        chunks: Sequence[NewChunk] = (),
    ) -> Document:
        """Insert a document and its chunks in one transaction; rejects duplicate sources."""
        existing = self.find_by_source(source_path)
        if existing is not None:
            raise DuplicateSourceError(source_path, existing.id)

        doc = Document(
            source_path=source_path,
            display_name=display_name,
            kind=kind,
            content=content,
            tags=tags,
        )
        for ch in chunks:
            doc.chunks.append(
                Chunk(
                    chunk_index=ch.chunk_index,
                    content=ch.content,
                    embedding=embedding_to_bytes(ch.embedding) if ch.embedding is not None else None,
                )
            )
        try:
            with self.session() as session:
                session.add(doc)
                session.flush()
        except IntegrityError as e:
            # Lost a race with another writer on the unique source_path.
            raise DuplicateSourceError(source_path) from e
        return doc

    def has_source(self, source_path: str) -> bool:
        return self.find_by_source(source_path) is not None

    def find_by_source(self, source_path: str) -> Optional[Document]:
        with self.session() as session:
            return session.scalar(select(Document).where(Document.source_path == source_path))

    def get_document(self, document_id: int) -> Optional[Document]:
        with self.session() as session:
            return session.get(Document, document_id)

    def require_document(self, document_id: int) -> Document:
        doc = self.get_document(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    def get_documents(self, document_ids: Iterable[int]) -> Dict[int, Document]:
        ids = list(set(document_ids))
        if not ids:
            return {}
        with self.session() as session:
            rows = session.scalars(select(Document).where(Document.id.in_(ids))).all()
        return {doc.id: doc for doc in rows}

    def list_documents(self, limit: Optional[int] = None) -> List[Document]:
        """Documents newest first."""
        stmt = select(Document).order_by(Document.created_at.desc(), Document.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.session() as session:
            return list(session.scalars(stmt).all())

    def search_documents(self, query: str, limit: int = 5) -> List[Document]:
        """Full-text search over name, content and tags, best match first."""
        match = fts_query(query)
        if not match:
            return []
        with self.session() as session:
            ids = session.execute(
                text(
                    "SELECT rowid FROM documents_fts WHERE documents_fts MATCH :q "
                    "ORDER BY rank LIMIT :k"
                ),
                {"q": match, "k": limit},
            ).scalars().all()
            if not ids:
                return []
            rows = session.scalars(select(Document).where(Document.id.in_(ids))).all()
        by_id = {doc.id: doc for doc in rows}
        return [by_id[i] for i in ids if i in by_id]

    def update_tags(self, document_id: int, tags: Optional[str]) -> Document:
        with self.session() as session:
            doc = session.get(Document, document_id)
            if doc is None:
                raise DocumentNotFoundError(document_id)
            doc.tags = tags
            doc.updated_at = utcnow()
            session.flush()
            return doc

    def delete_document(self, document_id: int) -> bool:
        """Delete a document; chunks go with it through ON DELETE CASCADE."""
        with self.session() as session:
            result = session.execute(delete(Document).where(Document.id == document_id))
            return result.rowcount > 0

    def count_documents(self) -> int:
        with self.session() as session:
            return session.scalar(select(func.count(Document.id))) or 0

    # Chunks

    def get_chunks(self, chunk_ids: Iterable[int]) -> Dict[int, Chunk]:
        ids = list(set(chunk_ids))
        if not ids:
            return {}
        with self.session() as session:
            rows = session.scalars(select(Chunk).where(Chunk.id.in_(ids))).all()
        return {ch.id: ch for ch in rows}

    def chunks_for_document(self, document_id: int) -> List[Chunk]:
        with self.session() as session:
            return list(
                session.scalars(
                    select(Chunk).where(Chunk.document_id == document_id).order_by(Chunk.chunk_index)
                ).all()
            )

    def embedded_chunks(self) -> List[Tuple[int, np.ndarray]]:
        """(chunk id, vector) for every chunk carrying an embedding, in id order."""
        with self.session() as session:
            rows = session.execute(
                select(Chunk.id, Chunk.embedding)
                .where(Chunk.embedding.is_not(None))
                .order_by(Chunk.id)
            ).all()
        return [(cid, bytes_to_embedding(blob)) for cid, blob in rows]

    def unembedded_chunks(self) -> List[Chunk]:
        with self.session() as session:
            return list(
                session.scalars(
                    select(Chunk).where(Chunk.embedding.is_(None)).order_by(Chunk.id)
                ).all()
            )

    def set_embedding(self, chunk_id: int, embedding: np.ndarray) -> None:
        with self.session() as session:
            chunk = session.get(Chunk, chunk_id)
            if chunk is None:
                raise LookupError(f"Chunk {chunk_id} not found")
            chunk.embedding = embedding_to_bytes(embedding)

    def search_chunks(self, query: str, limit: int = 10) -> List[int]:
        """Keyword search over chunk text; chunk ids in FTS5 rank order."""
        match = fts_query(query)
        if not match or limit <= 0:
            return []
        with self.session() as session:
            return list(
                session.execute(
                    text(
                        "SELECT rowid FROM chunks_fts WHERE chunks_fts MATCH :q "
                        "ORDER BY rank LIMIT :k"
                    ),
                    {"q": match, "k": limit},
                ).scalars().all()
            )

    def count_chunks(self, document_id: Optional[int] = None) -> int:
        stmt = select(func.count(Chunk.id))
        if document_id is not None:
            stmt = stmt.where(Chunk.document_id == document_id)
        with self.session() as session:
            return session.scalar(stmt) or 0

    # Study items

    def add_study_items(self, items: Iterable[NewStudyItem], *, now: Optional[dt.datetime] = None) -> List[StudyItem]:
        """Insert new items, due immediately."""
        now = now or utcnow()
        rows = [
            StudyItem(
                document_id=item.document_id,
                item_type=item.kind,
                front=item.front,
                back=item.back,
                next_review_at=now,
                interval_days=1.0,
                ease_factor=2.5,
                review_count=0,
                created_at=now,
                updated_at=now,
            )
            for item in items
        ]
        if not rows:
            return []
        with self.session() as session:
            session.add_all(rows)
            session.flush()
        return rows

    def get_study_item(self, item_id: int) -> Optional[StudyItem]:
        with self.session() as session:
            return session.get(StudyItem, item_id)

    def due_study_items(self, now: Optional[dt.datetime] = None, limit: int = 50) -> List[StudyItem]:
        """Items with next_review_at <= now, oldest overdue first."""
        now = now or utcnow()
        with self.session() as session:
            return list(
                session.scalars(
                    select(StudyItem)
                    .where(StudyItem.next_review_at <= now)
                    .order_by(StudyItem.next_review_at.asc(), StudyItem.id.asc())
                    .limit(limit)
                ).all()
            )

    def count_due(self, now: Optional[dt.datetime] = None) -> int:
        now = now or utcnow()
        with self.session() as session:
            return session.scalar(
                select(func.count(StudyItem.id)).where(StudyItem.next_review_at <= now)
            ) or 0

    def save_study_item(self, item: StudyItem) -> StudyItem:
        """Persist scheduler changes made to a detached item."""
        with self.session() as session:
            merged = session.merge(item)
            session.flush()
            return merged

    def list_study_items(self, kind: Optional[StudyItemKind] = None) -> List[StudyItem]:
        stmt = select(StudyItem).order_by(StudyItem.id)
        if kind is not None:
            stmt = stmt.where(StudyItem.item_type == kind)
        with self.session() as session:
            return list(session.scalars(stmt).all())

    def delete_study_item(self, item_id: int) -> bool:
        with self.session() as session:
            result = session.execute(delete(StudyItem).where(StudyItem.id == item_id))
            return result.rowcount > 0

    def count_study_items(self) -> int:
        with self.session() as session:
            return session.scalar(select(func.count(StudyItem.id))) or 0
