"""
Ingestion: chunk extracted text, embed the chunks and store everything in a
bucket. Documents are processed one at a time; a failed embedding leaves the
chunk without a vector rather than failing the document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

import numpy as np

from librarian.core.errors import (
    DuplicateSourceError,
    EmbeddingUnavailable,
    LibrarianError,
    UnsupportedSourceError,
)
from librarian.db.models import DocumentKind, utcnow
from librarian.db.store import BucketStore, NewChunk
from librarian.rag.chunker import ChunkConfig, TextChunk, chunk_text
from librarian.rag.dense import EmbeddingProvider

from .sources import SourceDocument, load_text_file

logger = logging.getLogger(__name__)

GENERATED_TAGS = "generated,study-material"


@dataclass
class IngestResult:
    document_id: int
    display_name: str
    chunk_count: int
    embedded_count: int
    skipped: bool = False


@dataclass
class BatchFailure:
    source: str
    error: str


@dataclass
class BatchReport:
    """Outcome of a bulk ingestion; failures never abort the batch."""

    results: List[IngestResult] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def added(self) -> List[IngestResult]:
        return [r for r in self.results if not r.skipped]

    @property
    def skipped(self) -> List[IngestResult]:
        return [r for r in self.results if r.skipped]


class IngestionService:
    """Adds documents to one bucket's store."""

    def __init__(
        self,
        store: BucketStore,
        embedder: Optional[EmbeddingProvider] = None,
        chunk_config: Optional[ChunkConfig] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.chunk_config = chunk_config or ChunkConfig()

    def ingest(self, source: SourceDocument) -> IngestResult:
        """
        Store one document with its chunks.

        A source path that is already present is reported as skipped with the
        existing document id; nothing is written.
        """
        existing = self.store.find_by_source(source.source_path)
        if existing is not None:
            logger.info("Skipping %s: already ingested as document %s", source.source_path, existing.id)
            return self._skipped(existing.id, existing.display_name)

        if not source.text.strip():
            raise UnsupportedSourceError(f"{source.display_name}: no text content")

        pieces = chunk_text(source.text, self.chunk_config)
        embeddings = self._embed_chunks(pieces)
        new_chunks = [
            NewChunk(chunk_index=p.index, content=p.text, embedding=emb)
            for p, emb in zip(pieces, embeddings)
        ]

        try:
            doc = self.store.add_document(
                source_path=source.source_path,
                display_name=source.display_name,
                kind=source.kind,
                content=source.text,
                tags=source.tags,
                chunks=new_chunks,
            )
        except DuplicateSourceError as e:
            # Another writer stored it between the check and the insert.
            if e.existing_id is None:
                raise
            return self._skipped(e.existing_id, source.display_name)

        embedded = sum(1 for emb in embeddings if emb is not None)
        logger.info(
            "Ingested %s as document %s (%d chunks, %d embedded)",
            source.display_name,
            doc.id,
            len(new_chunks),
            embedded,
        )
        return IngestResult(
            document_id=doc.id,
            display_name=doc.display_name,
            chunk_count=len(new_chunks),
            embedded_count=embedded,
        )

    def ingest_path(self, path: Union[Path, str], tags: Optional[str] = None) -> IngestResult:
        return self.ingest(load_text_file(path, tags=tags))

    def ingest_many(
        self,
        sources: Iterable[Union[SourceDocument, Path, str]],
        tags: Optional[str] = None,
    ) -> BatchReport:
        """Ingest sources one at a time, recording per-source failures. `tags` applies to file paths."""
        report = BatchReport()
        for source in sources:
            label = source.source_path if isinstance(source, SourceDocument) else str(source)
            try:
                if isinstance(source, SourceDocument):
                    result = self.ingest(source)
                else:
                    result = self.ingest_path(source, tags=tags)
            except (LibrarianError, OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to ingest %s: %s", label, e)
                report.failures.append(BatchFailure(source=label, error=str(e)))
                continue
            report.results.append(result)
        return report

    def ingest_generated(
        self,
        text: str,
        kind: DocumentKind,
        display_name: str,
        source_path: Optional[str] = None,
    ) -> IngestResult:
        """Store generated study material so later retrieval can use it."""
        if source_path is None:
            stamp = utcnow().strftime("%Y%m%dT%H%M%S%f")
            source_path = f"generated://{kind.value}/{stamp}"
        source = SourceDocument(
            source_path=source_path,
            display_name=display_name,
            kind=kind,
            text=text,
            tags=GENERATED_TAGS,
        )
        return self.ingest(source)

    def reembed_missing(self) -> int:
        """Attach embeddings to chunks stored without one; returns how many were fixed."""
        if self.embedder is None:
            return 0
        fixed = 0
        for chunk in self.store.unembedded_chunks():
            try:
                vec = self.embedder.embed_one(chunk.content)
            except EmbeddingUnavailable as e:
                logger.warning("Embedding still unavailable, stopping after %d chunks: %s", fixed, e)
                break
            self.store.set_embedding(chunk.id, vec)
            fixed += 1
        return fixed

    def _embed_chunks(self, pieces: List[TextChunk]) -> List[Optional[np.ndarray]]:
        embeddings: List[Optional[np.ndarray]] = [None] * len(pieces)
        if self.embedder is None or not pieces:
            return embeddings

        embed_batch = getattr(self.embedder, "embed", None)
        if callable(embed_batch):
            try:
                vectors = embed_batch([piece.text for piece in pieces])
            except EmbeddingUnavailable as e:
                logger.warning("Batch embedding failed, retrying chunk by chunk: %s", e)
            else:
                if len(vectors) == len(pieces):
                    return [np.asarray(v, dtype=np.float32) for v in vectors]
                logger.warning(
                    "Batch embedding returned %d vectors for %d chunks, retrying chunk by chunk",
                    len(vectors),
                    len(pieces),
                )

        for i, piece in enumerate(pieces):
            try:
                embeddings[i] = self.embedder.embed_one(piece.text)
            except EmbeddingUnavailable as e:
                # Chunks stay searchable by keyword; reembed_missing() can fill them in later.
                logger.warning("Embedding failed, storing remaining chunks without vectors: %s", e)
                break
        return embeddings

    def _skipped(self, document_id: int, display_name: str) -> IngestResult:
        return IngestResult(
            document_id=document_id,
            display_name=display_name,
            chunk_count=self.store.count_chunks(document_id),
            embedded_count=0,
            skipped=True,
        )
