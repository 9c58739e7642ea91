"""
Exception hierarchy shared by the storage, retrieval and study layers.

Degradable failures (EmbeddingUnavailable) are handled inside the retrieval
core. Everything else propagates to the caller, which decides how to present
it; NotFoundError and EmptyQueryError mark user-input conditions rather than
system faults.
"""

from __future__ import annotations


class LibrarianError(Exception):
    """Base class for all domain errors."""


class NotFoundError(LibrarianError, LookupError):
    """A requested bucket, document or study item does not exist."""


class BucketNotFoundError(NotFoundError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Bucket '{name}' does not exist")
        self.name = name


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: int) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class StudyItemNotFound(NotFoundError):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Study item {item_id} not found")
        self.item_id = item_id


class EmptyQueryError(LibrarianError, ValueError):
    """The query is empty after trimming and filler removal."""


class InvalidBucketNameError(LibrarianError, ValueError):
    """A bucket name normalises to an empty string."""


class BucketExistsError(LibrarianError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Bucket '{name}' already exists")
        self.name = name


class DuplicateSourceError(LibrarianError):
    """A document with the same source path is already stored."""

    def __init__(self, source_path: str, existing_id: int | None = None) -> None:
        super().__init__(f"Document already exists: {source_path}")
        self.source_path = source_path
        self.existing_id = existing_id


class UnsupportedSourceError(LibrarianError):
    """The source needs an extractor (PDF, OCR, transcription) not provided here."""


class CorruptRecordError(LibrarianError):
    """Stored bytes or timestamps could not be decoded."""


class ConfigError(LibrarianError):
    """The configuration file exists but cannot be parsed."""


class EmbeddingUnavailable(LibrarianError, RuntimeError):
    """The embedding provider could not produce a vector."""


class LLMError(LibrarianError, RuntimeError):
    """The chat completion endpoint failed."""


class NoDocumentsError(NotFoundError):
    """The bucket holds no documents to ground a generation request."""
