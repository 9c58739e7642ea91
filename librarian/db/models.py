from __future__ import annotations

import datetime as dt
import enum
from pathlib import Path
from typing import List, Optional

from sqlalchemy import (
    Enum,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from librarian.core.errors import CorruptRecordError


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as an ISO-8601 UTC string.

    A fixed microsecond format keeps lexicographic order equal to
    chronological order, so due-date filters can run in SQL.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetimes are not accepted; pass a UTC-aware value")
        return value.astimezone(dt.timezone.utc).isoformat(timespec="microseconds")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            parsed = dt.datetime.fromisoformat(value)
        except (TypeError, ValueError) as e:
            raise CorruptRecordError(f"Invalid timestamp {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=dt.timezone.utc)
        return parsed.astimezone(dt.timezone.utc)


class DocumentKind(str, enum.Enum):
    """Content type tag of an ingested document (values are persisted)."""

    PDF = "pdf"
    TEXT = "text"
    MARKDOWN = "markdown"
    AUDIO = "audio"
    VIDEO = "video"
    IMAGE = "image"
    URL = "url"
    UNKNOWN = "unknown"
    GENERATED_STUDY_GUIDE = "generated-study-guide"
    GENERATED_FLASHCARDS = "generated-flashcards"
    GENERATED_QUIZ = "generated-quiz"
    GENERATED_SUMMARY = "generated-summary"

    @classmethod
    def from_path(cls, path: str | Path) -> "DocumentKind":
        if str(path).startswith(("http://", "https://")):
            return cls.URL
        return _EXTENSION_KINDS.get(Path(path).suffix.lower(), cls.UNKNOWN)

    @property
    def is_media(self) -> bool:
        return self in (DocumentKind.AUDIO, DocumentKind.VIDEO)

    @property
    def needs_extraction(self) -> bool:
        """True when text must come from an external extractor (PDF, OCR, transcription, scraping)."""
        return self in (
            DocumentKind.PDF,
            DocumentKind.AUDIO,
            DocumentKind.VIDEO,
            DocumentKind.IMAGE,
            DocumentKind.URL,
        )


_EXTENSION_KINDS = {
    ".pdf": DocumentKind.PDF,
    ".txt": DocumentKind.TEXT,
    ".md": DocumentKind.MARKDOWN,
    ".markdown": DocumentKind.MARKDOWN,
    ".mp3": DocumentKind.AUDIO,
    ".wav": DocumentKind.AUDIO,
    ".m4a": DocumentKind.AUDIO,
    ".ogg": DocumentKind.AUDIO,
    ".flac": DocumentKind.AUDIO,
    ".mp4": DocumentKind.VIDEO,
    ".mkv": DocumentKind.VIDEO,
    ".avi": DocumentKind.VIDEO,
    ".mov": DocumentKind.VIDEO,
    ".webm": DocumentKind.VIDEO,
    ".flv": DocumentKind.VIDEO,
    ".png": DocumentKind.IMAGE,
    ".jpg": DocumentKind.IMAGE,
    ".jpeg": DocumentKind.IMAGE,
    ".gif": DocumentKind.IMAGE,
    ".bmp": DocumentKind.IMAGE,
    ".tiff": DocumentKind.IMAGE,
    ".tif": DocumentKind.IMAGE,
    ".webp": DocumentKind.IMAGE,
}


class StudyItemKind(str, enum.Enum):
    """Kind of a spaced-repetition item (values are persisted)."""

    FLASHCARD = "flashcard"
    QUIZ_MULTIPLE_CHOICE = "quiz_mc"
    QUIZ_FILL_BLANK = "quiz_fill"
    QUIZ_SHORT_ANSWER = "quiz_short"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Absolute file path or URL; dedup key within a bucket
    source_path: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column("filename", Text, nullable=False)
    kind: Mapped[DocumentKind] = mapped_column(
        "content_type",
        Enum(DocumentKind, native_enum=False, length=32, values_callable=_enum_values),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Optional comma-separated tags
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    chunks: Mapped[List["Chunk"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Chunk.chunk_index",
    )


class Chunk(Base):
    __tablename__ = "chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Little-endian float32 bytes; NULL when embedding generation failed
    embedding: Mapped[Optional[bytes]] = mapped_column(LargeBinary, nullable=True)

    document: Mapped["Document"] = relationship(back_populates="chunks")


class StudyItem(Base):
    __tablename__ = "study_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    item_type: Mapped[StudyItemKind] = mapped_column(
        Enum(StudyItemKind, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)

    next_review_at: Mapped[dt.datetime] = mapped_column(
        "next_review_date",
        UTCDateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )
    interval_days: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
