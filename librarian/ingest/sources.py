"""
Source documents handed to ingestion.

Text extraction for PDFs, images, audio, video and web pages happens outside
this package; callers pass already-extracted text in a SourceDocument. Plain
text and markdown files can be loaded directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from librarian.core.errors import UnsupportedSourceError
from librarian.db.models import DocumentKind


@dataclass
class SourceDocument:
    """Extracted text plus the metadata a document row needs."""

    source_path: str
    display_name: str
    kind: DocumentKind
    text: str
    tags: Optional[str] = None

    @classmethod
    def from_text(
        cls,
        source_path: str,
        text: str,
        *,
        display_name: Optional[str] = None,
        kind: Optional[DocumentKind] = None,
        tags: Optional[str] = None,
    ) -> "SourceDocument":
        """Wrap text extracted elsewhere; name and kind default from the path."""
        return cls(
            source_path=source_path,
            display_name=display_name or _display_name(source_path),
            kind=kind or DocumentKind.from_path(source_path),
            text=text,
            tags=tags,
        )


def _display_name(source_path: str) -> str:
    if source_path.startswith(("http://", "https://")):
        return source_path
    return Path(source_path).name or source_path


def load_text_file(path: Path | str, tags: Optional[str] = None) -> SourceDocument:
    """
    Read a text or markdown file (unknown extensions are tried as text).

    Raises UnsupportedSourceError for kinds that need an extractor.
    """
    resolved = Path(path).expanduser().resolve()
    kind = DocumentKind.from_path(resolved)
    if kind.needs_extraction:
        raise UnsupportedSourceError(f"{resolved.name}: {kind.value} files need text extraction first")
    text = resolved.read_text(encoding="utf-8")
    if kind == DocumentKind.UNKNOWN:
        kind = DocumentKind.TEXT
    return SourceDocument(
        source_path=str(resolved),
        display_name=resolved.name,
        kind=kind,
        text=text,
        tags=tags,
    )


def iter_source_files(directory: Path | str, recursive: bool = False) -> Iterator[Path]:
    """Regular, non-hidden files under `directory`, sorted by path."""
    root = Path(directory)
    pattern = "**/*" if recursive else "*"
    for p in sorted(root.glob(pattern)):
        if p.is_file() and not p.name.startswith("."):
            yield p
