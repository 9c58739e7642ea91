"""
Unified retriever interface for the RAG pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

# Where a result came from
SOURCE_KEYWORD = "keyword"
SOURCE_SEMANTIC = "semantic"
SOURCE_DOCUMENT = "document"
SOURCE_LISTING = "listing"


@dataclass
class RetrievalResult:
    """One labeled block of retrieved text."""

    document_id: int
    document_name: str
    content: str
    source: str
    chunk_id: Optional[int] = None
    chunk_index: Optional[int] = None

    @property
    def is_whole_document(self) -> bool:
        return self.chunk_id is None

    @property
    def label(self) -> str:
        if self.chunk_index is None:
            return f"--- Document: {self.document_name} ---"
        return f"--- Document: {self.document_name} (chunk {self.chunk_index}) ---"


@dataclass
class ContextBundle:
    """Retrieval output ready to drop into a prompt."""

    query: str
    enhanced_query: str
    results: List[RetrievalResult] = field(default_factory=list)
    text: str = ""
    strategy: str = "none"

    @property
    def is_empty(self) -> bool:
        return not self.results

    @property
    def document_names(self) -> List[str]:
        return list(dict.fromkeys(r.document_name for r in self.results))


class Retriever(Protocol):
    """Protocol for retrieval implementations."""

    def retrieve(self, query: str, max_context_chars: int | None = None) -> List[RetrievalResult]:
        """
        Retrieve blocks relevant to the query.

        Args:
            query: User query string
            max_context_chars: Character budget for the combined blocks

        Returns:
            Ordered, deduplicated results whose content fits the budget
        """
        ...

    def build_context(self, query: str, max_context_chars: int | None = None) -> ContextBundle:
        ...

    def build_overview(self, max_context_chars: int | None = None, limit: int = 10) -> ContextBundle:
        ...
