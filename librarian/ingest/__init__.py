"""
Ingestion module: turning extracted text into stored, chunked, embedded documents.
"""

from .pipeline import BatchFailure, BatchReport, IngestionService, IngestResult
from .sources import SourceDocument, iter_source_files, load_text_file

__all__ = [
    "BatchFailure",
    "BatchReport",
    "IngestionService",
    "IngestResult",
    "SourceDocument",
    "iter_source_files",
    "load_text_file",
]
