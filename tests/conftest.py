from __future__ import annotations

from pathlib import Path

import pytest

from librarian.core.buckets import BucketManager
from librarian.core.config import AppConfig
from librarian.db.store import BucketStore
from librarian.ingest.pipeline import IngestionService
from librarian.ingest.sources import SourceDocument

from fakes import FakeEmbedder


@pytest.fixture
def store(tmp_path: Path):
    s = BucketStore(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def manager(tmp_path: Path) -> BucketManager:
    config = AppConfig(data_dir=str(tmp_path / "data"))
    return BucketManager(config, config_path=tmp_path / "config.json")


@pytest.fixture
def biology_store(store: BucketStore, embedder: FakeEmbedder) -> BucketStore:
    """Store holding three short biology documents, embedded with FakeEmbedder."""
    service = IngestionService(store=store, embedder=embedder)
    service.ingest(
        SourceDocument.from_text(
            "/notes/cells.md",
            "Mitochondria are the powerhouse of the cell. They produce ATP through respiration.",
        )
    )
    service.ingest(
        SourceDocument.from_text(
            "/notes/plants.md",
            "Photosynthesis converts light energy into chemical energy stored in glucose.",
        )
    )
    service.ingest(
        SourceDocument.from_text(
            "/notes/exercises.txt",
            "Chapter 0 exercises. Exercise 0.3 asks for the derivative of x squared.",
        )
    )
    return store
