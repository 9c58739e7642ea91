"""
Bucket management: named, isolated document stores under the data directory.

Layout:
    <data_dir>/default.db                    store used when no bucket is current
    <data_dir>/buckets/<name>/documents.db   one store per bucket
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from librarian.db.store import BucketStore

from .config import AppConfig
from .errors import BucketExistsError, BucketNotFoundError, InvalidBucketNameError

logger = logging.getLogger(__name__)

BUCKETS_DIRNAME = "buckets"
BUCKET_DB_FILENAME = "documents.db"
DEFAULT_DB_FILENAME = "default.db"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_bucket_name(name: str) -> str:
    """
    Canonical bucket name: trimmed, lowercased, whitespace runs become '-',
    anything other than alphanumerics, '-' and '_' is dropped.

    Raises InvalidBucketNameError when nothing is left.
    """
    lowered = _WHITESPACE_RE.sub("-", name.strip().lower())
    cleaned = "".join(c for c in lowered if c.isalnum() or c in "-_")
    if not cleaned:
        raise InvalidBucketNameError(f"Invalid bucket name: {name!r}")
    return cleaned


@dataclass
class BucketInfo:
    name: str
    path: Path
    is_current: bool


class BucketManager:
    """Creates, lists, selects and deletes buckets; opens their stores."""

    def __init__(self, config: AppConfig | None = None, *, config_path: Path | None = None) -> None:
        self.config_path = config_path
        self.config = config if config is not None else AppConfig.load(config_path)
        self.data_dir = self.config.resolved_data_dir()

    @property
    def buckets_dir(self) -> Path:
        return self.data_dir / BUCKETS_DIRNAME

    def bucket_dir(self, name: str) -> Path:
        return self.buckets_dir / normalize_bucket_name(name)

    def bucket_db_path(self, name: str) -> Path:
        return self.bucket_dir(name) / BUCKET_DB_FILENAME

    def default_db_path(self) -> Path:
        return self.data_dir / DEFAULT_DB_FILENAME

    def exists(self, name: str) -> bool:
        return self.bucket_dir(name).is_dir()

    def create(self, name: str) -> str:
        """Create a bucket and its empty store; returns the normalized name."""
        normalized = normalize_bucket_name(name)
        if self.exists(normalized):
            raise BucketExistsError(normalized)
        self.bucket_dir(normalized).mkdir(parents=True)
        # Opening the store creates the schema.
        self.open(normalized).close()
        logger.info("Created bucket %s", normalized)
        return normalized

    def open(self, name: str) -> BucketStore:
        normalized = normalize_bucket_name(name)
        if not self.exists(normalized):
            raise BucketNotFoundError(normalized)
        return BucketStore(self.bucket_db_path(normalized))

    def list(self) -> List[BucketInfo]:
        if not self.buckets_dir.is_dir():
            return []
        current = self.current()
        infos = [
            BucketInfo(name=entry.name, path=entry, is_current=entry.name == current)
            for entry in self.buckets_dir.iterdir()
            if entry.is_dir()
        ]
        infos.sort(key=lambda b: b.name)
        return infos

    def delete(self, name: str) -> None:
        """Remove a bucket and everything in it; clears it as current if selected."""
        normalized = normalize_bucket_name(name)
        path = self.bucket_dir(normalized)
        if not path.is_dir():
            raise BucketNotFoundError(normalized)
        shutil.rmtree(path)
        logger.info("Deleted bucket %s", normalized)
        if self.config.current_bucket == normalized:
            self._set_current(None)

    def current(self) -> Optional[str]:
        """Current bucket name, clearing the setting if the bucket vanished from disk."""
        name = self.config.current_bucket
        if name is None:
            return None
        if not self.exists(name):
            logger.warning("Current bucket %s no longer exists; clearing it", name)
            self._set_current(None)
            return None
        return name

    def use(self, name: Optional[str]) -> Optional[str]:
        """Select a bucket (None selects the default store)."""
        if name is None:
            self._set_current(None)
            return None
        normalized = normalize_bucket_name(name)
        if not self.exists(normalized):
            raise BucketNotFoundError(normalized)
        self._set_current(normalized)
        return normalized

    def open_default(self) -> BucketStore:
        return BucketStore(self.default_db_path())

    def store_for(self, name: Optional[str] = None) -> BucketStore:
        """Store for `name`, else the current bucket, else the default store."""
        if name is not None:
            return self.open(name)
        current = self.current()
        if current is not None:
            return self.open(current)
        return self.open_default()

    def _set_current(self, name: Optional[str]) -> None:
        self.config.current_bucket = name
        self.config.save(self.config_path)
