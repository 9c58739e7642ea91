from __future__ import annotations

import os
from pathlib import Path

import pytest

from librarian.core.buckets import BucketManager, normalize_bucket_name
from librarian.core.config import AppConfig
from librarian.core.errors import (
    BucketExistsError,
    BucketNotFoundError,
    ConfigError,
    InvalidBucketNameError,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Biology", "biology"),
        ("  Bio 101  ", "bio-101"),
        ("Organic   Chem!!", "organic-chem"),
        ("week_3-notes", "week_3-notes"),
    ],
)
def test_normalize_bucket_name(raw: str, expected: str):
    assert normalize_bucket_name(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "!!!", "@#$"])
def test_invalid_bucket_names(raw: str):
    with pytest.raises(InvalidBucketNameError):
        normalize_bucket_name(raw)


def test_create_list_and_open(manager: BucketManager):
    assert manager.list() == []
    assert manager.create("Bio 101") == "bio-101"
    assert manager.create("chemistry") == "chemistry"

    names = [b.name for b in manager.list()]
    assert names == ["bio-101", "chemistry"]
    assert manager.bucket_db_path("bio-101").exists()

    store = manager.open("BIO 101")
    assert store.count_documents() == 0
    store.close()


def test_create_existing_bucket_fails(manager: BucketManager):
    manager.create("physics")
    with pytest.raises(BucketExistsError):
        manager.create(" Physics ")


def test_open_missing_bucket_fails(manager: BucketManager):
    with pytest.raises(BucketNotFoundError):
        manager.open("nope")
    with pytest.raises(BucketNotFoundError):
        manager.use("nope")
    with pytest.raises(BucketNotFoundError):
        manager.delete("nope")


def test_use_persists_current_bucket(manager: BucketManager, tmp_path: Path):
    manager.create("history")
    assert manager.use("History") == "history"
    assert manager.current() == "history"
    assert [b.is_current for b in manager.list()] == [True]

    reloaded = AppConfig.load(tmp_path / "config.json")
    assert reloaded.current_bucket == "history"

    assert manager.use(None) is None
    assert manager.current() is None


def test_delete_current_bucket_clears_selection(manager: BucketManager):
    manager.create("history")
    manager.use("history")
    manager.delete("history")
    assert manager.current() is None
    assert not manager.exists("history")


def test_stale_current_bucket_is_cleared(manager: BucketManager, tmp_path: Path):
    manager.config.current_bucket = "ghost"
    assert manager.current() is None
    assert AppConfig.load(tmp_path / "config.json").current_bucket is None


def test_store_for_falls_back_to_default(manager: BucketManager):
    store = manager.store_for()
    assert store.path == manager.default_db_path()
    store.close()

    manager.create("art")
    manager.use("art")
    store = manager.store_for()
    assert store.path == manager.bucket_db_path("art")
    store.close()


def test_buckets_are_isolated(manager: BucketManager):
    from librarian.db.models import DocumentKind

    manager.create("a")
    manager.create("b")
    store_a = manager.open("a")
    store_a.add_document(source_path="/x.md", display_name="x.md", kind=DocumentKind.MARKDOWN, content="x")
    store_a.close()

    store_b = manager.open("b")
    assert store_b.count_documents() == 0
    store_b.close()


def test_config_round_trip(tmp_path: Path):
    path = tmp_path / "cfg" / "config.json"
    AppConfig(groq_api_key="gsk_test", current_bucket="bio").save(path)
    loaded = AppConfig.load(path)
    assert loaded.groq_api_key == "gsk_test"
    assert loaded.current_bucket == "bio"
    if os.name == "posix":
        assert (path.stat().st_mode & 0o777) == 0o600


def test_config_missing_file_gives_defaults(tmp_path: Path):
    assert AppConfig.load(tmp_path / "absent.json") == AppConfig()


def test_config_invalid_json(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        AppConfig.load(path)


def test_config_ignores_unknown_keys(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text('{"current_bucket": "bio", "theme": "dark"}', encoding="utf-8")
    assert AppConfig.load(path).current_bucket == "bio"


def test_api_key_env_fallback(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_env")
    assert AppConfig().get_api_key() == "gsk_env"
    assert AppConfig(groq_api_key="gsk_file").get_api_key() == "gsk_file"
    monkeypatch.delenv("GROQ_API_KEY")
    assert not AppConfig().has_api_key()
