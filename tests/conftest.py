"""
Shared pytest fixtures for memobook tests.

Every fixture works under tmp_path, so no test touches ~/.memobook.
"""

import json
from pathlib import Path
from typing import Optional

import pytest

from memobook.api import MemoBook
from memobook.config import MemoBookConfig
from memobook.identity import IdentityResolver
from memobook.memo_store import MemoStore


class FakeActiveDocument:
    """Active document provider whose open document can be changed by tests."""

    def __init__(self, locator: Optional[str] = None):
        self.locator = locator

    def current_locator(self) -> Optional[str]:
        return self.locator


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Point MEMOBOOK_DATA_DIR at a temporary directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("MEMOBOOK_DATA_DIR", str(data_dir))
    monkeypatch.delenv("MEMOBOOK_DOCUMENT", raising=False)
    return data_dir


@pytest.fixture
def store(tmp_path):
    """A real SQLite memo store."""
    s = MemoStore(tmp_path / "store" / "memobook.sqlite3")
    yield s
    s.close()


@pytest.fixture
def empty_default_map(tmp_path):
    """A bundled-map stand-in with no entries."""
    path = tmp_path / "default_map.json"
    path.write_text(json.dumps({"groups": []}))
    return path


@pytest.fixture
def write_map(tmp_path):
    """Write a user identity map and return its path."""
    def _write(content, name: str = "document_map.json") -> Path:
        path = tmp_path / "data" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(content)
        else:
            path.write_text(json.dumps(content))
        return path
    return _write


@pytest.fixture
def active_doc():
    """Fake active document provider (no document open)."""
    return FakeActiveDocument()


@pytest.fixture
def mb(isolated_data_dir, empty_default_map, active_doc):
    """A MemoBook on a fresh data directory, with the fake provider attached."""
    config = MemoBookConfig(path=isolated_data_dir)
    resolver = IdentityResolver(
        config.mapping_path, default_mapping_path=empty_default_map,
    )
    mb = MemoBook(config=config, resolver=resolver, active_provider=active_doc)
    yield mb
    mb.close()
