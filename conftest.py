"""Test fixtures and configuration."""

import logging
import sys
import uuid
from pathlib import Path

import chromadb
import pytest
from chromadb.config import Settings
from components.vector_store.vector_store import ChromaVectorIndex
from shared.config import (
    Config,
    IndexingConfig,
    ServerConfig,
    SourceConfig,
    WatcherConfig,
)
from tests.fakes import FakeBackend


# --- This function enables logging visibility during tests ---
def pytest_configure(config):
    """Configure logging to be visible for all tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stdout,
    )


# -----------------------------------------------------------


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Create a small documentation tree."""
    root = tmp_path / "docs"
    (root / "guides").mkdir(parents=True)
    (root / "Templates").mkdir()

    (root / "accounts.md").write_text(
        """---
title: Accounts
---
# Accounts

Docs: to reset a password, visit /reset.

"""
    )
    (root / "guides" / "install.md").write_text(
        """# Installing

Install the service with docker.

```bash
docker run docs
```
"""
    )
    (root / "Templates" / "page.md").write_text("Template text about password reset.\n\n")
    (root / "notes.txt").write_text("Not documentation.\n\n")
    return root


@pytest.fixture
def test_config(docs_dir: Path) -> Config:
    """Create a test configuration pointing at the local docs tree."""
    return Config(
        source=SourceConfig(type="local", local_dir=str(docs_dir)),
        indexing=IndexingConfig(),
        watcher=WatcherConfig(enabled=False),  # Disable for tests
        server=ServerConfig(host="127.0.0.1", port=8000, static_dir=None),
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def chroma_index() -> ChromaVectorIndex:
    """An in-memory Chroma index with a collection name unique to the test."""
    client = chromadb.EphemeralClient(
        settings=Settings(anonymized_telemetry=False, allow_reset=True)
    )
    return ChromaVectorIndex(
        client,
        dimension=FakeBackend.dimension,
        collection_name=f"test-{uuid.uuid4().hex[:8]}",
    )
