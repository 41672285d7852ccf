"""Tests for the Chroma-backed vector index."""

from unittest.mock import Mock

import pytest

from shared.config import VectorStoreConfig
from shared.errors import RetrievalError, VectorIndexError
from tests.fakes import keyword_vector

from ..vector_store import ChromaVectorIndex, create_chroma_client


async def _build(index, documents):
    await index.reset_collection()
    for point_id, (document_id, text) in enumerate(documents):
        await index.upsert(point_id, keyword_vector(text), document_id)
    index.promote()


class TestChromaVectorIndex:
    """Test the staging/served collection lifecycle."""

    @pytest.mark.asyncio
    async def test_search_returns_nearest_document(self, chroma_index):
        await _build(
            chroma_index,
            [
                ("accounts.md", "reset your password"),
                ("install.md", "install with docker"),
            ],
        )

        hit = await chroma_index.search(keyword_vector("how do I reset a password"))

        assert hit.document_id == "accounts.md"
        assert hit.score > 0.9
        assert await chroma_index.count() == 2

    @pytest.mark.asyncio
    async def test_search_before_first_build(self, chroma_index):
        with pytest.raises(RetrievalError, match="not been built"):
            await chroma_index.search(keyword_vector("anything"))
        assert await chroma_index.count() == 0

    @pytest.mark.asyncio
    async def test_search_on_empty_collection(self, chroma_index):
        await _build(chroma_index, [])
        with pytest.raises(RetrievalError):
            await chroma_index.search(keyword_vector("anything"))

    @pytest.mark.asyncio
    async def test_served_collection_unchanged_until_promote(self, chroma_index):
        await _build(chroma_index, [("old.md", "deploy with token")])

        await chroma_index.reset_collection()
        await chroma_index.upsert(0, keyword_vector("deploy with token"), "new.md")

        hit = await chroma_index.search(keyword_vector("deploy token"))
        assert hit.document_id == "old.md"

        chroma_index.promote()
        hit = await chroma_index.search(keyword_vector("deploy token"))
        assert hit.document_id == "new.md"

    @pytest.mark.asyncio
    async def test_abandoned_rebuild_is_discarded_by_the_next_reset(self, chroma_index):
        await _build(chroma_index, [("served.md", "webhook config")])

        await chroma_index.reset_collection()
        await chroma_index.upsert(0, keyword_vector("docker"), "abandoned.md")
        await _build(chroma_index, [("next.md", "docker install")])

        assert await chroma_index.count() == 1
        hit = await chroma_index.search(keyword_vector("docker"))
        assert hit.document_id == "next.md"

    @pytest.mark.asyncio
    async def test_upsert_overwrites_same_point(self, chroma_index):
        await chroma_index.reset_collection()
        await chroma_index.upsert(0, keyword_vector("reset"), "a.md")
        await chroma_index.upsert(0, keyword_vector("reset"), "b.md")
        chroma_index.promote()

        assert await chroma_index.count() == 1
        assert (await chroma_index.search(keyword_vector("reset"))).document_id == "b.md"

    @pytest.mark.asyncio
    async def test_upsert_rejects_wrong_dimension(self, chroma_index):
        await chroma_index.reset_collection()
        with pytest.raises(VectorIndexError, match="dimension"):
            await chroma_index.upsert(0, [1.0, 2.0], "short.md")

    @pytest.mark.asyncio
    async def test_upsert_requires_reset(self, chroma_index):
        with pytest.raises(VectorIndexError, match="reset_collection"):
            await chroma_index.upsert(0, keyword_vector("x"), "a.md")

    def test_promote_requires_staging(self, chroma_index):
        with pytest.raises(VectorIndexError):
            chroma_index.promote()

    @pytest.mark.asyncio
    async def test_store_failures_become_index_errors(self):
        client = Mock()
        client.delete_collection.side_effect = ValueError("missing")
        client.create_collection.side_effect = ConnectionError("refused")
        index = ChromaVectorIndex(client, dimension=3)

        with pytest.raises(VectorIndexError, match="refused"):
            await index.reset_collection()


class TestCreateChromaClient:
    """Test client selection from configuration."""

    def test_remote_server(self, monkeypatch):
        http_client = Mock()
        monkeypatch.setattr("chromadb.HttpClient", http_client)

        create_chroma_client(
            VectorStoreConfig(url="https://chroma.example.com", api_key="ck")
        )

        kwargs = http_client.call_args.kwargs
        assert kwargs["host"] == "chroma.example.com"
        assert kwargs["port"] == 443
        assert kwargs["ssl"] is True
        assert kwargs["headers"] == {"Authorization": "Bearer ck"}

    def test_persistent_directory(self, monkeypatch, tmp_path):
        persistent_client = Mock()
        monkeypatch.setattr("chromadb.PersistentClient", persistent_client)

        create_chroma_client(VectorStoreConfig(persist_directory=str(tmp_path)))

        assert persistent_client.call_args.kwargs["path"] == str(tmp_path)

    def test_in_memory_by_default(self, monkeypatch):
        ephemeral_client = Mock()
        monkeypatch.setattr("chromadb.EphemeralClient", ephemeral_client)

        create_chroma_client(VectorStoreConfig())

        ephemeral_client.assert_called_once()
