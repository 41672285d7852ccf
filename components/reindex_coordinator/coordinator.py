"""
Single-flight reindexing of the documentation corpus.

The coordinator owns the published corpus. Triggers (startup, webhooks, the
file watcher, the admin endpoint) only raise a one-slot pending flag; the
coordinator's own loop is the sole consumer of that flag, so at most one
rebuild runs at a time and bursts of triggers collapse into one follow-up
rebuild.

Each rebuild fetches the source into a scratch directory, segments it, embeds
every chunk into a staging collection and only then publishes both the index
and the corpus. A failure anywhere leaves the last good generation serving.
"""

import asyncio
import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from components.document_processing import load_documents
from components.embedding_system import LLMBackend
from components.source_fetcher import SourceFetcher
from components.vector_store.vector_store import VectorIndex
from pydantic import BaseModel, Field
from shared.corpus import Corpus, Document

logger = logging.getLogger(__name__)


class RebuildStatus(BaseModel):
    """Observable state of the reindex loop."""

    generation: int = Field(default=0, description="Published corpus generation")
    in_progress: bool = Field(default=False, description="A rebuild is running")
    documents: int = Field(default=0, description="Documents in the last good build")
    chunks: int = Field(default=0, description="Chunks indexed in the last good build")
    rebuild_count: int = Field(default=0, description="Successful rebuilds")
    failure_count: int = Field(default=0, description="Failed rebuilds")
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_error: Optional[str] = None


class ReindexCoordinator:
    """Drives fetch -> segment -> embed -> index -> publish."""

    def __init__(
        self,
        corpus: Corpus,
        vector_index: VectorIndex,
        backend: LLMBackend,
        fetcher: SourceFetcher,
        extensions: Optional[Iterable[str]] = None,
        excluded_dirs: Optional[Iterable[str]] = None,
    ):
        self.corpus = corpus
        self.vector_index = vector_index
        self.backend = backend
        self.fetcher = fetcher
        self.extensions = list(extensions) if extensions is not None else None
        self.excluded_dirs = list(excluded_dirs) if excluded_dirs is not None else None

        self._pending = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._status = RebuildStatus()

    @property
    def pending(self) -> bool:
        return self._pending.is_set()

    def trigger(self) -> None:
        """Request a rebuild. Never blocks; repeated calls collapse into one."""
        if not self._pending.is_set():
            logger.info("Rebuild requested")
        self._pending.set()

    def trigger_threadsafe(self) -> None:
        """Request a rebuild from a thread other than the event loop's."""
        if self._loop is None:
            logger.warning("Reindex loop is not running; rebuild request dropped")
            return
        self._loop.call_soon_threadsafe(self.trigger)

    def status(self) -> RebuildStatus:
        return self._status.model_copy()

    async def run_loop(self) -> None:
        """Wait for triggers and rebuild, for the lifetime of the process."""
        self._loop = asyncio.get_running_loop()
        logger.info("Reindex loop started")
        while True:
            await self._pending.wait()
            self._pending.clear()
            await self.run_once()

    async def run_once(self) -> bool:
        """
        Run one rebuild with failures contained.

        Returns:
            True if a new generation was published.
        """
        self._status.in_progress = True
        self._status.last_started_at = datetime.now(timezone.utc)
        try:
            await self.rebuild()
        except Exception as e:
            self._status.failure_count += 1
            self._status.last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"Error while updating application state: {e}")
            return False
        else:
            self._status.rebuild_count += 1
            self._status.last_error = None
            return True
        finally:
            self._status.in_progress = False
            self._status.last_finished_at = datetime.now(timezone.utc)

    async def rebuild(self) -> int:
        """
        Rebuild the index and publish a new corpus.

        Raises whatever the failing step raised (FetchError, EmbeddingError,
        VectorIndexError, ...); nothing is published in that case.

        Returns:
            The published corpus generation.
        """
        with tempfile.TemporaryDirectory(prefix="docs-assistant-") as scratch:
            # 1. Fetch the tree
            root = await self.fetcher.fetch(Path(scratch))

            # 2. Load and segment
            documents: List[Document] = await asyncio.to_thread(
                load_documents, root, self.extensions, self.excluded_dirs
            )

        # 3. Start from an empty staging collection
        await self.vector_index.reset_collection()

        # 4. Embed every chunk, ids dense from zero
        point_id = 0
        for document in documents:
            if not document.chunks:
                continue
            vectors = await self.backend.embed_batch(document.chunks)
            for vector in vectors:
                await self.vector_index.upsert(point_id, vector, document.id)
                point_id += 1
            logger.debug(f"Embedded {len(vectors)} chunks of {document.id}")

        # 5. Publish the index, then the corpus
        self.vector_index.promote()
        generation = await self.corpus.replace(documents)

        self._status.generation = generation
        self._status.documents = len(documents)
        self._status.chunks = point_id
        logger.info(
            f"All files have been embedded: {len(documents)} documents, "
            f"{point_id} chunks (generation {generation})"
        )
        return generation
