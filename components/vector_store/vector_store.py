"""Vector index client for document chunk embeddings."""

import asyncio
import logging
from typing import Any, List, Optional, Protocol
from urllib.parse import urlparse

import chromadb
from chromadb.config import Settings
from chromadb.errors import NotFoundError as ChromaNotFoundError
from pydantic import BaseModel, Field
from shared.config import VectorStoreConfig
from shared.errors import RetrievalError, VectorIndexError

logger = logging.getLogger(__name__)

DISTANCE_METRIC = "cosine"


class SearchHit(BaseModel):
    """Best match returned by a nearest-neighbour query."""

    document_id: str = Field(..., description="Id of the document owning the chunk")
    score: float = Field(..., description="Cosine similarity of the match")


class VectorIndex(Protocol):
    """Capabilities the coordinator and answer service need from a vector store."""

    async def reset_collection(self) -> None: ...

    async def upsert(
        self, point_id: int, vector: List[float], document_id: str
    ) -> None: ...

    def promote(self) -> None: ...

    async def search(self, vector: List[float]) -> SearchHit: ...


def create_chroma_client(config: VectorStoreConfig) -> Any:
    """Build a Chroma client for a remote server, a directory, or memory."""
    settings = Settings(anonymized_telemetry=False, allow_reset=True)

    if config.url:
        parsed = urlparse(config.url)
        ssl = parsed.scheme == "https"
        headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else None
        logger.info(f"Connecting to Chroma server at {config.url}")
        return chromadb.HttpClient(
            host=parsed.hostname or "localhost",
            port=parsed.port or (443 if ssl else 8000),
            ssl=ssl,
            headers=headers,
            settings=settings,
        )

    if config.persist_directory:
        logger.info(f"Using embedded Chroma at {config.persist_directory}")
        return chromadb.PersistentClient(path=config.persist_directory, settings=settings)

    logger.info("Using in-memory Chroma")
    return chromadb.EphemeralClient(settings=settings)


class ChromaVectorIndex:
    """
    Manages the served and staging collections in ChromaDB.

    Two collections alternate: each rebuild resets and fills the one not
    currently served, and `promote` flips which one answers searches. A
    failed rebuild therefore never touches what is being served.
    """

    def __init__(
        self,
        client: Any,
        dimension: int,
        collection_name: str = "brain",
    ):
        """Initialize the vector index.

        Args:
            client: A chromadb client (see `create_chroma_client`)
            dimension: Size every upserted vector must have
            collection_name: Base name of the two alternating collections
        """
        self.client = client
        self.dimension = dimension
        self.collection_name = collection_name

        self._served_slot: Optional[int] = None
        self._staging: Any = None
        self._served: Any = None

    @classmethod
    def from_config(cls, config: VectorStoreConfig, dimension: int) -> "ChromaVectorIndex":
        return cls(
            create_chroma_client(config),
            dimension=dimension,
            collection_name=config.collection_name,
        )

    def _slot_name(self, slot: int) -> str:
        return f"{self.collection_name}-{slot}"

    @property
    def _staging_slot(self) -> int:
        return 0 if self._served_slot is None else 1 - self._served_slot

    async def reset_collection(self) -> None:
        """Drop and recreate the staging collection, empty."""
        name = self._slot_name(self._staging_slot)

        def _reset() -> Any:
            try:
                self.client.delete_collection(name=name)
            except (ChromaNotFoundError, ValueError):
                logger.debug(f"Collection {name} did not exist yet")
            return self.client.create_collection(
                name=name,
                metadata={"hnsw:space": DISTANCE_METRIC, "dimension": self.dimension},
            )

        try:
            self._staging = await asyncio.to_thread(_reset)
        except Exception as e:
            logger.error(f"Error resetting collection {name}: {e}")
            raise VectorIndexError(f"Could not reset collection {name}: {e}") from e
        logger.info(f"Reset staging collection: {name}")

    async def upsert(self, point_id: int, vector: List[float], document_id: str) -> None:
        """Insert or overwrite the entry `point_id` in the staging collection."""
        if self._staging is None:
            raise VectorIndexError("reset_collection() must be called before upsert()")
        if len(vector) != self.dimension:
            raise VectorIndexError(
                f"Vector for {document_id} has dimension {len(vector)}, "
                f"expected {self.dimension}"
            )

        try:
            await asyncio.to_thread(
                self._staging.upsert,
                ids=[str(point_id)],
                embeddings=[list(vector)],
                metadatas=[{"document_id": document_id}],
            )
        except Exception as e:
            logger.error(f"Error upserting point {point_id}: {e}")
            raise VectorIndexError(f"Could not upsert point {point_id}: {e}") from e
        logger.debug(f"Embedded: {document_id} as point {point_id}")

    def promote(self) -> None:
        """Serve the staging collection from now on."""
        if self._staging is None:
            raise VectorIndexError("There is no staging collection to promote")
        self._served = self._staging
        self._served_slot = self._staging_slot
        self._staging = None
        logger.info(f"Now serving collection: {self._slot_name(self._served_slot)}")

    async def search(self, vector: List[float]) -> SearchHit:
        """Return the single nearest entry of the served collection.

        Raises:
            RetrievalError: If nothing is served yet or the collection is empty.
            VectorIndexError: If the store fails.
        """
        collection = self._served
        if collection is None:
            raise RetrievalError("The index has not been built yet")

        try:
            results = await asyncio.to_thread(
                collection.query,
                query_embeddings=[list(vector)],
                n_results=1,
                include=["metadatas", "distances"],
            )
        except Exception as e:
            logger.error(f"Error searching vector store: {e}")
            raise VectorIndexError(f"Search failed: {e}") from e

        metadatas = results.get("metadatas") or [[]]
        distances = results.get("distances") or [[]]
        if not metadatas[0] or not distances[0]:
            raise RetrievalError("No match found in the index")

        metadata = metadatas[0][0] or {}
        document_id = metadata.get("document_id")
        if not isinstance(document_id, str):
            raise RetrievalError("Best match carries no document id")

        return SearchHit(document_id=document_id, score=1.0 - float(distances[0][0]))

    async def count(self) -> int:
        """Get the number of entries in the served collection."""
        if self._served is None:
            return 0
        try:
            return int(await asyncio.to_thread(self._served.count))
        except Exception as e:
            raise VectorIndexError(f"Could not count entries: {e}") from e
