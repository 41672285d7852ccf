"""
The published documentation corpus.

A Corpus holds an immutable mapping of document id to Document. Rebuilds never
mutate the mapping in place: a complete replacement is built off-lock and then
swapped in under the write side of a reader/writer lock, so every reader sees
exactly one generation.
"""

import logging
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


class Document(BaseModel):
    """A documentation file and the chunks segmented from it."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Relative path of the file within the source tree")
    text: str = Field(..., description="The raw file contents")
    chunks: Tuple[str, ...] = Field(
        default_factory=tuple, description="Ordered retrievable units of the text"
    )


class Corpus:
    """Lock-guarded, atomically swapped set of published documents."""

    def __init__(self, documents: Optional[Iterable[Document]] = None):
        self._lock = ReadWriteLock()
        self._documents: Mapping[str, Document] = _freeze(documents or [])
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of swaps performed so far."""
        return self._generation

    async def get(self, document_id: str) -> Optional[Document]:
        async with self._lock.read():
            return self._documents.get(document_id)

    async def document_ids(self) -> List[str]:
        async with self._lock.read():
            return sorted(self._documents)

    async def replace(self, documents: Iterable[Document]) -> int:
        """
        Publish a new set of documents, replacing the previous one wholesale.

        The new mapping is built before the write lock is taken; the lock only
        covers the reference swap.

        Returns:
            The new generation number.
        """
        new_documents = _freeze(documents)
        async with self._lock.write():
            self._documents = new_documents
            self._generation += 1
            generation = self._generation
        logger.info(
            f"Published corpus generation {generation} "
            f"with {len(new_documents)} documents"
        )
        return generation


def _freeze(documents: Iterable[Document]) -> Mapping[str, Document]:
    return MappingProxyType({document.id: document for document in documents})
