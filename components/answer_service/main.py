"""
Answers prompts from the published documentation.

The service embeds the prompt, asks the vector index for the single closest
chunk, resolves that chunk's document in the published corpus and streams a
completion grounded in the whole document. It is framework-agnostic; the HTTP
layer decides how failures are presented.
"""

import logging
from typing import AsyncIterator

from components.embedding_system import LLMBackend
from components.vector_store.vector_store import VectorIndex
from shared.corpus import Corpus
from shared.errors import NotFoundError

logger = logging.getLogger(__name__)


class AnswerService:
    """Retrieval-to-answer flow over the published corpus."""

    def __init__(self, corpus: Corpus, vector_index: VectorIndex, backend: LLMBackend):
        self.corpus = corpus
        self.vector_index = vector_index
        self.backend = backend

    async def answer(self, prompt: str) -> AsyncIterator[str]:
        """
        Open a token stream answering `prompt`.

        Raises:
            EmbeddingError: If the prompt cannot be embedded.
            RetrievalError: If the index has no match.
            NotFoundError: If the matched document left the corpus meanwhile.
            GenerationError: If the completion stream cannot be opened.
        """
        vector = await self.backend.embed_one(prompt)
        hit = await self.vector_index.search(vector)

        document = await self.corpus.get(hit.document_id)
        if document is None:
            raise NotFoundError(
                f"Document {hit.document_id} is not in the published corpus"
            )

        logger.info(f"Answering from {document.id} (score {hit.score:.3f})")
        return await self.backend.answer_stream(prompt, document.text)
