from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Sequence

from shared.config import DEFAULT_ANSWER_TEMPLATE
from shared.errors import EmbeddingError


class LLMBackend(ABC):
    """
    Embedding and generation capability consumed by the reindex coordinator
    and the answer service.

    Concrete backends are chosen once at startup (see `create_backend`); a
    custom backend named by `backend.wrapper_class` must subclass this and
    accept the application Config as its only constructor argument.
    """

    #: Size of the vectors returned by `embed_batch` / `embed_one`.
    dimension: int

    answer_template: str = DEFAULT_ANSWER_TEMPLATE

    @abstractmethod
    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed several texts at once.

        Returns one vector per input, in input order. A provider failure or a
        short response raises EmbeddingError; partial batches are never
        returned.
        """

    async def embed_one(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    @abstractmethod
    async def answer_stream(self, prompt: str, context: str) -> AsyncIterator[str]:
        """
        Open a streamed completion grounded in `context`.

        Awaiting this opens the provider stream (GenerationError if that
        fails) and returns a lazy async iterator of text tokens. The iterator
        raises GenerationError if the provider fails mid-stream; closing it
        with `aclose()` releases the provider connection.
        """

    def compose_instruction(self, prompt: str, context: str) -> str:
        """Build the single instruction sent to the model."""
        return self.answer_template.format(prompt=prompt, context=context)

    @staticmethod
    def check_batch(texts: Sequence[str], vectors: List[List[float]]) -> List[List[float]]:
        """Reject responses that do not carry exactly one vector per text."""
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings from the provider, got {len(vectors)}"
            )
        return vectors
