import asyncio
import importlib
import logging
from typing import Any, AsyncIterator, List, Sequence, cast

import httpx
from llama_index.core.bridge.pydantic import PrivateAttr
from llama_index.core.embeddings import BaseEmbedding
from openai import AsyncOpenAI, OpenAIError
from shared.config import Config
from shared.errors import EmbeddingError, GenerationError

from .backend import LLMBackend

logger = logging.getLogger(__name__)

# Used by the local backend unless a model name is set explicitly
LOCAL_EMBEDDING_MODEL = "all-MiniLM-L6-v2"
LOCAL_GENERATION_MODEL = "ollama/llama3"


def _configured_or(model_config: Any, local_default: str) -> str:
    """Return the configured model name, or the local default if none was set."""
    if "model_name" in model_config.model_fields_set:
        return str(model_config.model_name)
    return local_default


class OpenAIBackend(LLMBackend):
    """Backend for the OpenAI API or any OpenAI-compatible endpoint."""

    def __init__(self, config: Config, client: Any = None):
        """Initialize the OpenAI client.

        Args:
            config: Application configuration; the API key comes from
                `embedding_model.api_key` (usually OPENAI_API_KEY).
            client: Pre-built AsyncOpenAI-compatible client, mainly for tests.
        """
        embedding = config.embedding_model
        if client is None:
            if not embedding.api_key:
                raise ValueError(
                    "An API key is required for the openai backend. "
                    "Set OPENAI_API_KEY or embedding_model.api_key."
                )
            client = AsyncOpenAI(
                api_key=embedding.api_key, base_url=embedding.endpoint_url
            )

        self.client = client
        self.embedding_model_name = embedding.model_name
        self.dimension = embedding.dimension
        self.chat_model_name = config.generation_model.model_name
        self.chat_parameters = dict(config.generation_model.parameters or {})
        self.answer_template = config.get_answer_template()
        logger.info(
            f"Initialized OpenAI backend with {self.embedding_model_name} / "
            f"{self.chat_model_name}"
        )

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Encode texts into embeddings using the embeddings endpoint."""
        if not texts:
            return []
        try:
            response = await self.client.embeddings.create(
                model=self.embedding_model_name, input=list(texts)
            )
        except OpenAIError as e:
            logger.error(f"Error getting embeddings from OpenAI endpoint: {e}")
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        return self.check_batch(texts, [list(item.embedding) for item in data])

    async def answer_stream(self, prompt: str, context: str) -> AsyncIterator[str]:
        instruction = self.compose_instruction(prompt, context)
        try:
            stream = await self.client.chat.completions.create(
                model=self.chat_model_name,
                messages=[{"role": "user", "content": instruction}],
                stream=True,
                **self.chat_parameters,
            )
        except OpenAIError as e:
            logger.error(f"Error opening chat completion stream: {e}")
            raise GenerationError(f"Could not start completion: {e}") from e
        return self._iter_tokens(stream)

    async def _iter_tokens(self, stream: Any) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                for choice in chunk.choices:
                    if choice.delta and choice.delta.content:
                        yield choice.delta.content
        except (OpenAIError, httpx.HTTPError) as e:
            # A dropped connection surfaces as a raw httpx error, not an OpenAIError
            raise GenerationError(f"Completion stream failed: {e}") from e
        finally:
            await stream.close()


class SentenceTransformersEmbedding(BaseEmbedding):
    """Wrapper for SentenceTransformers embedding models."""

    _sentence_model: Any = PrivateAttr()

    def __init__(self, model_name: str, **kwargs: Any):
        """Initialize SentenceTransformers model.

        Args:
            model_name: Name of the SentenceTransformers model
            **kwargs: Additional arguments for BaseEmbedding
        """
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for the local backend. "
                "Install with: pip install 'docs-assistant[local]'"
            ) from e

        super().__init__(model_name=model_name, **kwargs)
        self._sentence_model = SentenceTransformer(model_name)
        logger.info(f"Loaded SentenceTransformers model: {model_name}")

    @property
    def dimension(self) -> int:
        return int(self._sentence_model.get_sentence_embedding_dimension())

    def encode(self, texts: List[str]) -> List[List[float]]:
        """Encode texts into embeddings."""
        return cast(List[List[float]], self._sentence_model.encode(texts).tolist())

    def _get_query_embedding(self, query: str) -> List[float]:
        """Get query embedding."""
        return self.encode([query])[0]

    def _get_text_embedding(self, text: str) -> List[float]:
        """Get text embedding."""
        return self.encode([text])[0]

    def _get_text_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Get embeddings for a batch of texts in one encode call."""
        return self.encode(texts)

    async def _aget_query_embedding(self, query: str) -> List[float]:
        """Get query embedding asynchronously."""
        return await asyncio.to_thread(self._get_query_embedding, query)


class LocalBackend(LLMBackend):
    """
    Backend running embeddings in-process and generation through LiteLLM,
    typically against a local Ollama server.
    """

    def __init__(
        self, config: Config, embed_model: Any = None, llm: Any = None
    ):
        self.embedding_model_name = _configured_or(
            config.embedding_model, LOCAL_EMBEDDING_MODEL
        )
        self.generation_model_name = _configured_or(
            config.generation_model, LOCAL_GENERATION_MODEL
        )

        if embed_model is None:
            embed_model = SentenceTransformersEmbedding(self.embedding_model_name)
        if llm is None:
            try:
                from llama_index.llms.litellm import LiteLLM
            except ImportError as e:
                raise ImportError(
                    "llama-index-llms-litellm is required for the local backend. "
                    "Install with: pip install 'docs-assistant[local]'"
                ) from e
            llm_parameters = config.generation_model.parameters or {}
            llm = LiteLLM(model=self.generation_model_name, **llm_parameters)

        self.embed_model = embed_model
        self.llm = llm
        self.dimension = embed_model.dimension
        self.answer_template = config.get_answer_template()
        logger.info(
            f"Initialized local backend with {self.embedding_model_name} / "
            f"{self.generation_model_name}"
        )

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            vectors = await asyncio.to_thread(
                self.embed_model.get_text_embedding_batch, list(texts)
            )
        except Exception as e:
            logger.error(f"Error generating local embeddings: {e}")
            raise EmbeddingError(f"Local embedding failed: {e}") from e
        return self.check_batch(texts, [list(vector) for vector in vectors])

    async def answer_stream(self, prompt: str, context: str) -> AsyncIterator[str]:
        instruction = self.compose_instruction(prompt, context)
        try:
            stream = await self.llm.astream_complete(instruction)
        except Exception as e:
            logger.error(f"Error opening LiteLLM completion stream: {e}")
            raise GenerationError(f"Could not start completion: {e}") from e
        return self._iter_tokens(stream)

    async def _iter_tokens(self, stream: Any) -> AsyncIterator[str]:
        try:
            async for response in stream:
                if response.delta:
                    yield response.delta
        except Exception as e:
            raise GenerationError(f"Completion stream failed: {e}") from e
        finally:
            await stream.aclose()


def create_backend(config: Config) -> LLMBackend:
    """Factory function to create the backend selected by configuration."""
    if config.backend.wrapper_class:
        try:
            module_path, class_name = config.backend.wrapper_class.rsplit(".", 1)
            module = importlib.import_module(module_path)
            wrapper_class = getattr(module, class_name)
        except (ImportError, AttributeError, ValueError) as e:
            logger.error(
                f"Failed to load wrapper class '{config.backend.wrapper_class}': {e}"
            )
            raise ValueError(
                f"Could not load wrapper class '{config.backend.wrapper_class}'"
            ) from e
        if not (isinstance(wrapper_class, type) and issubclass(wrapper_class, LLMBackend)):
            raise ValueError(
                f"Wrapper class '{config.backend.wrapper_class}' is not an LLMBackend"
            )
        return cast(LLMBackend, wrapper_class(config))

    provider = config.backend.provider.lower()

    if provider == "openai":
        return OpenAIBackend(config)

    elif provider == "local":
        return LocalBackend(config)

    else:
        raise ValueError(
            f"Unsupported backend provider: {provider}. "
            f"Supported providers: openai, local"
        )
