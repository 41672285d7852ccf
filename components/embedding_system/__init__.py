"""Embedding and generation backends.

Exposes the LLMBackend contract, the two built-in implementations (the
OpenAI API and a local sentence-transformers + LiteLLM stack) and the factory
that picks one from configuration.
"""

from .backend import LLMBackend
from .embedding_factory import (
    LocalBackend,
    OpenAIBackend,
    SentenceTransformersEmbedding,
    create_backend,
)

__all__ = [
    "LLMBackend",
    "LocalBackend",
    "OpenAIBackend",
    "SentenceTransformersEmbedding",
    "create_backend",
]
