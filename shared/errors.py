"""Error taxonomy shared by the ingestion pipeline and the answer path."""


class DocsAssistantError(Exception):
    """Base class for all errors raised by the documentation assistant."""


class FetchError(DocsAssistantError):
    """Raised when the documentation source is unreachable or has no revision."""


class SegmentationError(DocsAssistantError):
    """Reserved for segmentation failures. The segmenter is total over text."""


class EmbeddingError(DocsAssistantError):
    """Raised when the embedding provider fails or returns a partial batch."""


class VectorIndexError(DocsAssistantError):
    """Raised when the vector store is unreachable or rejects an operation."""


class RetrievalError(DocsAssistantError):
    """Raised when a nearest-neighbour query yields no match."""


class NotFoundError(DocsAssistantError):
    """Raised when a retrieved document id is absent from the published corpus."""


class GenerationError(DocsAssistantError):
    """Raised when a streamed completion cannot be opened or fails mid-stream."""
