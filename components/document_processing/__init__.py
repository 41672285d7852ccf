"""Document processing component.

This component turns a documentation tree into Documents: it walks the tree,
selects Markdown files outside excluded directories and segments each file
into fenced code blocks and prose paragraphs.
"""

from .document_loader import (
    DocumentLoaderError,
    is_excluded,
    iter_document_paths,
    load_documents,
)
from .segmenter import SegmenterState, segment

__all__ = [
    # Document loading
    "DocumentLoaderError",
    "is_excluded",
    "iter_document_paths",
    "load_documents",
    # Segmentation
    "SegmenterState",
    "segment",
]
