"""Loads a documentation tree from disk into segmented Documents."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from shared.corpus import Document
from shared.errors import DocsAssistantError

from .segmenter import segment

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md",)
DEFAULT_EXCLUDED_DIRS = ("templates",)


class DocumentLoaderError(DocsAssistantError):
    """Raised when the documentation tree cannot be loaded."""


def is_excluded(relative_path: Path, excluded_dirs: Iterable[str]) -> bool:
    """Check whether any directory segment of the path is an excluded name."""
    excluded = {name.lower() for name in excluded_dirs}
    return any(part.lower() in excluded for part in relative_path.parent.parts)


def iter_document_paths(
    root: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> List[Path]:
    """
    Recursively collect documentation files under a root directory.

    Args:
        root: Root of the documentation tree.
        extensions: File suffixes to select (case-insensitive).
        excluded_dirs: Directory names whose contents are skipped.

    Returns:
        Sorted paths relative to `root`.
    """
    suffixes = {ext.lower() for ext in extensions}
    selected = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in suffixes:
            continue
        relative_path = path.relative_to(root)
        if is_excluded(relative_path, excluded_dirs):
            logger.info(
                f"File was skipped because it's in an excluded directory: "
                f"{relative_path}"
            )
            continue
        selected.append(relative_path)
    return selected


def load_documents(
    root: Path,
    extensions: Optional[Iterable[str]] = None,
    excluded_dirs: Optional[Iterable[str]] = None,
) -> List[Document]:
    """
    Load and segment every documentation file under `root`.

    Document ids are POSIX-style paths relative to `root`, so they are stable
    for a given tree regardless of where it was extracted.

    Raises:
        DocumentLoaderError: If `root` is not a directory.
    """
    if not root.is_dir():
        raise DocumentLoaderError(f"Documentation directory does not exist: {root}")

    documents = []
    for relative_path in iter_document_paths(
        root,
        extensions if extensions is not None else DEFAULT_EXTENSIONS,
        excluded_dirs if excluded_dirs is not None else DEFAULT_EXCLUDED_DIRS,
    ):
        try:
            text = (root / relative_path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Skipping {relative_path}, not valid UTF-8: {e}")
            continue

        chunks = segment(text)
        documents.append(
            Document(id=relative_path.as_posix(), text=text, chunks=tuple(chunks))
        )
        logger.debug(f"Loaded {relative_path} with {len(chunks)} chunks")

    logger.info(f"Loaded {len(documents)} documents from {root}")
    return documents
