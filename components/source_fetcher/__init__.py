"""Source fetcher component.

Materialises the documentation tree from GitHub or a local directory.
"""

from .fetcher import (
    GithubFetcher,
    LocalDirectoryFetcher,
    SourceFetcher,
    create_fetcher,
)

__all__ = [
    "GithubFetcher",
    "LocalDirectoryFetcher",
    "SourceFetcher",
    "create_fetcher",
]
