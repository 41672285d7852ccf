"""
Fetchers that materialise the documentation tree in a scratch directory.

The reindex coordinator hands every fetch a fresh, empty directory and
discards it afterwards, so fetchers only ever produce a complete tree.
"""

import asyncio
import io
import logging
import shutil
import tarfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import httpx
from shared.config import SourceConfig
from shared.errors import FetchError

logger = logging.getLogger(__name__)


class SourceFetcher(Protocol):
    """Produces a local documentation tree."""

    async def fetch(self, destination: Path) -> Path:
        """Populate `destination` and return the documentation root inside it."""
        ...


def _docs_root(tree_root: Path, docs_subdir: Optional[str]) -> Path:
    root = tree_root / docs_subdir if docs_subdir else tree_root
    if not root.is_dir():
        raise FetchError(f"Documentation directory not found in source: {root}")
    return root


class LocalDirectoryFetcher:
    """Copies a directory on disk. Used for development and local watching."""

    def __init__(self, source_dir: Path, docs_subdir: Optional[str] = None):
        self.source_dir = Path(source_dir)
        self.docs_subdir = docs_subdir

    async def fetch(self, destination: Path) -> Path:
        if not self.source_dir.is_dir():
            raise FetchError(f"Source directory does not exist: {self.source_dir}")

        target = destination / self.source_dir.name
        try:
            await asyncio.to_thread(shutil.copytree, self.source_dir, target)
        except OSError as e:
            raise FetchError(f"Could not copy {self.source_dir}: {e}") from e

        logger.info(f"Copied {self.source_dir} to {target}")
        return _docs_root(target, self.docs_subdir)


class GithubFetcher:
    """Downloads the latest commit of a GitHub repository as a tarball."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        ref: Optional[str] = None,
        api_url: str = "https://api.github.com",
        docs_subdir: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ):
        if not owner or not repo or not token:
            raise ValueError(
                "GitHub owner, repository and token are required for the github "
                "source. Set GITHUB_USERNAME, GITHUB_REPO and "
                "GITHUB_PERSONAL_ACCESS_TOKEN."
            )
        self.owner = owner
        self.repo = repo
        self.token = token
        self.ref = ref
        self.api_url = api_url.rstrip("/")
        self.docs_subdir = docs_subdir
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
        )

    async def get_latest_commit_sha(self, client: httpx.AsyncClient) -> str:
        params: Dict[str, Any] = {"per_page": 1}
        if self.ref:
            params["sha"] = self.ref
        response = await client.get(
            f"/repos/{self.owner}/{self.repo}/commits", params=params
        )
        response.raise_for_status()
        try:
            commits = response.json()
        except ValueError as e:
            raise FetchError(
                f"Unreadable commit list from {self.owner}/{self.repo}: {e}"
            ) from e
        if not isinstance(commits, list):
            raise FetchError(
                f"Unexpected commit list from {self.owner}/{self.repo}: {commits!r:.200}"
            )
        if not commits:
            raise FetchError(
                f"Could not find a commit in {self.owner}/{self.repo}"
            )
        try:
            return str(commits[0]["sha"])
        except (KeyError, TypeError) as e:
            raise FetchError(
                f"Commit without a sha from {self.owner}/{self.repo}"
            ) from e

    async def fetch(self, destination: Path) -> Path:
        try:
            async with self._client() as client:
                sha = await self.get_latest_commit_sha(client)
                logger.info(f"Downloading {self.owner}/{self.repo} at {sha}")
                response = await client.get(
                    f"/repos/{self.owner}/{self.repo}/tarball/{sha}"
                )
                response.raise_for_status()
                archive = response.content
        except httpx.HTTPError as e:
            raise FetchError(
                f"Could not download {self.owner}/{self.repo}: {e}"
            ) from e

        tree_root = await asyncio.to_thread(_extract_tarball, archive, destination)
        logger.info(f"Extracted {self.owner}/{self.repo} to {tree_root}")
        return _docs_root(tree_root, self.docs_subdir)


def _extract_tarball(archive: bytes, destination: Path) -> Path:
    """Unpack a gzipped tarball and return its single top-level directory."""
    try:
        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            tar.extractall(destination, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise FetchError(f"Could not extract repository archive: {e}") from e

    entries = [entry for entry in destination.iterdir() if entry.is_dir()]
    if len(entries) != 1:
        raise FetchError(
            f"Expected one top-level directory in the archive, found {len(entries)}"
        )
    return entries[0]


def create_fetcher(config: SourceConfig) -> SourceFetcher:
    """Factory function to create the fetcher for the configured source."""
    source_type = config.type.lower()

    if source_type == "github":
        return GithubFetcher(
            owner=config.github_owner or "",
            repo=config.github_repo or "",
            token=config.github_token or "",
            ref=config.github_ref,
            api_url=config.api_url,
            docs_subdir=config.docs_subdir,
        )

    elif source_type == "local":
        local_path = config.get_local_path()
        if local_path is None:
            raise ValueError("source.local_dir is required for the local source")
        return LocalDirectoryFetcher(local_path, docs_subdir=config.docs_subdir)

    else:
        raise ValueError(
            f"Unknown source type: {config.type}. Supported types: 'github', 'local'"
        )
