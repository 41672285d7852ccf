"""Tests for the documentation source fetchers."""

import io
import tarfile
from pathlib import Path

import httpx
import pytest

from shared.config import SourceConfig
from shared.errors import FetchError

from ..fetcher import GithubFetcher, LocalDirectoryFetcher, create_fetcher

SHA = "3f2a9c1"


def _tarball(files, top="acme-handbook-3f2a9c1"):
    """Build a gzipped tarball shaped like GitHub's repository archives."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        directory = tarfile.TarInfo(top)
        directory.type = tarfile.DIRTYPE
        directory.mode = 0o755
        tar.addfile(directory)
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


class GithubStub:
    """Serves the commits and tarball endpoints through httpx.MockTransport."""

    def __init__(self, commits=None, archive=b"", tarball_status=200):
        self.commits = [{"sha": SHA}] if commits is None else commits
        self.archive = archive
        self.tarball_status = tarball_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/repos/acme/handbook/commits":
            return httpx.Response(200, json=self.commits)
        if request.url.path == f"/repos/acme/handbook/tarball/{SHA}":
            return httpx.Response(self.tarball_status, content=self.archive)
        return httpx.Response(404, json={"message": "Not Found"})

    def fetcher(self, **kwargs):
        return GithubFetcher(
            owner="acme",
            repo="handbook",
            token="ghp_test",
            transport=httpx.MockTransport(self),
            **kwargs,
        )


class TestGithubFetcher:
    """Test downloading repository snapshots."""

    @pytest.mark.asyncio
    async def test_fetch_extracts_latest_commit(self, tmp_path):
        stub = GithubStub(
            archive=_tarball({"index.md": "Welcome\n\n", "guides/setup.md": "Setup\n\n"})
        )

        root = await stub.fetcher().fetch(tmp_path)

        assert root == tmp_path / "acme-handbook-3f2a9c1"
        assert (root / "index.md").read_text() == "Welcome\n\n"
        assert (root / "guides" / "setup.md").exists()

        commits_request = stub.requests[0]
        assert commits_request.headers["Authorization"] == "Bearer ghp_test"
        assert commits_request.url.params["per_page"] == "1"
        assert "sha" not in commits_request.url.params

    @pytest.mark.asyncio
    async def test_fetch_follows_configured_ref_and_subdir(self, tmp_path):
        stub = GithubStub(archive=_tarball({"docs/index.md": "Docs\n\n", "README.md": "x"}))

        root = await stub.fetcher(ref="release", docs_subdir="docs").fetch(tmp_path)

        assert root.name == "docs"
        assert (root / "index.md").exists()
        assert stub.requests[0].url.params["sha"] == "release"

    @pytest.mark.asyncio
    async def test_missing_docs_subdir(self, tmp_path):
        stub = GithubStub(archive=_tarball({"index.md": "x"}))
        with pytest.raises(FetchError, match="not found"):
            await stub.fetcher(docs_subdir="docs").fetch(tmp_path)

    @pytest.mark.asyncio
    async def test_no_commits(self, tmp_path):
        stub = GithubStub(commits=[])
        with pytest.raises(FetchError, match="Could not find a commit"):
            await stub.fetcher().fetch(tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, content=b"<html>rate limited</html>"),
            httpx.Response(200, json={"message": "Moved Permanently"}),
            httpx.Response(200, json=[{"commit": {}}]),
            httpx.Response(200, json=["3f2a9c1"]),
        ],
        ids=["not-json", "object", "no-sha", "not-an-object"],
    )
    async def test_malformed_commit_list(self, tmp_path, response):
        fetcher = GithubFetcher(
            owner="acme",
            repo="handbook",
            token="ghp_test",
            transport=httpx.MockTransport(lambda request: response),
        )
        with pytest.raises(FetchError, match="acme/handbook"):
            await fetcher.fetch(tmp_path)

    @pytest.mark.asyncio
    async def test_http_error(self, tmp_path):
        stub = GithubStub(archive=b"", tarball_status=502)
        with pytest.raises(FetchError, match="Could not download"):
            await stub.fetcher().fetch(tmp_path)

    @pytest.mark.asyncio
    async def test_transport_error(self, tmp_path):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = GithubFetcher(
            owner="acme",
            repo="handbook",
            token="ghp_test",
            transport=httpx.MockTransport(refuse),
        )
        with pytest.raises(FetchError):
            await fetcher.fetch(tmp_path)

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, tmp_path):
        stub = GithubStub(archive=b"not a tarball")
        with pytest.raises(FetchError, match="extract"):
            await stub.fetcher().fetch(tmp_path)

    def test_credentials_required(self):
        with pytest.raises(ValueError, match="GITHUB_PERSONAL_ACCESS_TOKEN"):
            GithubFetcher(owner="acme", repo="handbook", token="")


class TestLocalDirectoryFetcher:
    """Test copying a local documentation tree."""

    @pytest.mark.asyncio
    async def test_copies_tree(self, docs_dir, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()

        root = await LocalDirectoryFetcher(docs_dir).fetch(scratch)

        assert root == scratch / docs_dir.name
        assert (root / "accounts.md").read_text() == (docs_dir / "accounts.md").read_text()
        # The copy is independent of the source.
        (root / "accounts.md").unlink()
        assert (docs_dir / "accounts.md").exists()

    @pytest.mark.asyncio
    async def test_missing_source(self, tmp_path):
        with pytest.raises(FetchError, match="does not exist"):
            await LocalDirectoryFetcher(tmp_path / "missing").fetch(tmp_path)

    @pytest.mark.asyncio
    async def test_docs_subdir(self, docs_dir, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        root = await LocalDirectoryFetcher(docs_dir, docs_subdir="guides").fetch(scratch)
        assert (root / "install.md").exists()


class TestCreateFetcher:
    """Test fetcher selection from configuration."""

    def test_github(self):
        fetcher = create_fetcher(
            SourceConfig(
                type="github",
                github_owner="acme",
                github_repo="handbook",
                github_token="ghp_test",
                github_ref="main",
            )
        )
        assert isinstance(fetcher, GithubFetcher)
        assert fetcher.ref == "main"

    def test_github_without_credentials(self):
        with pytest.raises(ValueError):
            create_fetcher(SourceConfig(type="github"))

    def test_local(self, tmp_path):
        fetcher = create_fetcher(SourceConfig(type="local", local_dir=str(tmp_path)))
        assert isinstance(fetcher, LocalDirectoryFetcher)
        assert fetcher.source_dir == Path(tmp_path).resolve()

    def test_local_requires_directory(self):
        with pytest.raises(ValueError, match="local_dir"):
            create_fetcher(SourceConfig(type="local"))

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown source type"):
            create_fetcher(SourceConfig(type="ftp"))
