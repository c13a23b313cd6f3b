"""Tests for host adapters with mocked API responses."""

import httpx
import pytest
import respx

from repo_scaffold.core.events import EventEmitter
from repo_scaffold.core.reference import parse
from repo_scaffold.errors import FetchError, ResolutionError, UnknownHostError
from repo_scaffold.fetch.hosts import (
    ADAPTERS,
    download_archive,
    get_adapter,
    resolve_ref,
)

from conftest import HASH_A


class TestAdapterUrls:
    """Test URL templates for every provider."""

    def test_github(self):
        reference = parse("github:user/repo#main")
        adapter = get_adapter("github")
        assert (
            adapter.ref_resolution_url(reference)
            == "https://api.github.com/repos/user/repo/commits/main"
        )
        assert (
            adapter.archive_url(reference, HASH_A)
            == f"https://github.com/user/repo/archive/{HASH_A}.tar.gz"
        )

    def test_gitlab_encodes_project_and_ref(self):
        reference = parse("gitlab:user/repo#feature/x")
        adapter = get_adapter("gitlab")
        assert (
            adapter.ref_resolution_url(reference)
            == "https://gitlab.com/api/v4/projects/user%2Frepo/repository/commits/feature%2Fx"
        )
        assert adapter.archive_url(reference, HASH_A).endswith(
            f"/user/repo/-/archive/{HASH_A}/repo-{HASH_A}.tar.gz"
        )

    def test_bitbucket(self):
        reference = parse("bitbucket:user/repo#main")
        adapter = get_adapter("bitbucket")
        assert (
            adapter.ref_resolution_url(reference)
            == "https://api.bitbucket.org/2.0/repositories/user/repo/commit/main"
        )
        assert (
            adapter.archive_url(reference, HASH_A)
            == f"https://bitbucket.org/user/repo/get/{HASH_A}.tar.gz"
        )

    def test_sourcehut(self):
        reference = parse("git.sr.ht:user/repo#main")
        adapter = get_adapter("git.sr.ht")
        assert (
            adapter.ref_resolution_url(reference)
            == "https://git.sr.ht/api/~user/repos/repo/log/main"
        )
        assert (
            adapter.archive_url(reference, HASH_A)
            == f"https://git.sr.ht/~user/repo/archive/{HASH_A}.tar.gz"
        )

    def test_unknown_host(self):
        with pytest.raises(UnknownHostError):
            get_adapter("git.example.com")

    def test_registry_keys(self):
        assert set(ADAPTERS) == {"github", "gitlab", "bitbucket", "git.sr.ht"}


class TestResponseParsing:
    """Test each adapter reads the hash from its own response format."""

    @pytest.mark.parametrize(
        "host,payload",
        [
            ("github", {"sha": HASH_A}),
            ("gitlab", {"id": HASH_A}),
            ("bitbucket", {"hash": HASH_A}),
            ("git.sr.ht", {"results": [{"id": HASH_A}]}),
        ],
    )
    def test_parse(self, host, payload):
        assert get_adapter(host).parse_resolution_response(payload) == HASH_A

    @pytest.mark.parametrize(
        "payload",
        [{}, {"sha": "abc"}, {"sha": None}, ["not", "a", "dict"]],
    )
    def test_rejects_missing_or_partial_hash(self, payload):
        with pytest.raises(ResolutionError):
            get_adapter("github").parse_resolution_response(payload)

    def test_sourcehut_empty_results(self):
        with pytest.raises(ResolutionError):
            get_adapter("git.sr.ht").parse_resolution_response({"results": []})


class TestHeaders:
    """Test authentication headers per provider."""

    def test_github_headers(self):
        headers = get_adapter("github").api_headers("tok")
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Accept"] == "application/vnd.github+json"

    def test_gitlab_private_token(self):
        assert get_adapter("gitlab").auth_headers("tok") == {"PRIVATE-TOKEN": "tok"}

    def test_no_token(self):
        assert "Authorization" not in get_adapter("bitbucket").api_headers()


@pytest.mark.anyio
class TestResolveRef:
    """Test network ref resolution."""

    @respx.mock
    async def test_resolves_branch(self):
        route = respx.get("https://api.github.com/repos/user/repo/commits/main").mock(
            return_value=httpx.Response(200, json={"sha": HASH_A})
        )

        async with httpx.AsyncClient() as client:
            hash = await resolve_ref(client, parse("user/repo#main"), token="tok")

        assert hash == HASH_A
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    async def test_full_hash_skips_network(self):
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.get(url__regex=r".*").mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                hash = await resolve_ref(client, parse(f"user/repo#{HASH_A}"))

        assert hash == HASH_A
        assert not route.called

    @respx.mock
    async def test_missing_ref(self):
        respx.get("https://api.github.com/repos/user/repo/commits/nope").mock(
            return_value=httpx.Response(404)
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResolutionError, match="Could not find commit hash"):
                await resolve_ref(client, parse("user/repo#nope"))

    @respx.mock
    async def test_server_error(self):
        respx.get("https://api.github.com/repos/user/repo/commits/main").mock(
            return_value=httpx.Response(503)
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResolutionError, match="Could not fetch remote"):
                await resolve_ref(client, parse("user/repo#main"))

    @respx.mock
    async def test_network_error(self):
        respx.get("https://api.github.com/repos/user/repo/commits/main").mock(
            side_effect=httpx.ConnectError("boom")
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResolutionError):
                await resolve_ref(client, parse("user/repo#main"))

    @respx.mock
    async def test_invalid_json(self):
        respx.get("https://api.github.com/repos/user/repo/commits/main").mock(
            return_value=httpx.Response(200, content=b"<html>")
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResolutionError, match="Invalid response"):
                await resolve_ref(client, parse("user/repo#main"))


@pytest.mark.anyio
class TestDownloadArchive:
    """Test archive downloads."""

    @respx.mock
    async def test_download(self):
        respx.get(f"https://github.com/user/repo/archive/{HASH_A}.tar.gz").mock(
            return_value=httpx.Response(200, content=b"tarball-bytes")
        )
        events = []
        emitter = EventEmitter(verbose=True)
        emitter.on("info", events.append)

        async with httpx.AsyncClient() as client:
            data = await download_archive(
                client, parse("user/repo"), HASH_A, emitter=emitter
            )

        assert data == b"tarball-bytes"
        assert [event.code for event in events] == ["DOWNLOADING"]

    @respx.mock
    async def test_download_failure(self):
        respx.get(f"https://github.com/user/repo/archive/{HASH_A}.tar.gz").mock(
            return_value=httpx.Response(404)
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(FetchError, match="Could not download"):
                await download_archive(client, parse("user/repo"), HASH_A)
