"""Hosting provider adapters and the network calls they share.

Each adapter only knows its provider's URL templates and how to read the
commit hash out of the provider's API response. Resolution and download
logic (timeouts, error mapping, streaming) is shared by all of them.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from repo_scaffold.core.events import EventEmitter
from repo_scaffold.core.reference import SourceReference, is_full_hash
from repo_scaffold.errors import FetchError, ResolutionError, UnknownHostError
from repo_scaffold.fetch.protocols import HostAdapter

logger = logging.getLogger(__name__)


class BaseAdapter:
    """Shared header handling; subclasses provide URLs and response parsing."""

    key = ""
    domain = ""

    def api_headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        headers.update(self.auth_headers(token))
        return headers

    def auth_headers(self, token: str | None = None) -> dict[str, str]:
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _require_hash(self, value: Any) -> str:
        if not isinstance(value, str) or not is_full_hash(value):
            raise ResolutionError(
                f"{self.domain} returned no commit hash", details=repr(value)
            )
        return value


class GitHubAdapter(BaseAdapter):
    """github.com via the REST API (``/repos/{owner}/{repo}/commits/{ref}``)."""

    key = "github"
    domain = "github.com"
    API_URL = "https://api.github.com"

    def ref_resolution_url(self, reference: SourceReference) -> str:
        ref = quote(reference.ref, safe="")
        return f"{self.API_URL}/repos/{reference.user}/{reference.repo}/commits/{ref}"

    def archive_url(self, reference: SourceReference, hash: str) -> str:
        return f"https://github.com/{reference.user}/{reference.repo}/archive/{hash}.tar.gz"

    def parse_resolution_response(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise ResolutionError("Unexpected response from github.com")
        return self._require_hash(payload.get("sha"))

    def api_headers(self, token: str | None = None) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        headers.update(self.auth_headers(token))
        return headers


class GitLabAdapter(BaseAdapter):
    """gitlab.com via the v4 API; projects are addressed by url-encoded path."""

    key = "gitlab"
    domain = "gitlab.com"
    API_URL = "https://gitlab.com/api/v4"

    def ref_resolution_url(self, reference: SourceReference) -> str:
        project = quote(f"{reference.user}/{reference.repo}", safe="")
        ref = quote(reference.ref, safe="")
        return f"{self.API_URL}/projects/{project}/repository/commits/{ref}"

    def archive_url(self, reference: SourceReference, hash: str) -> str:
        return (
            f"https://gitlab.com/{reference.user}/{reference.repo}"
            f"/-/archive/{hash}/{reference.repo}-{hash}.tar.gz"
        )

    def parse_resolution_response(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise ResolutionError("Unexpected response from gitlab.com")
        return self._require_hash(payload.get("id"))

    def auth_headers(self, token: str | None = None) -> dict[str, str]:
        if token:
            return {"PRIVATE-TOKEN": token}
        return {}


class BitbucketAdapter(BaseAdapter):
    """bitbucket.org via the 2.0 API."""

    key = "bitbucket"
    domain = "bitbucket.org"
    API_URL = "https://api.bitbucket.org/2.0"

    def ref_resolution_url(self, reference: SourceReference) -> str:
        ref = quote(reference.ref, safe="")
        return f"{self.API_URL}/repositories/{reference.user}/{reference.repo}/commit/{ref}"

    def archive_url(self, reference: SourceReference, hash: str) -> str:
        return f"https://bitbucket.org/{reference.user}/{reference.repo}/get/{hash}.tar.gz"

    def parse_resolution_response(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise ResolutionError("Unexpected response from bitbucket.org")
        return self._require_hash(payload.get("hash"))


class SourceHutAdapter(BaseAdapter):
    """git.sr.ht; owners are prefixed with ``~`` in every URL."""

    key = "git.sr.ht"
    domain = "git.sr.ht"
    API_URL = "https://git.sr.ht/api"

    def ref_resolution_url(self, reference: SourceReference) -> str:
        ref = quote(reference.ref, safe="")
        return f"{self.API_URL}/{reference.owner_path}/repos/{reference.repo}/log/{ref}"

    def archive_url(self, reference: SourceReference, hash: str) -> str:
        return f"https://git.sr.ht/{reference.owner_path}/{reference.repo}/archive/{hash}.tar.gz"

    def parse_resolution_response(self, payload: Any) -> str:
        # Log endpoint returns newest-first commits
        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            raise ResolutionError("git.sr.ht returned no commits for ref")
        return self._require_hash(results[0].get("id"))

    def auth_headers(self, token: str | None = None) -> dict[str, str]:
        if token:
            return {"Authorization": f"token {token}"}
        return {}


ADAPTERS: dict[str, HostAdapter] = {
    adapter.key: adapter
    for adapter in (GitHubAdapter(), GitLabAdapter(), BitbucketAdapter(), SourceHutAdapter())
}


def get_adapter(host: str) -> HostAdapter:
    """Look up the adapter for a host key.

    Raises:
        UnknownHostError: If no archive adapter exists for ``host``
    """
    try:
        return ADAPTERS[host]
    except KeyError:
        raise UnknownHostError(f"No archive adapter for host: {host}") from None


async def resolve_ref(
    client: httpx.AsyncClient,
    reference: SourceReference,
    token: Optional[str] = None,
) -> str:
    """Resolve ``reference.ref`` to a full commit hash.

    A full 40-character hash resolves to itself without a request.

    Raises:
        ResolutionError: If the request fails or the response has no hash
        UnknownHostError: If the host has no adapter
    """
    if is_full_hash(reference.ref):
        return reference.ref

    adapter = get_adapter(reference.host)
    url = adapter.ref_resolution_url(reference)
    logger.debug("Resolving %s via %s", reference.specifier, url)

    try:
        response = await client.get(
            url, headers=adapter.api_headers(token), follow_redirects=True
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise ResolutionError(
                f"Could not find commit hash for {reference.ref}",
                details=reference.url,
            ) from e
        raise ResolutionError(
            f"Could not fetch remote {reference.url}",
            details=f"HTTP {e.response.status_code}",
        ) from e
    except httpx.HTTPError as e:
        raise ResolutionError(
            f"Could not fetch remote {reference.url}", details=str(e)
        ) from e
    except ValueError as e:
        raise ResolutionError(
            f"Invalid response while resolving {reference.ref}", details=str(e)
        ) from e

    return adapter.parse_resolution_response(payload)


async def download_archive(
    client: httpx.AsyncClient,
    reference: SourceReference,
    hash: str,
    token: Optional[str] = None,
    emitter: Optional[EventEmitter] = None,
) -> bytes:
    """Download the tarball for commit ``hash``.

    Raises:
        FetchError: On network failure or a non-success response
    """
    adapter = get_adapter(reference.host)
    url = adapter.archive_url(reference, hash)

    try:
        async with client.stream(
            "GET", url, headers=adapter.auth_headers(token), follow_redirects=True
        ) as response:
            response.raise_for_status()
            if emitter is not None:
                size = response.headers.get("content-length")
                detail = f" ({size} bytes)" if size else ""
                emitter.verbose_info(
                    "DOWNLOADING",
                    f"downloading {url}{detail}",
                    reference=reference.specifier,
                )
            chunks = [chunk async for chunk in response.aiter_bytes()]
    except httpx.HTTPStatusError as e:
        raise FetchError(
            f"Could not download {url}", details=f"HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise FetchError(f"Could not download {url}", details=str(e)) from e

    return b"".join(chunks)
