"""Abstract interface implemented by every hosting provider adapter."""

from typing import Any, Protocol

from repo_scaffold.core.reference import SourceReference


class HostAdapter(Protocol):
    """Knows a provider's URL templates and ref-resolution response format."""

    key: str
    domain: str

    def ref_resolution_url(self, reference: SourceReference) -> str:
        """Return the API endpoint describing the commit ``reference.ref`` points at."""
        ...

    def archive_url(self, reference: SourceReference, hash: str) -> str:
        """Return the download URL for a tarball of commit ``hash``."""
        ...

    def parse_resolution_response(self, payload: Any) -> str:
        """Extract the full commit hash from the ref-resolution response.

        Raises:
            ResolutionError: If the payload carries no usable hash
        """
        ...

    def api_headers(self, token: str | None = None) -> dict[str, str]:
        """Headers sent with ref-resolution requests."""
        ...

    def auth_headers(self, token: str | None = None) -> dict[str, str]:
        """Headers sent with archive downloads."""
        ...
