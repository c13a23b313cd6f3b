"""Exceptions raised by the clone pipeline.

Every failure surfaced by :meth:`repo_scaffold.core.cloner.Cloner.clone` is a
:class:`RepoScaffoldError` subclass carrying a stable ``code`` so callers can
branch on the kind of failure (for example, offering ``--force`` after a
:class:`DestinationNotEmptyError`).
"""


class RepoScaffoldError(Exception):
    """Base exception for all repo-scaffold errors."""

    code = "ERROR"

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ParseError(RepoScaffoldError, ValueError):
    """Raised when a repository specifier cannot be parsed."""

    code = "BAD_SRC"


class UnknownHostError(RepoScaffoldError):
    """Raised when a host shorthand is neither a known provider nor a domain."""

    code = "UNSUPPORTED_HOST"


class ResolutionError(RepoScaffoldError):
    """Raised when a ref cannot be resolved to a commit hash."""

    code = "MISSING_REF"


class FetchError(RepoScaffoldError):
    """Raised when downloading an archive (or git transport clone) fails."""

    code = "COULD_NOT_DOWNLOAD"


class DestinationNotEmptyError(RepoScaffoldError):
    """Raised when the destination has content and ``force`` is not set."""

    code = "DEST_NOT_EMPTY"


class ExtractionError(RepoScaffoldError):
    """Raised when an archive is malformed or cannot be written out."""

    code = "COULD_NOT_EXTRACT"


class CacheIOError(RepoScaffoldError):
    """A cache record is unreadable or corrupt.

    Never raised out of the pipeline; reported as a ``warn`` event and the
    record is treated as empty.
    """

    code = "CACHE_IO"
