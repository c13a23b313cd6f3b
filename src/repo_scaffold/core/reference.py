"""Parser for repository specifiers.

This module turns short specifiers into :class:`SourceReference` objects:
- ``user/repo`` (default host)
- ``github:user/repo``, ``gitlab:user/repo``, ``bitbucket:user/repo``,
  ``git.sr.ht:user/repo``
- ``github.com/user/repo``, ``https://gitlab.com/user/repo``,
  ``git@bitbucket.org:user/repo``
- any of the above with a trailing sub-path (``user/repo/templates/app``)
  and/or a ``#ref`` suffix
"""

import re
from dataclasses import dataclass
from typing import Optional

from repo_scaffold.errors import ParseError, UnknownHostError

DEFAULT_HOST = "github"
DEFAULT_REF = "HEAD"

# Adapter key -> domain serving the repositories
HOST_DOMAINS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
    "git.sr.ht": "git.sr.ht",
}

# Every spelling a user may type for a known host
HOST_ALIASES = {
    "github": "github",
    "github.com": "github",
    "www.github.com": "github",
    "gitlab": "gitlab",
    "gitlab.com": "gitlab",
    "bitbucket": "bitbucket",
    "bitbucket.org": "bitbucket",
    "git.sr.ht": "git.sr.ht",
    "sourcehut": "git.sr.ht",
}

SPECIFIER_PATTERN = re.compile(
    r"^(?:(?:https://)?(?P<domain>[^:/\s]+\.[^:/\s]+)/"
    r"|git@(?P<ssh_host>[^:/\s]+)[:/]"
    r"|(?P<shorthand>[^/\s]+):)?"
    r"(?P<user>[^/\s:]+)/(?P<repo>[^/\s#]+)"
    r"(?P<subdir>(?:/[^/\s#]+)+)?/?"
    r"(?:#(?P<ref>\S+))?$"
)

FULL_HASH_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


def is_full_hash(ref: str) -> bool:
    """Return True if ``ref`` is a full 40-character commit hash."""
    return bool(FULL_HASH_PATTERN.match(ref))


@dataclass(frozen=True)
class SourceReference:
    """A parsed repository specifier.

    Attributes:
        host: Adapter key ("github", "gitlab", ...) or a custom domain
        user: Repository owner
        repo: Repository name (without ``.git``)
        ref: Branch, tag or commit; "HEAD" means the default branch
        subdir: Optional path inside the repository to extract
    """

    host: str
    user: str
    repo: str
    ref: str = DEFAULT_REF
    subdir: Optional[str] = None

    @property
    def is_custom(self) -> bool:
        """True for hosts without an archive adapter."""
        return self.host not in HOST_DOMAINS

    @property
    def domain(self) -> str:
        return HOST_DOMAINS.get(self.host, self.host)

    @property
    def owner_path(self) -> str:
        """Owner segment as it appears in the host's URLs."""
        if self.host == "git.sr.ht":
            return f"~{self.user}"
        return self.user

    @property
    def url(self) -> str:
        return f"https://{self.domain}/{self.owner_path}/{self.repo}"

    @property
    def ssh(self) -> str:
        return f"git@{self.domain}:{self.owner_path}/{self.repo}"

    @property
    def specifier(self) -> str:
        """Canonical ``host:user/repo[/subdir]#ref`` form."""
        path = f"{self.user}/{self.repo}"
        if self.subdir:
            path = f"{path}/{self.subdir}"
        return f"{self.host}:{path}#{self.ref}"

    def with_ref(self, ref: str) -> "SourceReference":
        return SourceReference(self.host, self.user, self.repo, ref, self.subdir)


@dataclass(frozen=True)
class ResolvedCommit:
    """A reference pinned to the commit its ref pointed at.

    Attributes:
        reference: The reference that was resolved
        hash: Full commit hash; unlike the ref, it never moves
        from_cache: True when the hash came from the cache, not the host
    """

    reference: SourceReference
    hash: str
    from_cache: bool = False


def _resolve_host(match: re.Match, default_host: str) -> str:
    host = match.group("domain") or match.group("ssh_host") or match.group("shorthand")
    if host is None:
        return HOST_ALIASES.get(default_host, default_host)

    host = host.lower()
    if host in HOST_ALIASES:
        return HOST_ALIASES[host]

    # Dotted names are custom endpoints reachable over git transport
    if "." in host:
        return host

    raise UnknownHostError(f"Unsupported host: {host}")


def parse(raw: str, default_host: str = DEFAULT_HOST) -> SourceReference:
    """Parse a repository specifier.

    Args:
        raw: Specifier such as ``gitlab:user/repo/sub/dir#v1.2``
        default_host: Host used when the specifier names none

    Returns:
        Parsed SourceReference

    Raises:
        ParseError: If the specifier is empty or lacks a user or repo
        UnknownHostError: If the host shorthand is not recognized
    """
    if not raw or not raw.strip():
        raise ParseError("Repository specifier is empty")

    match = SPECIFIER_PATTERN.match(raw.strip())
    if not match:
        raise ParseError(f"Could not parse repository specifier: {raw}")

    host = _resolve_host(match, default_host)

    user = match.group("user")
    if host == "git.sr.ht":
        user = user.lstrip("~")

    repo = match.group("repo")
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    if not user or not repo:
        raise ParseError(f"Specifier must include both user and repo: {raw}")

    subdir = match.group("subdir")
    if subdir:
        subdir = subdir.strip("/")

    return SourceReference(
        host=host,
        user=user,
        repo=repo,
        ref=match.group("ref") or DEFAULT_REF,
        subdir=subdir or None,
    )
