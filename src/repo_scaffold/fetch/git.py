"""Direct git transport for hosts without archive downloads (and ``mode="git"``)."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional

from repo_scaffold.core.reference import SourceReference, is_full_hash
from repo_scaffold.errors import FetchError, ResolutionError

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    """A git subprocess exited unsuccessfully."""

    def __init__(self, args: tuple[str, ...], returncode: int, stderr: str):
        self.args_ = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} exited with {returncode}: {stderr.strip()}")


class GitTransport:
    """Shallow clones over git, with version-control metadata removed afterwards."""

    def __init__(self, git: str = "git", timeout: Optional[float] = None):
        """Initialize the transport.

        Args:
            git: Git executable to invoke
            timeout: Per-command timeout in seconds (None waits indefinitely)
        """
        self.git = git
        self.timeout = timeout

    async def _run(self, *args: str, cwd: Optional[Path] = None) -> str:
        logger.debug("Running git %s", " ".join(args))
        process = await asyncio.create_subprocess_exec(
            self.git,
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GitCommandError(args, -1, "timed out") from None

        if process.returncode != 0:
            raise GitCommandError(args, process.returncode, stderr.decode(errors="replace"))
        return stdout.decode(errors="replace")

    async def resolve(self, reference: SourceReference) -> str:
        """Resolve ``reference.ref`` with ``git ls-remote``.

        Raises:
            ResolutionError: If the remote is unreachable or has no such ref
        """
        if is_full_hash(reference.ref):
            return reference.ref

        try:
            output = await self._run("ls-remote", reference.url)
        except (GitCommandError, OSError) as e:
            raise ResolutionError(
                f"Could not fetch remote {reference.url}", details=str(e)
            ) from e

        hash = find_ref(output, reference.ref)
        if hash is None:
            raise ResolutionError(
                f"Could not find commit hash for {reference.ref}", details=reference.url
            )
        return hash

    async def clone(
        self,
        reference: SourceReference,
        target_dir: Path,
        hash: Optional[str] = None,
    ) -> str:
        """Shallow-clone ``reference`` into ``target_dir`` and drop ``.git``.

        Named refs are cloned by name. When ``hash`` is given (a cached
        resolution) or ``reference.ref`` is itself a hash, that exact commit
        is fetched instead.

        Returns:
            Hash of the checked-out commit

        Raises:
            FetchError: If any git command fails
        """
        if hash is None and is_full_hash(reference.ref):
            hash = reference.ref

        try:
            if hash is not None:
                await self._fetch_commit(reference.url, hash, target_dir)
            else:
                args = ["clone", "--quiet", "--depth", "1"]
                if reference.ref != "HEAD":
                    args += ["--branch", reference.ref]
                await self._run(*args, reference.url, str(target_dir))

            checked_out = (await self._run("rev-parse", "HEAD", cwd=target_dir)).strip()
        except (GitCommandError, OSError) as e:
            raise FetchError(f"Could not clone {reference.url}", details=str(e)) from e

        shutil.rmtree(target_dir / ".git", ignore_errors=True)
        return checked_out

    async def _fetch_commit(self, url: str, hash: str, target_dir: Path) -> None:
        target_dir.mkdir(parents=True, exist_ok=True)
        await self._run("init", "--quiet", cwd=target_dir)
        await self._run("remote", "add", "origin", url, cwd=target_dir)
        await self._run("fetch", "--quiet", "--depth", "1", "origin", hash, cwd=target_dir)
        await self._run("checkout", "--quiet", "FETCH_HEAD", cwd=target_dir)


def find_ref(ls_remote_output: str, ref: str) -> Optional[str]:
    """Pick the hash for ``ref`` out of ``git ls-remote`` output.

    Annotated tags resolve to the commit they point at (the ``^{}`` line).
    """
    refs: dict[str, str] = {}
    for line in ls_remote_output.splitlines():
        if "\t" not in line:
            continue
        hash, name = line.split("\t", 1)
        refs[name.strip()] = hash.strip()

    candidates = [
        ref,
        f"refs/tags/{ref}^{{}}",
        f"refs/tags/{ref}",
        f"refs/heads/{ref}",
    ]
    for candidate in candidates:
        if candidate in refs:
            return refs[candidate]

    # Abbreviated hash
    matches = {hash for hash in refs.values() if len(ref) >= 7 and hash.startswith(ref)}
    if len(matches) == 1:
        return matches.pop()
    return None
