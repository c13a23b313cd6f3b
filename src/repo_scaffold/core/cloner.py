"""Clone pipeline.

This module ties the pieces together. For each clone it:
1. Checks the destination conflict policy
2. Resolves the ref to a commit hash (cache first when allowed, then network)
3. Records the resolution and fetches the archive (or clones over git)
4. Extracts into a scratch directory beside the destination
5. Runs any ``scaffold.json`` directives against the scratch tree
6. Promotes the scratch content into the destination in one step

Progress and non-fatal conditions are reported as events; fatal conditions
are raised as :class:`repo_scaffold.errors.RepoScaffoldError` subclasses.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import httpx

from repo_scaffold.config.schema import CloneMode, CloneOptions, Settings
from repo_scaffold.core.events import EventEmitter, EventType, Handler
from repo_scaffold.core.reference import (
    ResolvedCommit,
    SourceReference,
    is_full_hash,
    parse,
)
from repo_scaffold.errors import (
    CacheIOError,
    DestinationNotEmptyError,
    ExtractionError,
)
from repo_scaffold.fetch.archive import extract_archive
from repo_scaffold.fetch.cache import CacheStore
from repo_scaffold.fetch.git import GitTransport
from repo_scaffold.fetch.hosts import download_archive, resolve_ref
from repo_scaffold.utils.paths import ensure_dir, expand_path, is_within

logger = logging.getLogger(__name__)

DIRECTIVES_FILE = "scaffold.json"


class Cloner:
    """A single clone of one repository reference into a destination.

    Attributes:
        reference: Parsed repository reference
        options: Clone options for this operation
        cache: Cache store shared with other invocations
        settings: Global settings (timeouts, tokens, default host)
        resolved: Commit the last clone used, set once the ref is resolved
    """

    def __init__(
        self,
        reference: SourceReference,
        options: CloneOptions,
        cache: CacheStore,
        settings: Settings,
        transport: Optional[GitTransport] = None,
    ):
        self.reference = reference
        self.options = options
        self.cache = cache
        self.settings = settings
        self.emitter = EventEmitter(verbose=options.verbose)
        self.transport = transport or GitTransport(timeout=self.timeout)
        self.resolved: Optional[ResolvedCommit] = None
        self._nested: list["Cloner"] = []

    @property
    def timeout(self) -> Optional[float]:
        if self.options.timeout is not None:
            return self.options.timeout
        return self.settings.timeout

    @property
    def token(self) -> Optional[str]:
        return self.options.token or self.settings.tokens.get(self.reference.host)

    @property
    def uses_git(self) -> bool:
        return self.options.mode == CloneMode.GIT or self.reference.is_custom

    def on(self, event_type: EventType, handler: Handler) -> None:
        """Subscribe ``handler`` to "info" or "warn" events."""
        self.emitter.on(event_type, handler)

    async def clone(self, destination: Union[str, Path]) -> None:
        """Clone the reference into ``destination``.

        The destination is only written after the content has been fully
        fetched and extracted into a scratch directory.

        Raises:
            DestinationNotEmptyError: If destination has content and force is off
            ResolutionError: If the ref cannot be resolved
            FetchError: If the archive or git clone cannot be fetched
            ExtractionError: If the archive cannot be extracted or promoted
        """
        dest = expand_path(str(destination))
        spec = self.reference.specifier
        self._check_destination(dest)
        self._nested = []

        scratch = Path(
            tempfile.mkdtemp(prefix=".repo-scaffold-", dir=ensure_dir(dest.parent))
        )
        try:
            content = scratch / "content"
            await self._materialize(content, scratch)
            self._promote(content, dest)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        self._touch_access()

        self.emitter.info(
            "SUCCESS",
            f"cloned {spec} to {dest}",
            reference=spec,
            dest=str(dest),
        )

    async def _materialize(self, content: Path, scratch: Path) -> None:
        """Fetch the template into ``content`` and apply its directives.

        Everything happens under ``scratch``; nothing outside it is written.
        """
        if self.uses_git:
            await self._clone_with_git(content, scratch)
        else:
            await self._clone_with_tar(content, scratch)

        directives = self._read_directives(content)
        if directives:
            await self._run_directives(directives, content, scratch)

    def _check_destination(self, dest: Path) -> None:
        if not dest.exists():
            self.emitter.verbose_info("DEST_IS_EMPTY", f"destination directory {dest} is empty")
            return
        if not dest.is_dir():
            raise ExtractionError(f"Destination is not a directory: {dest}")
        if not any(dest.iterdir()):
            self.emitter.verbose_info("DEST_IS_EMPTY", f"destination directory {dest} is empty")
            return

        if not self.options.force:
            raise DestinationNotEmptyError(
                "destination directory is not empty, aborting. Use options.force to override",
                details=str(dest),
            )
        self.emitter.warn(
            "DEST_NOT_EMPTY",
            "destination directory is not empty. Using options.force, continuing",
            dest=str(dest),
        )

    def _cached_hash(self) -> Optional[str]:
        if not self.options.cache or is_full_hash(self.reference.ref):
            return None

        hash = self.cache.lookup_hash(self.reference, self.emitter)
        if hash is not None:
            self.emitter.info(
                "USING_CACHE",
                f"using cached commit hash {hash}",
                reference=self.reference.specifier,
            )
        else:
            self.emitter.verbose_info(
                "CACHE_MISS",
                f"no cached commit hash for {self.reference.ref}",
                reference=self.reference.specifier,
            )
        return hash

    def _record_hash(self, hash: str) -> None:
        if is_full_hash(self.reference.ref):
            return
        try:
            self.cache.record_hash(self.reference, hash, self.emitter)
        except OSError as e:
            self._warn_cache(CacheIOError("Could not update cached commit hash", details=str(e)))

    def _touch_access(self) -> None:
        try:
            self.cache.touch_access(self.reference, self.emitter)
        except OSError as e:
            self._warn_cache(CacheIOError("Could not update access log", details=str(e)))
        for nested in self._nested:
            nested._touch_access()

    def _warn_cache(self, error: CacheIOError) -> None:
        logger.debug("%s", error)
        self.emitter.warn(error.code, str(error), reference=self.reference.specifier)

    async def _clone_with_tar(self, content: Path, scratch: Path) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            hash = self._cached_hash()
            if hash is None:
                hash = await resolve_ref(client, self.reference, self.token)
                self._record_hash(hash)
                self.resolved = ResolvedCommit(self.reference, hash)
            else:
                self.resolved = ResolvedCommit(self.reference, hash, from_cache=True)

            if self.options.cache and self.cache.has_blob(self.reference, hash):
                archive = self.cache.blob_path(self.reference, hash)
                self.emitter.verbose_info(
                    "USING_CACHED_ARCHIVE",
                    f"using cached archive {archive.name}",
                    reference=self.reference.specifier,
                )
            else:
                data = await download_archive(
                    client, self.reference, hash, self.token, self.emitter
                )
                archive = self._store_archive(hash, data, scratch)

        extract_archive(archive, content, self.reference.subdir, self.emitter)

    def _store_archive(self, hash: str, data: bytes, scratch: Path) -> Path:
        try:
            return self.cache.store_blob(self.reference, hash, data)
        except OSError as e:
            self._warn_cache(CacheIOError("Could not cache downloaded archive", details=str(e)))

        fallback = scratch / f"{hash}.tar.gz"
        fallback.write_bytes(data)
        return fallback

    async def _clone_with_git(self, content: Path, scratch: Path) -> None:
        if self.reference.is_custom and self.options.mode != CloneMode.GIT:
            self.emitter.info(
                "FALLBACK_GIT",
                f"{self.reference.host} has no archive support, cloning with git",
                reference=self.reference.specifier,
            )

        hash = self._cached_hash()
        checkout = scratch / "checkout"
        if hash is not None:
            await self.transport.clone(self.reference, checkout, hash=hash)
            self.resolved = ResolvedCommit(self.reference, hash, from_cache=True)
        else:
            hash = await self.transport.resolve(self.reference)
            await self.transport.clone(self.reference, checkout, hash=hash)
            self._record_hash(hash)
            self.resolved = ResolvedCommit(self.reference, hash)

        self.emitter.verbose_info(
            "GIT_CLONED",
            f"cloned {self.reference.url} at {hash} with git and removed history",
            reference=self.reference.specifier,
        )

        source = checkout
        if self.reference.subdir:
            source = checkout.joinpath(*self.reference.subdir.split("/"))
            if not source.is_dir():
                raise ExtractionError(
                    f"No files to extract. Check the subdirectory name: {self.reference.subdir}"
                )
        source.rename(content)

    def _read_directives(self, content: Path) -> list[dict[str, Any]]:
        path = content / DIRECTIVES_FILE
        if not path.is_file():
            return []

        try:
            directives = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise ExtractionError(f"Invalid {DIRECTIVES_FILE}", details=str(e)) from e

        if not isinstance(directives, list) or not all(
            isinstance(d, dict) for d in directives
        ):
            raise ExtractionError(f"{DIRECTIVES_FILE} must contain a list of actions")

        # Nested sources are parsed up front so a bad one fails before any fetch
        for directive in directives:
            if directive.get("action") == "clone":
                src = directive.get("src")
                if not isinstance(src, str) or not src:
                    raise ExtractionError(f"clone action in {DIRECTIVES_FILE} needs a src")
                parse(src, self.settings.default_host)

        path.unlink()
        self.emitter.verbose_info(
            "DIRECTIVES",
            f"found {DIRECTIVES_FILE} with {len(directives)} action(s)",
            reference=self.reference.specifier,
        )
        return directives

    def _promote(self, content: Path, dest: Path) -> None:
        if not content.exists():
            ensure_dir(content)

        if not dest.exists():
            try:
                content.rename(dest)
            except OSError as e:
                raise ExtractionError(f"Could not write to {dest}", details=str(e)) from e
            return

        plan = _overlay_plan(content, dest)
        try:
            for source, target in plan:
                if target.exists() or target.is_symlink():
                    self.emitter.verbose_info(
                        "FILE_EXISTS",
                        f"overwriting {target.relative_to(dest)}",
                        dest=str(dest),
                    )
                    target.unlink()
                ensure_dir(target.parent)
                if source.is_symlink():
                    os.symlink(os.readlink(source), target)
                else:
                    shutil.copy2(source, target)
        except OSError as e:
            raise ExtractionError(f"Could not write to {dest}", details=str(e)) from e

    async def _run_directives(
        self, directives: list[dict[str, Any]], content: Path, scratch: Path
    ) -> None:
        for directive in directives:
            action = directive.get("action")
            if action == "remove":
                self._remove(directive.get("files", []), content)
            elif action == "clone":
                await self._clone_nested(directive["src"], content, scratch)
            else:
                self.emitter.warn(
                    "UNKNOWN_ACTION",
                    f"ignoring unknown {DIRECTIVES_FILE} action: {action}",
                    reference=self.reference.specifier,
                )

    def _remove(self, files: Union[str, list[str]], content: Path) -> None:
        # Only template files are removable; the destination is not touched yet
        if isinstance(files, str):
            files = [files]

        spec = self.reference.specifier
        for name in files:
            path = content / name
            if not is_within(path, content):
                self.emitter.warn("FILE_OUTSIDE_DEST", f"refusing to remove {name}", reference=spec)
                continue
            if not path.exists() and not path.is_symlink():
                self.emitter.warn(
                    "FILE_DOES_NOT_EXIST",
                    f"action wants to remove {name} but it does not exist",
                    reference=spec,
                )
                continue

            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
            self.emitter.info("REMOVED", f"removed {name}", reference=spec)

    async def _clone_nested(self, src: str, content: Path, scratch: Path) -> None:
        """Overlay another template onto ``content``, as if cloned with force."""
        options = self.options.model_copy(update={"force": True})
        nested = Cloner(
            parse(src, self.settings.default_host),
            options,
            self.cache,
            self.settings,
            self.transport,
        )
        self.emitter.forward(nested.emitter)

        nested_scratch = Path(tempfile.mkdtemp(prefix="nested-", dir=scratch))
        nested_content = nested_scratch / "content"
        await nested._materialize(nested_content, nested_scratch)
        nested._promote(nested_content, content)
        self._nested.append(nested)
        self.emitter.verbose_info(
            "CLONED_NESTED",
            f"applied {nested.reference.specifier} on top of {self.reference.specifier}",
            reference=self.reference.specifier,
        )


def _overlay_plan(content: Path, dest: Path) -> list[tuple[Path, Path]]:
    """Pair every file in ``content`` with its target under ``dest``.

    Raises:
        ExtractionError: If a file would replace an existing directory
    """
    plan = []
    for dirpath, dirnames, filenames in os.walk(content):
        current = Path(dirpath)
        names = filenames + [d for d in dirnames if (current / d).is_symlink()]
        for name in names:
            source = current / name
            target = dest / source.relative_to(content)
            if target.is_dir() and not target.is_symlink():
                raise ExtractionError(f"Cannot overwrite directory with a file: {target}")
            plan.append((source, target))
        for directory in dirnames:
            target = dest / (current / directory).relative_to(content)
            if target.exists() and not target.is_dir():
                raise ExtractionError(f"Cannot overwrite file with a directory: {target}")
    return plan


def create_clone(
    specifier: str,
    options: Optional[Union[CloneOptions, dict[str, Any]]] = None,
    *,
    cache_store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
    transport: Optional[GitTransport] = None,
) -> Cloner:
    """Parse ``specifier`` and prepare a :class:`Cloner`.

    Args:
        specifier: Repository specifier, e.g. ``gitlab:user/repo#v1``
        options: CloneOptions (or a dict of them); mode defaults to settings
        cache_store: Cache store to use; defaults to one at settings.cache_dir
        settings: Global settings; defaults to built-in defaults
        transport: Git transport override

    Raises:
        ParseError: If the specifier is malformed
        UnknownHostError: If the host is not recognized
    """
    settings = settings or Settings()
    if options is None:
        options = CloneOptions(mode=settings.default_mode)
    elif isinstance(options, dict):
        options = CloneOptions(**{"mode": settings.default_mode, **options})

    reference = parse(specifier, settings.default_host)
    cache_store = cache_store or CacheStore(Path(settings.cache_dir))
    logger.debug("Prepared clone of %s with %s", reference.specifier, options)
    return Cloner(reference, options, cache_store, settings, transport)


