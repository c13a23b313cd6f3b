"""Persistent ref and archive cache.

Layout under the cache root, one record directory per repository::

    <cache_dir>/<host>/<user>/<repo>/map.json      ref -> commit hash
    <cache_dir>/<host>/<user>/<repo>/access.json   ref -> last access (ISO 8601, UTC)
    <cache_dir>/<host>/<user>/<repo>/<hash>.tar.gz downloaded archive

Each record directory has its own lock file, so concurrent invocations
targeting the same repository serialize their read-modify-write cycles
while unrelated repositories never contend.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from filelock import FileLock

from repo_scaffold.core.events import EventEmitter
from repo_scaffold.core.reference import SourceReference, is_full_hash
from repo_scaffold.errors import CacheIOError
from repo_scaffold.utils.paths import ensure_dir, expand_path

logger = logging.getLogger(__name__)


class CacheStore:
    """Filesystem-backed cache of ref resolutions, access times and archives.

    RefMap (``map.json``) and AccessLog (``access.json``) are maintained
    independently: a ref can be touched without its hash being refreshed.
    A malformed table is reported as a ``CacheIOError`` warning and read as
    empty; the next write replaces it.
    """

    MAP_FILE = "map.json"
    ACCESS_FILE = "access.json"
    LOCK_FILE = ".lock"
    LOCK_TIMEOUT = 30.0  # seconds

    def __init__(self, cache_dir: Path):
        """Initialize the cache store.

        Args:
            cache_dir: Root directory for the cache (e.g., ~/.cache/repo-scaffold)
        """
        self.cache_dir = expand_path(str(cache_dir))
        ensure_dir(self.cache_dir)

    def record_dir(self, reference: SourceReference) -> Path:
        """Directory holding the record for ``reference``'s repository."""
        return self.cache_dir / reference.host / reference.user / reference.repo

    def _lock(self, reference: SourceReference) -> FileLock:
        record = ensure_dir(self.record_dir(reference))
        return FileLock(str(record / self.LOCK_FILE), timeout=self.LOCK_TIMEOUT)

    def _read_table(
        self, path: Path, emitter: Optional[EventEmitter] = None
    ) -> dict[str, str]:
        if not path.exists():
            return {}

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            error = CacheIOError(f"Ignoring unreadable cache file {path}", details=str(e))
            logger.debug("%s", error)
            if emitter is not None:
                emitter.warn(error.code, str(error))
            return {}

        return {str(key): value for key, value in data.items()}

    def _write_table(self, path: Path, table: dict) -> None:
        # Atomic replace so readers never observe a half-written table
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(table, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def lookup_hash(
        self, reference: SourceReference, emitter: Optional[EventEmitter] = None
    ) -> Optional[str]:
        """Return the cached hash for ``reference.ref`` without touching the network.

        A full-length hash given as ref is returned as-is.
        """
        if is_full_hash(reference.ref):
            return reference.ref

        table = self._read_table(self.record_dir(reference) / self.MAP_FILE, emitter)
        value = table.get(reference.ref)
        if isinstance(value, str) and is_full_hash(value):
            return value
        return None

    def record_hash(
        self,
        reference: SourceReference,
        hash: str,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        """Upsert the RefMap entry ``reference.ref -> hash``."""
        if not is_full_hash(hash):
            raise ValueError(f"Refusing to cache invalid commit hash: {hash!r}")

        path = self.record_dir(reference) / self.MAP_FILE
        with self._lock(reference):
            table = self._read_table(path, emitter)
            table[reference.ref] = hash
            self._write_table(path, table)

    def touch_access(
        self,
        reference: SourceReference,
        emitter: Optional[EventEmitter] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Upsert the AccessLog entry for ``reference.ref`` with the current time."""
        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        path = self.record_dir(reference) / self.ACCESS_FILE
        with self._lock(reference):
            table = self._read_table(path, emitter)
            table[reference.ref] = timestamp
            self._write_table(path, table)

    def enumerate(self, host_glob: str = "*") -> list[tuple[SourceReference, str]]:
        """List every cached ``(reference, hash)`` pair for hosts matching ``host_glob``."""
        entries = []
        for map_path in sorted(self.cache_dir.glob(f"{host_glob}/*/*/{self.MAP_FILE}")):
            host, user, repo = map_path.relative_to(self.cache_dir).parts[:3]
            for ref, hash in sorted(self._read_table(map_path).items()):
                entries.append((SourceReference(host, user, repo, ref), hash))
        return entries

    def enumerate_access(self, host_glob: str = "*") -> list[tuple[SourceReference, int]]:
        """List ``(reference, last_access_epoch_millis)`` pairs, most recent first."""
        entries = []
        for access_path in self.cache_dir.glob(f"{host_glob}/*/*/{self.ACCESS_FILE}"):
            host, user, repo = access_path.relative_to(self.cache_dir).parts[:3]
            for ref, value in self._read_table(access_path).items():
                millis = _to_epoch_millis(value)
                if millis is None:
                    continue
                entries.append((SourceReference(host, user, repo, ref), millis))

        entries.sort(key=lambda entry: entry[1], reverse=True)
        return entries

    def blob_path(self, reference: SourceReference, hash: str) -> Path:
        return self.record_dir(reference) / f"{hash}.tar.gz"

    def has_blob(self, reference: SourceReference, hash: str) -> bool:
        path = self.blob_path(reference, hash)
        return path.is_file() and path.stat().st_size > 0

    def store_blob(self, reference: SourceReference, hash: str, data: bytes) -> Path:
        """Persist archive bytes keyed by commit hash."""
        path = self.blob_path(reference, hash)
        ensure_dir(path.parent)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{hash}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path


def _to_epoch_millis(value) -> Optional[int]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if not isinstance(value, str):
        return None

    try:
        stamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None

    # Handle naive datetimes by assuming UTC
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return int(stamp.timestamp() * 1000)
