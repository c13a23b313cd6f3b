"""Tarball extraction with root-folder stripping and sub-tree selection.

Provider archives wrap the repository in one synthetic top-level folder
(``repo-<hash>/``). Extraction drops that folder so paths are relative to
the repository root, and when a sub-directory is requested only that
sub-tree is written, re-rooted at the target.
"""

import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import Optional

from repo_scaffold.core.events import EventEmitter
from repo_scaffold.errors import ExtractionError
from repo_scaffold.utils.paths import ensure_dir, is_within

logger = logging.getLogger(__name__)


def _common_root(names: list[str]) -> Optional[str]:
    """Return the single top-level folder shared by every member, if any."""
    paths = [PurePosixPath(name).parts for name in names]
    roots = {parts[0] for parts in paths if parts}
    if len(roots) != 1:
        return None
    # A lone top-level file is content, not a wrapper folder
    if not any(len(parts) > 1 for parts in paths):
        return None
    return roots.pop()


def _relative_parts(
    name: str, root: Optional[str], subdir_parts: tuple[str, ...]
) -> Optional[tuple[str, ...]]:
    parts = PurePosixPath(name).parts
    if root is not None:
        parts = parts[1:]
    if subdir_parts:
        if parts[: len(subdir_parts)] != subdir_parts:
            return None
        parts = parts[len(subdir_parts):]
    return parts or None


def _check_safe(name: str, parts: tuple[str, ...]) -> None:
    if PurePosixPath(name).is_absolute() or ".." in parts:
        raise ExtractionError(f"Refusing to extract unsafe path: {name}")


def extract_archive(
    archive_path: Path,
    target_dir: Path,
    subdir: Optional[str] = None,
    emitter: Optional[EventEmitter] = None,
) -> int:
    """Extract a provider tarball into ``target_dir``.

    Args:
        archive_path: Path to a (possibly compressed) tar archive
        target_dir: Directory to write into; created if missing
        subdir: Optional repository sub-path; only its contents are extracted
        emitter: Optional event channel for extraction notices

    Returns:
        Number of files written

    Raises:
        ExtractionError: If the archive is malformed, contains unsafe paths,
            the sub-directory is absent, or a file cannot be written
    """
    subdir_parts = PurePosixPath(subdir).parts if subdir else ()
    ensure_dir(target_dir)
    written = 0

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            members = tar.getmembers()
            root = _common_root([member.name for member in members])

            if emitter is not None:
                emitter.verbose_info("EXTRACTING", f"extracting {archive_path.name}")
                if root is not None:
                    emitter.verbose_info(
                        "STRIPPED_ROOT", f"stripped archive root folder {root}/"
                    )

            for member in members:
                _check_safe(member.name, PurePosixPath(member.name).parts)
                parts = _relative_parts(member.name, root, subdir_parts)
                if parts is None:
                    continue

                destination = target_dir.joinpath(*parts)

                if member.isdir():
                    ensure_dir(destination)
                elif member.isfile():
                    ensure_dir(destination.parent)
                    source = tar.extractfile(member)
                    if source is None:
                        raise ExtractionError(f"Could not read {member.name} from archive")
                    with source, open(destination, "wb") as out:
                        shutil.copyfileobj(source, out)
                    os.chmod(destination, member.mode & 0o777 or 0o644)
                    written += 1
                elif member.issym():
                    _extract_symlink(member, destination, target_dir, emitter)
                else:
                    logger.debug("Skipping unsupported archive member %s", member.name)

    except tarfile.TarError as e:
        raise ExtractionError(f"Could not extract {archive_path.name}", details=str(e)) from e
    except OSError as e:
        raise ExtractionError("Could not write extracted files", details=str(e)) from e

    if subdir and written == 0:
        raise ExtractionError(
            f"No files to extract. Check the subdirectory name: {subdir}"
        )

    return written


def _extract_symlink(
    member: tarfile.TarInfo,
    destination: Path,
    target_dir: Path,
    emitter: Optional[EventEmitter],
) -> None:
    # Only links that stay inside the extracted tree are recreated
    link_target = (destination.parent / member.linkname).resolve()
    if PurePosixPath(member.linkname).is_absolute() or (
        link_target != target_dir.resolve() and not is_within(link_target, target_dir)
    ):
        if emitter is not None:
            emitter.warn("SKIPPED_LINK", f"skipped symlink pointing outside the repository: {member.name}")
        return

    ensure_dir(destination.parent)
    if destination.is_symlink() or destination.exists():
        destination.unlink()
    os.symlink(member.linkname, destination)
