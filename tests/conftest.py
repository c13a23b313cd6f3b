"""Shared pytest fixtures for repo-scaffold tests."""

import io
import tarfile
from pathlib import Path

import pytest

from repo_scaffold.config.schema import Settings
from repo_scaffold.fetch.cache import CacheStore
from repo_scaffold.fetch.git import GitCommandError, GitTransport

HASH_A = "a" * 40
HASH_B = "b" * 40


def make_tarball(files: dict[str, str], root: str | None = "repo-abc123") -> bytes:
    """Build a gzipped tarball the way hosting providers serve them.

    Args:
        files: Mapping of repository-relative path to file content
        root: Synthetic top-level folder wrapping the content (None for none)
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        if root:
            info = tarfile.TarInfo(root)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)

        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{root}/{name}" if root else name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))

    return buffer.getvalue()


@pytest.fixture
def cache_dir(tmp_path):
    """Provide a temporary cache directory."""
    return tmp_path / "cache"


@pytest.fixture
def cache_store(cache_dir):
    """Provide an isolated cache store."""
    return CacheStore(cache_dir)


@pytest.fixture
def settings(cache_dir):
    """Provide settings pointing at the temporary cache."""
    return Settings(cache_dir=str(cache_dir), timeout=5.0)


@pytest.fixture
def dest_dir(tmp_path):
    """Provide a destination path that does not exist yet."""
    return tmp_path / "dest"


@pytest.fixture
def template_tarball():
    """Provide a small template archive wrapped in a root folder."""
    return make_tarball(
        {
            "README.md": "# Template\n",
            "src/main.py": "print('hello')\n",
            "docs/guide.md": "Guide\n",
        }
    )


@pytest.fixture
def archive_file(tmp_path, template_tarball) -> Path:
    """Write the template archive to disk."""
    path = tmp_path / "archive.tar.gz"
    path.write_bytes(template_tarball)
    return path


class FakeGitTransport(GitTransport):
    """GitTransport recording commands instead of running git."""

    def __init__(self, outputs=None, fail_on=None, files=None):
        super().__init__()
        self.calls = []
        self.outputs = outputs or {}
        self.fail_on = fail_on
        self.files = files or {"README.md": "cloned"}

    async def _run(self, *args, cwd=None):
        self.calls.append(args)
        if self.fail_on and args[0] == self.fail_on:
            raise GitCommandError(args, 128, "fatal: repository not found")

        checkout = Path(args[-1]) if args[0] == "clone" else cwd
        if args[0] in ("clone", "checkout"):
            (checkout / ".git").mkdir(parents=True, exist_ok=True)
            for name, content in self.files.items():
                path = checkout / name
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content)
        return self.outputs.get(args[0], "")
