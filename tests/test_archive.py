"""Tests for tarball extraction."""

import io
import tarfile

import pytest

from repo_scaffold.core.events import EventEmitter
from repo_scaffold.errors import ExtractionError
from repo_scaffold.fetch.archive import extract_archive

from conftest import make_tarball


def _write(tmp_path, data, name="archive.tar.gz"):
    path = tmp_path / name
    path.write_bytes(data)
    return path


class TestExtractArchive:
    """Test root stripping, subdir selection and safety checks."""

    def test_strips_synthetic_root(self, tmp_path, archive_file):
        target = tmp_path / "out"
        written = extract_archive(archive_file, target)

        assert written == 3
        assert (target / "README.md").read_text() == "# Template\n"
        assert (target / "src" / "main.py").exists()
        assert not (target / "repo-abc123").exists()

    def test_emits_verbose_events(self, tmp_path, archive_file):
        events = []
        emitter = EventEmitter(verbose=True)
        emitter.on("info", events.append)

        extract_archive(archive_file, tmp_path / "out", emitter=emitter)

        assert [event.code for event in events] == ["EXTRACTING", "STRIPPED_ROOT"]

    def test_quiet_without_verbose(self, tmp_path, archive_file):
        events = []
        emitter = EventEmitter()
        emitter.on("info", events.append)

        extract_archive(archive_file, tmp_path / "out", emitter=emitter)

        assert events == []

    def test_subdir_only(self, tmp_path, archive_file):
        target = tmp_path / "out"
        extract_archive(archive_file, target, subdir="src")

        assert (target / "main.py").read_text() == "print('hello')\n"
        assert not (target / "README.md").exists()
        assert not (target / "src").exists()

    def test_missing_subdir(self, tmp_path, archive_file):
        with pytest.raises(ExtractionError, match="subdirectory"):
            extract_archive(archive_file, tmp_path / "out", subdir="nope")

    def test_archive_without_root(self, tmp_path):
        archive = _write(tmp_path, make_tarball({"a.txt": "a", "b.txt": "b"}, root=None))
        target = tmp_path / "out"
        extract_archive(archive, target)

        assert (target / "a.txt").read_text() == "a"
        assert (target / "b.txt").read_text() == "b"

    def test_preserves_executable_bit(self, tmp_path):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            info = tarfile.TarInfo("root/run.sh")
            info.size = 2
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(b"hi"))
        archive = _write(tmp_path, buffer.getvalue())
        target = tmp_path / "out"

        extract_archive(archive, target)

        assert (target / "run.sh").stat().st_mode & 0o111

    def test_malformed_archive(self, tmp_path):
        archive = _write(tmp_path, b"definitely not a tarball")
        with pytest.raises(ExtractionError):
            extract_archive(archive, tmp_path / "out")

    def test_rejects_path_traversal(self, tmp_path):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            info = tarfile.TarInfo("root/../../evil.txt")
            info.size = 1
            tar.addfile(info, io.BytesIO(b"x"))
        archive = _write(tmp_path, buffer.getvalue())

        with pytest.raises(ExtractionError, match="unsafe"):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()

    def test_skips_escaping_symlink(self, tmp_path):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            info = tarfile.TarInfo("root/link")
            info.type = tarfile.SYMTYPE
            info.linkname = "/etc/passwd"
            tar.addfile(info)
            data = tarfile.TarInfo("root/file.txt")
            data.size = 1
            tar.addfile(data, io.BytesIO(b"x"))
        archive = _write(tmp_path, buffer.getvalue())
        warnings = []
        emitter = EventEmitter()
        emitter.on("warn", warnings.append)

        target = tmp_path / "out"
        extract_archive(archive, target, emitter=emitter)

        assert not (target / "link").is_symlink()
        assert [event.code for event in warnings] == ["SKIPPED_LINK"]
