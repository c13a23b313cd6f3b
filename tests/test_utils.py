"""Tests for path and console helpers."""

from repo_scaffold.core.events import Event
from repo_scaffold.utils.output import print_event
from repo_scaffold.utils.paths import ensure_dir, expand_path, is_within


class TestPaths:
    """Test path helpers."""

    def test_expand_path_is_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert expand_path("sub") == tmp_path.resolve() / "sub"

    def test_ensure_dir_creates_parents(self, tmp_path):
        path = ensure_dir(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_is_within(self, tmp_path):
        assert is_within(tmp_path / "a" / "b.txt", tmp_path)
        assert not is_within(tmp_path, tmp_path)
        assert not is_within(tmp_path / ".." / "other", tmp_path)

    def test_is_within_follows_symlinks(self, tmp_path):
        outside = tmp_path / "outside"
        root = tmp_path / "root"
        outside.mkdir()
        root.mkdir()
        (root / "link").symlink_to(outside)

        assert not is_within(root / "link" / "file", root)


class TestPrintEvent:
    """Test event rendering."""

    def test_styles_by_type(self, capsys):
        print_event(Event("info", "SUCCESS", "cloned it"))
        print_event(Event("info", "USING_CACHE", "using cache"))
        print_event(Event("warn", "DEST_NOT_EMPTY", "not empty"))

        out = capsys.readouterr().out
        assert "✓ cloned it" in out
        assert "ℹ using cache" in out
        assert "⚠ not empty" in out

    def test_rewrite(self, capsys):
        print_event(
            Event("warn", "X", "Use options.force"),
            lambda message: message.replace("options.", "--"),
        )

        assert "Use --force" in capsys.readouterr().out
