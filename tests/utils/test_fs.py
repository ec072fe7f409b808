"""Tests for the filesystem helpers."""

from faber.extensions.errors import Err, Ok
from faber.utils.fs import copy_tree, read_text, remove_file, remove_tree, write_text, write_text_atomic
from faber.utils.git import is_git_repo


class TestFs:
    """Test cases for faber.utils.fs"""

    def test_read_missing(self, tmp_path):
        result = read_text(tmp_path / "missing.txt")
        assert isinstance(result, Err)
        assert result.error.tag == "not_found"

    def test_write_creates_parents(self, tmp_path):
        path = tmp_path / "a" / "b" / "file.txt"
        assert write_text(path, "hello") == Ok(None)
        assert read_text(path) == Ok("hello")

    def test_atomic_write_replaces(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("old")

        assert write_text_atomic(path, "new") == Ok(None)
        assert path.read_text() == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_atomic_write_reports_tempfile_failure(self, tmp_path, monkeypatch):
        def deny(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("faber.utils.fs.tempfile.mkstemp", deny)
        result = write_text_atomic(tmp_path / "data.json", "new")

        assert isinstance(result, Err)
        assert result.error.tag == "fs"
        assert result.error.message == "Permission denied"
        assert list(tmp_path.iterdir()) == []

    def test_copy_tree(self, tmp_path):
        source = tmp_path / "src"
        (source / "sub").mkdir(parents=True)
        (source / "top.txt").write_text("1")
        (source / "sub" / "nested.txt").write_text("2")
        (source / ".git").mkdir()

        result = copy_tree(source, tmp_path / "dst", ignore=(".git",))

        assert result == Ok(2)
        assert (tmp_path / "dst" / "sub" / "nested.txt").read_text() == "2"
        assert not (tmp_path / "dst" / ".git").exists()

    def test_copy_tree_counts_only_source_files(self, tmp_path):
        source = tmp_path / "src"
        (source / "sub" / "__pycache__").mkdir(parents=True)
        (source / "sub" / "nested.txt").write_text("new")
        (source / "sub" / "__pycache__" / "x.pyc").write_text("")
        destination = tmp_path / "dst"
        (destination / "sub").mkdir(parents=True)
        (destination / "sub" / "nested.txt").write_text("old")
        (destination / "sub" / "local.yml").write_text("kept")
        (destination / "other.yml").write_text("kept")

        result = copy_tree(source, destination, ignore=("__pycache__",))

        assert result == Ok(1)
        assert (destination / "sub" / "nested.txt").read_text() == "new"
        assert (destination / "sub" / "local.yml").read_text() == "kept"
        assert not (destination / "sub" / "__pycache__").exists()

    def test_remove(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")

        assert remove_file(path) == Ok(True)
        assert remove_file(path) == Ok(False)
        assert remove_tree(tmp_path / "missing") == Ok(None)

    def test_is_git_repo(self, tmp_path):
        assert not is_git_repo(tmp_path)
        (tmp_path / ".git").mkdir()
        assert is_git_repo(tmp_path)
