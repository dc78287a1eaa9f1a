"""Tests for file context collection."""

from pathlib import Path

from dispatcher.adapters.files import collect_files, language_for
from dispatcher.models import ExecutionContext, FileContext


def make_tree(root: Path) -> None:
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("app = 1\n")
    (root / "src" / "util.ts").write_text("export {}\n")
    (root / "src" / "big.py").write_text("x" * 500)
    (root / "src" / "blob.py").write_bytes(b"\xff\xfe\x00")
    (root / "src" / "gen_pb2.py").write_text("generated\n")


class TestCollectFiles:
    def test_no_include_means_no_files(self, tmp_path: Path):
        assert collect_files(ExecutionContext(directory=str(tmp_path))) == []

    def test_explicit_files_win(self, tmp_path: Path):
        explicit = (FileContext("a.py", "a = 1", "python"),)
        context = ExecutionContext(
            directory=str(tmp_path), include=("**/*.py",), files=explicit
        )

        assert collect_files(context) == list(explicit)

    def test_include_exclude_and_limits(self, tmp_path: Path):
        make_tree(tmp_path)
        context = ExecutionContext(
            directory=str(tmp_path),
            include=("src/*.py", "src/*.ts"),
            exclude=("*_pb2.py",),
        )

        files = collect_files(context, max_bytes=100)

        assert [(f.path, f.language) for f in files] == [
            ("src/app.py", "python"),
            ("src/util.ts", "typescript"),
        ]

    def test_max_files(self, tmp_path: Path):
        make_tree(tmp_path)
        context = ExecutionContext(directory=str(tmp_path), include=("src/*",))

        assert len(collect_files(context, max_files=2)) == 2

    def test_missing_directory(self, tmp_path: Path):
        context = ExecutionContext(directory=str(tmp_path / "nope"), include=("*",))

        assert collect_files(context) == []


def test_language_for():
    assert language_for("main.go") == "go"
    assert language_for("README.MD") == "markdown"
    assert language_for("Makefile") is None
