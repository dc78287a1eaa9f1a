"""Tests for per-tool execution log files."""

from pathlib import Path
from unittest.mock import patch

from dispatcher.adapters.execution_log import write_execution_log


class TestWriteExecutionLog:
    def test_disabled_without_log_dir(self):
        assert write_execution_log(None, "aider", "s1", "prompt", "output") is None

    def test_writes_under_tool_directory(self, tmp_path: Path):
        path = write_execution_log(tmp_path, "aider", "s1", "rename foo", "renamed")

        assert path.parent == tmp_path / "aider"
        assert path.name.endswith("-s1.log")
        text = path.read_text()
        assert "=== prompt ===\nrename foo" in text
        assert "=== output ===\nrenamed" in text
        assert "=== error ===" not in text

    def test_records_error(self, tmp_path: Path):
        path = write_execution_log(tmp_path, "aider", "s1", "x", "", error="boom")

        text = path.read_text()
        assert "status: failed" in text
        assert text.rstrip().endswith("=== error ===\nboom")

    def test_write_failure_is_swallowed(self, tmp_path: Path):
        """A broken log directory never breaks the execution."""
        with patch.object(Path, "write_text", side_effect=OSError("disk full")):
            assert write_execution_log(tmp_path, "aider", "s1", "x", "y") is None

    def test_unencodable_prompt_is_escaped(self, tmp_path: Path):
        """Lone surrogates from undecodable argv bytes still produce a log."""
        path = write_execution_log(tmp_path, "py", "s1", "fix \udcff bug", "ok")

        text = path.read_text(encoding="utf-8")
        assert "fix \\udcff bug" in text

    def test_invalid_file_name_is_swallowed(self, tmp_path: Path):
        assert write_execution_log(tmp_path, "py", "bad\x00id", "x", "y") is None
