"""Tests for CLI module.

These tests verify the dispatcher commands with the orchestrator mocked
out where a command would otherwise run a real tool.
"""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from dispatcher.cli import cli
from dispatcher.dispatcher import DispatchOutcome
from dispatcher.errors import AvailabilityError
from dispatcher.models import TaskAnalysis, TaskType, ToolResult
from dispatcher.sessions import SessionManager


def make_outcome(success: bool = True, output: str = "All done", error: str | None = None):
    analysis = TaskAnalysis(TaskType.REFACTORING, 6, "claude-code", 0.8, "reasoning")
    result = ToolResult(success=success, output=output, session_id="s1", error=error)
    return DispatchOutcome(analysis, "claude-code", "s1", result)


def mock_dispatcher(outcome=None, side_effect=None) -> MagicMock:
    instance = MagicMock()
    instance.dispatch = AsyncMock(return_value=outcome, side_effect=side_effect)
    instance.dispatch_stream = AsyncMock(return_value=outcome, side_effect=side_effect)
    return instance


class TestExplainCommand:
    def test_explain_json(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["explain", "refactor", "the", "database", "layer", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["taskType"] == "refactoring"
        assert data["suggestedTool"] == "claude-code"
        assert data["confidence"] == 0.8

    def test_explain_human_readable(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["explain", "quick fix typo in readme"])

        assert result.exit_code == 0
        assert "quick_fix" in result.output

    def test_explain_requires_prompt(self):
        result = CliRunner().invoke(cli, ["explain"])

        assert result.exit_code != 0


class TestRunCommand:
    def test_run_prints_output(self, tmp_path):
        instance = mock_dispatcher(make_outcome())

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                result = CliRunner().invoke(cli, ["run", "refactor", "it"])

        assert result.exit_code == 0
        assert "All done" in result.output
        request = instance.dispatch.call_args[0][0]
        assert request.prompt == "refactor it"
        assert (tmp_path / "sessions.json").exists()

    def test_run_passes_tool_and_directory(self, tmp_path):
        instance = mock_dispatcher(make_outcome())

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                CliRunner().invoke(
                    cli, ["run", "fix", "--tool", "aider", "--dir", str(tmp_path)]
                )

        request = instance.dispatch.call_args[0][0]
        assert request.context.directory == str(tmp_path)
        assert instance.dispatch.call_args.kwargs["tool"] == "aider"

    def test_run_failure_exits_nonzero(self, tmp_path):
        instance = mock_dispatcher(make_outcome(False, "", "boom"))

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                result = CliRunner().invoke(cli, ["run", "refactor"])

        assert result.exit_code == 1
        assert "boom" in result.output

    def test_run_dispatch_error(self, tmp_path):
        instance = mock_dispatcher(side_effect=AvailabilityError("claude-code"))

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                result = CliRunner().invoke(cli, ["run", "refactor"])

        assert result.exit_code == 1
        assert "not available" in result.output

    def test_run_unconfigured_tool(self, tmp_path, monkeypatch):
        """Forcing a tool without a command reports it as unconfigured."""
        monkeypatch.delenv("CURSOR_COMMAND", raising=False)

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            result = CliRunner().invoke(cli, ["run", "--tool", "cursor", "refactor"])

        assert result.exit_code == 1
        assert "Tool cursor is not configured" in result.output

    def test_run_stream_uses_dispatch_stream(self, tmp_path):
        instance = mock_dispatcher(make_outcome())

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                result = CliRunner().invoke(cli, ["run", "refactor", "--stream"])

        assert result.exit_code == 0
        instance.dispatch_stream.assert_awaited_once()
        instance.dispatch.assert_not_called()

    def test_run_json(self, tmp_path):
        instance = mock_dispatcher(make_outcome())

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            with patch("dispatcher.cli.Dispatcher", return_value=instance):
                result = CliRunner().invoke(cli, ["run", "refactor", "--json"])

        data = json.loads(result.output)
        assert data["tool"] == "claude-code"
        assert data["result"]["output"] == "All done"


class TestSessionsCommand:
    def test_no_sessions(self, tmp_path):
        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            result = CliRunner().invoke(cli, ["sessions"])

        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_stats(self, tmp_path):
        manager = SessionManager()
        manager.create("aider", "a1")
        manager.create("opencode", "o1")
        manager.complete("o1")
        manager.save(tmp_path)

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            result = CliRunner().invoke(cli, ["sessions", "--stats"])

        data = json.loads(result.output)
        assert data["total"] == 2
        assert data["by_tool"] == {"aider": 1, "opencode": 1}

    def test_filter_by_tool(self, tmp_path):
        manager = SessionManager()
        manager.create("aider", "a1")
        manager.save(tmp_path)

        with patch.dict(os.environ, {"DISPATCHER_STATE_DIR": str(tmp_path)}):
            result = CliRunner().invoke(cli, ["sessions", "--tool", "opencode"])

        assert "No sessions found" in result.output


class TestToolsCommand:
    def test_lists_tools_without_probing(self):
        result = CliRunner().invoke(cli, ["tools", "--no-probe"])

        assert result.exit_code == 0
        assert "Tools" in result.output
        assert "aider" in result.output
