"""Tests for concrete tool adapters.

These tests verify command-line construction, transport selection and
unconfigured-tool handling.
"""

import asyncio
import sys

import httpx
import pytest

from dispatcher.adapters import (
    AiderAdapter,
    ClaudeCodeAdapter,
    CursorAdapter,
    OpenCodeAdapter,
    ToolAdapter,
)
from dispatcher.config import ToolConfig
from dispatcher.models import StreamEvent, TaskRequest


class RecordingSpawn:
    """Records the command line and runs a harmless Python child instead."""

    def __init__(self, code: str = "print('ok')") -> None:
        self.code = code
        self.calls: list[tuple[str, ...]] = []

    async def __call__(self, *cmd, **kwargs):
        self.calls.append(cmd)
        return await asyncio.create_subprocess_exec(
            sys.executable, "-c", self.code, **kwargs
        )


class TestProtocol:
    @pytest.mark.parametrize(
        "adapter_type", [ClaudeCodeAdapter, OpenCodeAdapter, AiderAdapter, CursorAdapter]
    )
    def test_adapters_satisfy_protocol(self, adapter_type):
        adapter = adapter_type()

        assert isinstance(adapter, ToolAdapter)
        assert adapter.name in ("claude-code", "opencode", "aider", "cursor")


class TestClaudeCodeAdapter:
    def test_default_args(self):
        adapter = ClaudeCodeAdapter()
        request = TaskRequest.create("refactor the parser", "/srv/app")

        assert adapter.get_command() == "claude"
        assert adapter.get_args(request) == [
            "-p",
            "refactor the parser",
            "--permission-mode",
            "acceptEdits",
            "--allowed-tools",
            "Bash(*) Read(*) Edit(*) Write(*)",
            "--add-dir",
            "/srv/app",
        ]

    def test_options_and_extra_args(self):
        config = ToolConfig(
            name="claude-code",
            command="claude",
            args=["--model", "sonnet"],
            options={"permission_mode": "plan", "debug": True, "add_dir": ["/shared"]},
        )
        args = ClaudeCodeAdapter(config).get_args(TaskRequest.create("x", "/srv/app"))

        assert args[args.index("--permission-mode") + 1] == "plan"
        assert "--debug" in args
        assert args[-6:] == ["--add-dir", "/srv/app", "--add-dir", "/shared", "--model", "sonnet"]

    def test_rejects_unknown_permission_mode(self):
        config = ToolConfig(
            name="claude-code", command="claude", options={"permission_mode": "yolo"}
        )

        with pytest.raises(ValueError, match="yolo"):
            ClaudeCodeAdapter(config)

    @pytest.mark.asyncio
    async def test_execute_spawns_claude(self):
        spawn = RecordingSpawn()
        adapter = ClaudeCodeAdapter(spawn=spawn)

        result = await adapter.execute(TaskRequest.create("explain this", session_id="s1"))

        assert result.success is True
        assert result.output == "ok"
        assert result.session_id == "s1"
        assert spawn.calls[0][:3] == ("claude", "-p", "explain this")

    @pytest.mark.asyncio
    async def test_generates_session_id_when_missing(self):
        adapter = ClaudeCodeAdapter(spawn=RecordingSpawn())

        result = await adapter.execute(TaskRequest.create("x"))

        assert result.session_id.startswith("claude-code-")


class TestOpenCodeAdapter:
    def test_cli_mode_by_default(self):
        adapter = OpenCodeAdapter()

        assert adapter.uses_http is False
        assert adapter.get_command() == "opencode"
        assert adapter.get_args(TaskRequest.create("make it")) == ["run", "make it"]

    def test_endpoint_switches_to_http(self):
        adapter = OpenCodeAdapter(
            ToolConfig(name="opencode", command="opencode", endpoint="http://oc.test")
        )

        assert adapter.uses_http is True
        assert adapter.get_command() is None

    @pytest.mark.asyncio
    async def test_http_execute(self):
        transport = httpx.MockTransport(
            lambda r: httpx.Response(200, json={"output": "scaffolded"})
        )
        adapter = OpenCodeAdapter(
            ToolConfig(name="opencode", endpoint="http://oc.test"),
            client_factory=lambda **kw: httpx.AsyncClient(transport=transport, **kw),
        )

        result = await adapter.execute(TaskRequest.create("scaffold an app"))

        assert result.success is True
        assert result.output == "scaffolded"

    @pytest.mark.asyncio
    async def test_cli_stream(self):
        spawn = RecordingSpawn("print('generated')")
        adapter = OpenCodeAdapter(spawn=spawn)
        events: list[StreamEvent] = []

        await adapter.stream(TaskRequest.create("gen", session_id="s1"), events.append)

        assert spawn.calls[0] == ("opencode", "run", "gen")
        assert events[0] == StreamEvent.routing("opencode", "s1")
        assert events[-1].type == "complete"


class TestAiderAdapter:
    def test_args(self):
        adapter = AiderAdapter()

        assert adapter.get_args(TaskRequest.create("rename foo")) == [
            "--message",
            "rename foo",
            "--yes",
            "--no-auto-commits",
        ]

    def test_auto_commits_option(self):
        adapter = AiderAdapter(
            ToolConfig(name="aider", command="aider", options={"auto_commits": True})
        )

        assert "--no-auto-commits" not in adapter.get_args(TaskRequest.create("x"))

    @pytest.mark.asyncio
    async def test_requires_git_repository(self, tmp_path):
        spawn = RecordingSpawn()
        adapter = AiderAdapter(spawn=spawn)

        result = await adapter.execute(TaskRequest.create("x", tmp_path))

        assert result.success is False
        assert "requires a git repository" in result.error
        assert spawn.calls == []

    @pytest.mark.asyncio
    async def test_runs_inside_git_repository(self, tmp_path):
        (tmp_path / ".git").mkdir()
        spawn = RecordingSpawn()
        adapter = AiderAdapter(spawn=spawn)

        result = await adapter.execute(TaskRequest.create("x", tmp_path / "."))

        assert result.success is True
        assert spawn.calls[0][0] == "aider"

    @pytest.mark.asyncio
    async def test_stream_outside_git_repository(self, tmp_path):
        events: list[StreamEvent] = []

        await AiderAdapter().stream(TaskRequest.create("x", tmp_path, session_id="s1"), events.append)

        assert events[0] == StreamEvent.routing("aider", "s1")
        assert events[-1].type == "error"


class TestCursorAdapter:
    @pytest.mark.asyncio
    async def test_unconfigured(self):
        result = await CursorAdapter().execute(TaskRequest.create("x"))

        assert result.success is False
        assert result.error == "Tool cursor is not configured"

    @pytest.mark.asyncio
    async def test_unconfigured_is_unavailable(self):
        assert await CursorAdapter().is_available() is False

    def test_configured_args(self):
        adapter = CursorAdapter(ToolConfig(name="cursor", command="cursor-agent"))

        assert adapter.get_command() == "cursor-agent"
        assert adapter.get_args(TaskRequest.create("tweak")) == ["-p", "tweak"]
