"""Aider adapter.

Git-aware pair programming through the aider CLI:

    aider --message "prompt" --yes --no-auto-commits
"""

from pathlib import Path
from typing import Any

from dispatcher.adapters.base import EventSink, StreamEmitter, session_id_for
from dispatcher.adapters.subprocess_runner import Spawn, SubprocessRunner
from dispatcher.config import ToolConfig
from dispatcher.models import TaskRequest, ToolResult


def _is_git_repository(directory: str) -> bool:
    path = Path(directory).resolve()
    return any((p / ".git").exists() for p in (path, *path.parents))


class AiderAdapter:
    """Adapter for the aider CLI. Requires a git working tree."""

    name = "aider"

    def __init__(
        self,
        config: ToolConfig | None = None,
        *,
        spawn: Spawn | None = None,
        log_dir: Any = None,
        **_: Any,
    ) -> None:
        config = config or ToolConfig(name=self.name, command="aider")

        self.command = config.command
        self.extra_args = list(config.args)
        self.probe_timeout = config.probe_timeout_seconds
        self.auto_commits = bool(config.options.get("auto_commits", False))

        self._runner = SubprocessRunner(
            self.name, config.timeout_seconds, spawn=spawn, log_dir=log_dir
        )

    def get_command(self) -> str | None:
        return self.command

    def get_args(self, request: TaskRequest) -> list[str]:
        args = ["--message", request.prompt, "--yes"]
        if not self.auto_commits:
            args.append("--no-auto-commits")
        return args + self.extra_args

    def _git_error(self, request: TaskRequest) -> str | None:
        if self.command and not _is_git_repository(request.context.directory):
            return f"{self.name} requires a git repository: {request.context.directory}"
        return None

    async def is_available(self) -> bool:
        return await self._runner.probe(self.command, timeout=self.probe_timeout)

    async def execute(self, request: TaskRequest) -> ToolResult:
        session_id = session_id_for(request, self.name)
        error = self._git_error(request)
        if error:
            return ToolResult.failure(session_id, error)
        return await self._runner.execute(
            request, self.get_command(), self.get_args(request), session_id
        )

    async def stream(self, request: TaskRequest, sink: EventSink) -> None:
        session_id = session_id_for(request, self.name)
        error = self._git_error(request)
        if error:
            emitter = StreamEmitter(sink)
            await emitter.routing(self.name, session_id)
            await emitter.error(error)
            return
        await self._runner.stream(
            request, self.get_command(), self.get_args(request), session_id, sink
        )

    async def cancel(self, session_id: str) -> None:
        await self._runner.cancel(session_id)
