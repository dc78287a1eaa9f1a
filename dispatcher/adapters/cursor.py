"""Cursor adapter.

Edit-focused, single-file changes through the Cursor agent CLI. Cursor has
no default command: it must be configured (``CURSOR_COMMAND`` or
``ToolConfig.command``), otherwise every execution reports the tool as not
configured.
"""

from typing import Any

from dispatcher.adapters.base import EventSink, session_id_for
from dispatcher.adapters.subprocess_runner import Spawn, SubprocessRunner
from dispatcher.config import ToolConfig
from dispatcher.models import TaskRequest, ToolResult


class CursorAdapter:
    name = "cursor"

    def __init__(
        self,
        config: ToolConfig | None = None,
        *,
        spawn: Spawn | None = None,
        log_dir: Any = None,
        **_: Any,
    ) -> None:
        config = config or ToolConfig(name=self.name)

        self.command = config.command
        self.extra_args = list(config.args)
        self.probe_timeout = config.probe_timeout_seconds

        self._runner = SubprocessRunner(
            self.name, config.timeout_seconds, spawn=spawn, log_dir=log_dir
        )

    def get_command(self) -> str | None:
        return self.command

    def get_args(self, request: TaskRequest) -> list[str]:
        return ["-p", request.prompt] + self.extra_args

    async def is_available(self) -> bool:
        return await self._runner.probe(self.command, timeout=self.probe_timeout)

    async def execute(self, request: TaskRequest) -> ToolResult:
        return await self._runner.execute(
            request, self.get_command(), self.get_args(request), session_id_for(request, self.name)
        )

    async def stream(self, request: TaskRequest, sink: EventSink) -> None:
        await self._runner.stream(
            request,
            self.get_command(),
            self.get_args(request),
            session_id_for(request, self.name),
            sink,
        )

    async def cancel(self, session_id: str) -> None:
        await self._runner.cancel(session_id)
