"""OpenCode adapter.

Fast code generation and scaffolding. Talks to the OpenCode HTTP API when
an endpoint is configured, otherwise falls back to ``opencode run <prompt>``.
"""

from typing import Any

from dispatcher.adapters.base import EventSink, session_id_for
from dispatcher.adapters.http_runner import ClientFactory, HttpRunner
from dispatcher.adapters.subprocess_runner import Spawn, SubprocessRunner
from dispatcher.config import ToolConfig
from dispatcher.models import TaskRequest, ToolResult


class OpenCodeAdapter:
    """Adapter for OpenCode (HTTP API preferred over CLI)."""

    name = "opencode"

    def __init__(
        self,
        config: ToolConfig | None = None,
        *,
        spawn: Spawn | None = None,
        client_factory: ClientFactory | None = None,
        log_dir: Any = None,
        **_: Any,
    ) -> None:
        config = config or ToolConfig(name=self.name, command="opencode")

        self.endpoint = config.endpoint
        self.command = config.command
        self.extra_args = list(config.args)
        self.probe_timeout = config.probe_timeout_seconds

        self._http = HttpRunner(
            self.name,
            config.endpoint,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
            client_factory=client_factory,
            log_dir=log_dir,
        )
        self._cli = SubprocessRunner(
            self.name, config.timeout_seconds, spawn=spawn, log_dir=log_dir
        )

    @property
    def uses_http(self) -> bool:
        return bool(self.endpoint)

    def get_command(self) -> str | None:
        # The API endpoint wins when both are configured
        return None if self.endpoint else self.command

    def get_args(self, request: TaskRequest) -> list[str]:
        return ["run", request.prompt] + self.extra_args

    async def is_available(self) -> bool:
        if self.uses_http:
            return await self._http.probe(timeout=self.probe_timeout)
        return await self._cli.probe(self.command, timeout=self.probe_timeout)

    async def execute(self, request: TaskRequest) -> ToolResult:
        session_id = session_id_for(request, self.name)
        if self.uses_http:
            return await self._http.execute(request, session_id)
        return await self._cli.execute(
            request, self.get_command(), self.get_args(request), session_id
        )

    async def stream(self, request: TaskRequest, sink: EventSink) -> None:
        session_id = session_id_for(request, self.name)
        if self.uses_http:
            await self._http.stream(request, session_id, sink)
        else:
            await self._cli.stream(
                request, self.get_command(), self.get_args(request), session_id, sink
            )

    async def cancel(self, session_id: str) -> None:
        if self.uses_http:
            await self._http.cancel(session_id)
        else:
            await self._cli.cancel(session_id)
