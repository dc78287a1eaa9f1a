"""Claude Code adapter.

Runs the ``claude`` CLI in print mode for complex reasoning and multi-file
changes:

    claude -p "prompt" --permission-mode acceptEdits \
        --allowed-tools "Bash(*) Read(*) Edit(*) Write(*)" --add-dir <project>
"""

from typing import Any

from dispatcher.adapters.base import EventSink, session_id_for
from dispatcher.adapters.subprocess_runner import Spawn, SubprocessRunner
from dispatcher.config import ToolConfig
from dispatcher.models import TaskRequest, ToolResult

DEFAULT_PERMISSION_MODE = "acceptEdits"
DEFAULT_ALLOWED_TOOLS = "Bash(*) Read(*) Edit(*) Write(*)"
PERMISSION_MODES = (
    "acceptEdits",
    "bypassPermissions",
    "default",
    "delegate",
    "dontAsk",
    "plan",
)


class ClaudeCodeAdapter:
    """Adapter for the Claude Code CLI.

    Tool options (``ToolConfig.options``):
        permission_mode: One of PERMISSION_MODES (default: acceptEdits)
        allowed_tools: Space-separated tool allow-list
        debug: Pass --debug
        add_dir: Extra directories the tool may access
    """

    name = "claude-code"

    def __init__(
        self,
        config: ToolConfig | None = None,
        *,
        spawn: Spawn | None = None,
        log_dir: Any = None,
        **_: Any,
    ) -> None:
        config = config or ToolConfig(
            name=self.name, command="claude", probe_timeout_seconds=5.0
        )
        options = config.options

        self.command = config.command
        self.extra_args = list(config.args)
        self.probe_timeout = config.probe_timeout_seconds
        self.permission_mode = options.get("permission_mode", DEFAULT_PERMISSION_MODE)
        self.allowed_tools = options.get("allowed_tools", DEFAULT_ALLOWED_TOOLS)
        self.debug = bool(options.get("debug", False))
        self.add_dir = list(options.get("add_dir", []))

        if self.permission_mode not in PERMISSION_MODES:
            raise ValueError(f"Unknown permission mode: {self.permission_mode}")

        self._runner = SubprocessRunner(
            self.name, config.timeout_seconds, spawn=spawn, log_dir=log_dir
        )

    def get_command(self) -> str | None:
        return self.command

    def get_args(self, request: TaskRequest) -> list[str]:
        args = ["-p", request.prompt]
        args += ["--permission-mode", self.permission_mode]
        args += ["--allowed-tools", self.allowed_tools]

        if self.debug:
            args.append("--debug")

        # Grant access to the target project plus any configured extras
        args += ["--add-dir", request.context.directory]
        for directory in self.add_dir:
            args += ["--add-dir", directory]

        return args + self.extra_args

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
