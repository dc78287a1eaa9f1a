"""Configuration for the Dispatcher.

Provides centralized configuration with sensible defaults and environment
variable overrides for tool commands, endpoints, timeouts, routing and
telemetry.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

DEFAULT_TIMEOUT_SECONDS = 25.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 3.0


@dataclass
class ToolConfig:
    """Configuration for a single backend tool.

    A tool is reachable when it has either a ``command`` (subprocess
    transport) or an ``endpoint`` (HTTP transport).
    """

    name: str
    enabled: bool = True
    priority: int = 100
    command: str | None = None
    args: list[str] = field(default_factory=list)
    endpoint: str | None = None
    api_key: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    options: dict[str, Any] = field(default_factory=dict)


def _default_tools() -> list[ToolConfig]:
    return [
        ToolConfig(
            name="claude-code",
            priority=1,
            command="claude",
            probe_timeout_seconds=5.0,
            options={
                "permission_mode": "acceptEdits",
                "allowed_tools": "Bash(*) Read(*) Edit(*) Write(*)",
                "debug": False,
                "add_dir": [],
            },
        ),
        ToolConfig(name="opencode", priority=2, command="opencode"),
        ToolConfig(name="cursor", enabled=False, priority=3),
        ToolConfig(name="aider", enabled=False, priority=4, command="aider"),
    ]


@dataclass
class DispatcherConfig:
    """Configuration for request routing and execution.

    All settings have sensible defaults but can be overridden via environment
    variables using the from_env() factory method.
    """

    tools: list[ToolConfig] = field(default_factory=_default_tools)

    # Routing settings
    fallback_tool: str = "claude-code"
    allow_override: bool = True
    default_tool: str = "auto"

    # Execution log directory (None disables logging)
    log_dir: Path | None = field(default_factory=lambda: Path("logs"))

    # Telemetry settings
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
    )
    service_name: str = "dispatcher"

    # Session persistence
    state_dir: Path = field(default_factory=lambda: Path("state"))

    def tool(self, name: str) -> ToolConfig | None:
        """Get tool configuration by name."""
        return next((t for t in self.tools if t.name == name), None)

    def enabled_tools(self) -> list[ToolConfig]:
        return [t for t in self.tools if t.enabled]

    def validate(self) -> list[str]:
        """Check the configuration for inconsistencies.

        Returns:
            List of human-readable problems (empty when valid)
        """
        errors: list[str] = []

        if not self.fallback_tool:
            errors.append("fallback_tool is required")
        elif self.tool(self.fallback_tool) is None:
            errors.append(f'fallback_tool "{self.fallback_tool}" not found in tools')

        seen: set[str] = set()
        for tool in self.tools:
            if not tool.name:
                errors.append("Tool name is required")
                continue
            if tool.name in seen:
                errors.append(f'Tool "{tool.name}" is defined more than once')
            seen.add(tool.name)
            if tool.enabled and not tool.command and not tool.endpoint:
                errors.append(
                    f'Tool "{tool.name}" is enabled but has no command or endpoint'
                )
            if tool.timeout_seconds <= 0:
                errors.append(f'Tool "{tool.name}" timeout must be positive')

        return errors

    @classmethod
    def from_env(cls) -> "DispatcherConfig":
        """Load config with environment variable overrides.

        Environment variables:
            DISPATCHER_TIMEOUT: Execution ceiling in seconds for every tool (default: 25)
            DISPATCHER_FALLBACK_TOOL: Tool used when nothing else fits (default: claude-code)
            DISPATCHER_LOG_DIR: Execution log directory, empty to disable (default: logs)
            DISPATCHER_STATE_DIR: Session persistence directory (default: state)
            CLAUDE_COMMAND: Claude Code executable (default: claude)
            OPENCODE_ENDPOINT: OpenCode HTTP endpoint; switches opencode to HTTP
            OPENCODE_API_KEY: Bearer token for the OpenCode endpoint
            AIDER_COMMAND: Aider executable; also enables aider
            CURSOR_COMMAND: Cursor executable; also enables cursor
            OTLP_ENDPOINT: Override otlp_endpoint (default: http://localhost:4317)
        """
        timeout = float(os.getenv("DISPATCHER_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))

        tools = []
        for tool in _default_tools():
            tool = replace(tool, timeout_seconds=timeout)
            if tool.name == "claude-code":
                tool.command = os.getenv("CLAUDE_COMMAND", tool.command)
            elif tool.name == "opencode":
                tool.endpoint = os.getenv("OPENCODE_ENDPOINT") or None
                tool.api_key = os.getenv("OPENCODE_API_KEY") or None
            elif tool.name == "aider" and os.getenv("AIDER_COMMAND"):
                tool.command = os.getenv("AIDER_COMMAND")
                tool.enabled = True
            elif tool.name == "cursor" and os.getenv("CURSOR_COMMAND"):
                tool.command = os.getenv("CURSOR_COMMAND")
                tool.enabled = True
            tools.append(tool)

        log_dir = os.getenv("DISPATCHER_LOG_DIR", "logs")

        return cls(
            tools=tools,
            fallback_tool=os.getenv("DISPATCHER_FALLBACK_TOOL", "claude-code"),
            log_dir=Path(log_dir) if log_dir else None,
            state_dir=Path(os.getenv("DISPATCHER_STATE_DIR", "state")),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", "http://localhost:4317"),
        )
