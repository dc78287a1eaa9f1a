"""Capability registry for backend tools.

Holds the static declaration of each pluggable tool (task-type strengths,
complexity tier, priority, environment requirements). The registry is built
once at startup from configuration and is read-only afterwards.
"""

from dataclasses import replace
from types import MappingProxyType

from dispatcher.config import DispatcherConfig
from dispatcher.errors import NotFoundError
from dispatcher.models import TaskType, ToolCapability

REASONING_TOOL = "claude-code"
GENERATION_TOOL = "opencode"

# Built-in declarations; priority is overridden from ToolConfig at load time
BUILTIN_CAPABILITIES: dict[str, ToolCapability] = {
    "claude-code": ToolCapability(
        name="claude-code",
        strengths=(
            TaskType.ARCHITECTURE,
            TaskType.REFACTORING,
            TaskType.DEBUGGING,
            TaskType.REVIEW,
        ),
        complexity="complex",
        priority=1,
    ),
    "opencode": ToolCapability(
        name="opencode",
        strengths=(TaskType.CODE_GENERATION, TaskType.QUICK_FIX),
        complexity="simple",
        priority=2,
    ),
    "cursor": ToolCapability(
        name="cursor",
        strengths=(TaskType.QUICK_FIX,),
        complexity="simple",
        priority=3,
    ),
    "aider": ToolCapability(
        name="aider",
        strengths=(TaskType.REFACTORING,),
        complexity="medium",
        requires_git=True,
        requires_runtime=True,
        priority=4,
    ),
}


class CapabilityRegistry:
    """Read-only mapping of tool name to ToolCapability.

    Usage:
        registry = CapabilityRegistry.from_config(config)
        registry.get("claude-code").strengths
    """

    def __init__(self, capabilities: list[ToolCapability]) -> None:
        self._capabilities = MappingProxyType({c.name: c for c in capabilities})

    @classmethod
    def from_config(cls, config: DispatcherConfig) -> "CapabilityRegistry":
        """Build the registry for every configured tool.

        Tools without a built-in declaration get an empty strength set and a
        medium tier, so they are only chosen explicitly or as fallback.
        """
        capabilities = []
        for tool in config.tools:
            builtin = BUILTIN_CAPABILITIES.get(tool.name)
            if builtin is None:
                builtin = ToolCapability(name=tool.name, strengths=(), complexity="medium")
            capabilities.append(replace(builtin, priority=tool.priority))
        return cls(capabilities)

    def get(self, name: str) -> ToolCapability:
        """Get a capability by tool name.

        Raises:
            NotFoundError: If no tool with that name is registered
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise NotFoundError(f'Tool "{name}" not found') from None

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def names(self) -> list[str]:
        return list(self._capabilities)

    def all(self) -> list[ToolCapability]:
        """All capabilities, preferred tools first."""
        return sorted(self._capabilities.values(), key=lambda c: c.priority)

    def candidates_for(self, task_type: TaskType) -> list[ToolCapability]:
        """Tools listing ``task_type`` among their strengths, by priority."""
        return [c for c in self.all() if task_type in c.strengths]
