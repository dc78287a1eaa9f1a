"""Adapter construction.

Maps tool names to adapter classes and pairs each adapter with its
registered capability.
"""

import logging
from typing import Any

from dispatcher.adapters.aider import AiderAdapter
from dispatcher.adapters.base import ToolAdapter
from dispatcher.adapters.claude_code import ClaudeCodeAdapter
from dispatcher.adapters.cursor import CursorAdapter
from dispatcher.adapters.opencode import OpenCodeAdapter
from dispatcher.capabilities import BUILTIN_CAPABILITIES, CapabilityRegistry
from dispatcher.config import DispatcherConfig
from dispatcher.errors import NotFoundError
from dispatcher.models import ToolCapability

logger = logging.getLogger(__name__)

ADAPTER_TYPES: dict[str, type] = {
    "claude-code": ClaudeCodeAdapter,
    "opencode": OpenCodeAdapter,
    "aider": AiderAdapter,
    "cursor": CursorAdapter,
}


def get_adapter(
    name: str,
    config: DispatcherConfig | None = None,
    *,
    registry: CapabilityRegistry | None = None,
    **transport: Any,
) -> tuple[ToolAdapter, ToolCapability]:
    """Build the adapter for ``name`` together with its capability.

    Args:
        name: Tool name
        config: Dispatcher configuration (defaults when None)
        registry: Capability registry (built from config when None)
        **transport: Injected ``spawn`` / ``client_factory`` hooks

    Returns:
        Tuple of (adapter, capability)

    Raises:
        NotFoundError: If the tool name is unknown
    """
    adapter_type = ADAPTER_TYPES.get(name)
    if adapter_type is None:
        raise NotFoundError(f'Tool "{name}" not found')

    config = config or DispatcherConfig()
    if registry is not None and name in registry:
        capability = registry.get(name)
    else:
        capability = BUILTIN_CAPABILITIES[name]

    adapter = adapter_type(config.tool(name), log_dir=config.log_dir, **transport)
    return adapter, capability


def get_all_adapters(
    config: DispatcherConfig | None = None,
    *,
    registry: CapabilityRegistry | None = None,
    **transport: Any,
) -> dict[str, tuple[ToolAdapter, ToolCapability]]:
    """Build adapters for every enabled tool that has an adapter type."""
    config = config or DispatcherConfig()
    registry = registry or CapabilityRegistry.from_config(config)

    adapters = {}
    for tool in config.enabled_tools():
        if tool.name not in ADAPTER_TYPES:
            logger.warning(f"No adapter for configured tool {tool.name}, skipping")
            continue
        adapters[tool.name] = get_adapter(
            tool.name, config, registry=registry, **transport
        )
    return adapters
