"""Request orchestration.

Ties the pieces together for one request: analyze the prompt, pick an
available adapter, open a session, execute or stream, and close the session
with the outcome. No retries happen here; a failed execution is reported
and left to the caller.
"""

import inspect
import logging
import time
from dataclasses import dataclass, replace
from typing import Any

from opentelemetry import trace

from dispatcher import telemetry
from dispatcher.adapters.base import EventSink, ToolAdapter
from dispatcher.adapters.factory import ADAPTER_TYPES, get_adapter
from dispatcher.analyzer import analyze
from dispatcher.capabilities import BUILTIN_CAPABILITIES, CapabilityRegistry
from dispatcher.config import DispatcherConfig
from dispatcher.errors import AvailabilityError, ConfigurationError, NotFoundError
from dispatcher.models import (
    StreamEvent,
    TaskAnalysis,
    TaskRequest,
    ToolCapability,
    ToolResult,
)
from dispatcher.sessions import SessionManager

logger = logging.getLogger(__name__)

NO_TERMINAL_EVENT = "Stream ended without a terminal event"


@dataclass
class DispatchOutcome:
    """What happened to one dispatched request."""

    analysis: TaskAnalysis
    tool: str
    session_id: str
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "tool": self.tool,
            "sessionId": self.session_id,
            "result": self.result.to_dict(),
        }


class Dispatcher:
    """Routes requests to tool adapters and tracks them as sessions.

    Adapters are built lazily from configuration and cached per tool, so
    availability probes and cancellation reach the same instance that runs
    the request.

    Args:
        config: Dispatcher configuration (defaults when None)
        sessions: Session registry shared with other callers
        registry: Capability registry (built from config when None)
        adapters: Pre-built adapters by tool name, used instead of the factory
        tracer: OpenTelemetry tracer (global tracer when None)
        **transport: ``spawn`` / ``client_factory`` hooks passed to adapters
    """

    def __init__(
        self,
        config: DispatcherConfig | None = None,
        sessions: SessionManager | None = None,
        registry: CapabilityRegistry | None = None,
        adapters: dict[str, ToolAdapter] | None = None,
        tracer: trace.Tracer | None = None,
        **transport: Any,
    ) -> None:
        self.config = config or DispatcherConfig()
        self.sessions = sessions if sessions is not None else SessionManager()
        self.registry = registry or CapabilityRegistry.from_config(self.config)
        self.tracer = tracer or trace.get_tracer(self.config.service_name)
        self._transport = transport
        self._adapters: dict[str, ToolAdapter] = dict(adapters or {})
        self._running: dict[str, ToolAdapter] = {}

    def explain(self, prompt: str, directory: str | None = None) -> TaskAnalysis:
        """Analyze a prompt without executing anything."""
        return analyze(prompt, directory)

    def adapter(self, name: str) -> ToolAdapter:
        """Get (or build and cache) the adapter for ``name``.

        Raises:
            NotFoundError: If no adapter exists for the tool
        """
        if name not in self._adapters:
            adapter, _ = get_adapter(
                name, self.config, registry=self.registry, **self._transport
            )
            self._adapters[name] = adapter
        return self._adapters[name]

    def capability(self, name: str) -> ToolCapability:
        if name in self.registry:
            return self.registry.get(name)
        if name in BUILTIN_CAPABILITIES:
            return BUILTIN_CAPABILITIES[name]
        return ToolCapability(name=name, strengths=(), complexity="medium")

    def is_known(self, name: str) -> bool:
        return name in self._adapters or name in ADAPTER_TYPES

    def is_enabled(self, name: str) -> bool:
        if name in self._adapters:
            return True
        tool = self.config.tool(name)
        return tool is not None and tool.enabled

    def candidates(self, analysis: TaskAnalysis, tool: str | None = None) -> list[str]:
        """Tool names to try for ``analysis``, in order of preference.

        An explicit tool (when overrides are allowed) is the only candidate.
        Otherwise: configured default tool, the suggested tool, enabled tools
        listing the task type by priority, then the fallback tool.

        Raises:
            NotFoundError: If the explicit tool is unknown
            ConfigurationError: If the explicit tool has no command or endpoint
        """
        if tool and self.config.allow_override:
            if not self.is_known(tool):
                raise NotFoundError(f'Tool "{tool}" not found')
            if tool not in self._adapters:
                tool_config = self.config.tool(tool)
                if tool_config and not tool_config.command and not tool_config.endpoint:
                    raise ConfigurationError(tool)
            return [tool]
        if tool:
            logger.warning(f"Tool override {tool} ignored (overrides disabled)")

        names = []
        if self.config.default_tool and self.config.default_tool != "auto":
            names.append(self.config.default_tool)
        names.append(analysis.suggested_tool)
        names += [c.name for c in self.registry.candidates_for(analysis.task_type)]
        names.append(self.config.fallback_tool)

        candidates: list[str] = []
        for name in names:
            if name in candidates or not self.is_known(name):
                continue
            if name != self.config.fallback_tool and not self.is_enabled(name):
                continue
            candidates.append(name)
        return candidates

    async def select_tool(
        self, analysis: TaskAnalysis, tool: str | None = None
    ) -> tuple[ToolAdapter, ToolCapability]:
        """Pick the first candidate tool whose availability probe succeeds.

        Raises:
            NotFoundError: If an explicit tool is unknown
            ConfigurationError: If an explicit tool has no command or endpoint
            AvailabilityError: If no candidate is available
        """
        candidates = self.candidates(analysis, tool)

        for name in candidates:
            adapter = self.adapter(name)
            if await adapter.is_available():
                if name != analysis.suggested_tool:
                    logger.info(
                        f"Routing to {name} instead of suggested {analysis.suggested_tool}"
                    )
                return adapter, self.capability(name)
            logger.debug(f"{name} is not available, trying next candidate")

        raise AvailabilityError(candidates[0] if candidates else self.config.fallback_tool)

    async def dispatch(self, request: TaskRequest, tool: str | None = None) -> DispatchOutcome:
        """Execute a request to completion and record it as a session.

        Raises:
            NotFoundError: If an explicit tool is unknown
            AvailabilityError: If no suitable tool is available
            SessionStateError: If the request's session id is already in use
        """
        analysis = self.explain(request.prompt, request.context.directory)

        with self.tracer.start_as_current_span("dispatcher.dispatch") as span:
            self._set_analysis_attributes(span, analysis)
            adapter, _ = await self.select_tool(analysis, tool)
            request, session_id = self._open_session(request, adapter.name, analysis)
            span.set_attribute("dispatch.tool", adapter.name)
            span.set_attribute("dispatch.session_id", session_id)

            started = time.monotonic()
            self._running[session_id] = adapter
            try:
                result = await adapter.execute(request)
            except Exception as e:
                self._close_session(session_id, False, "", str(e) or type(e).__name__)
                raise
            finally:
                self._running.pop(session_id, None)

            self._close_session(session_id, result.success, result.output, result.error)
            telemetry.record_request(adapter.name, result.success, time.monotonic() - started)
            span.set_attribute("dispatch.success", result.success)

        return DispatchOutcome(analysis, adapter.name, session_id, result)

    async def dispatch_stream(
        self, request: TaskRequest, sink: EventSink, tool: str | None = None
    ) -> DispatchOutcome:
        """Stream a request, forwarding every event to ``sink``.

        The session is completed from the terminal event. The returned
        outcome carries the accumulated output.
        """
        analysis = self.explain(request.prompt, request.context.directory)

        with self.tracer.start_as_current_span("dispatcher.dispatch_stream") as span:
            self._set_analysis_attributes(span, analysis)
            adapter, _ = await self.select_tool(analysis, tool)
            request, session_id = self._open_session(request, adapter.name, analysis)
            span.set_attribute("dispatch.tool", adapter.name)
            span.set_attribute("dispatch.session_id", session_id)

            chunks: list[str] = []
            terminal: list[StreamEvent] = []

            async def forward(event: StreamEvent) -> None:
                if event.type == "output":
                    chunks.append(event.data.get("content", ""))
                elif event.is_terminal:
                    terminal.append(event)
                delivered = sink(event)
                if inspect.isawaitable(delivered):
                    await delivered

            started = time.monotonic()
            self._running[session_id] = adapter
            try:
                await adapter.stream(request, forward)
            except Exception as e:
                self._close_session(
                    session_id, False, "".join(chunks), str(e) or type(e).__name__
                )
                raise
            finally:
                self._running.pop(session_id, None)

            output = "".join(chunks)
            if not terminal:
                logger.warning(f"{adapter.name} stream for {session_id} did not terminate")
                result = ToolResult(False, output, session_id, error=NO_TERMINAL_EVENT)
            elif terminal[0].type == "error":
                result = ToolResult(
                    False, output, session_id, error=terminal[0].data.get("error")
                )
            else:
                result = ToolResult(
                    True, output, session_id, exit_code=terminal[0].data.get("exitCode")
                )
            result.duration_seconds = time.monotonic() - started

            self._close_session(session_id, result.success, result.output, result.error)
            telemetry.record_request(adapter.name, result.success, result.duration_seconds)
            span.set_attribute("dispatch.success", result.success)

        return DispatchOutcome(analysis, adapter.name, session_id, result)

    async def cancel(self, session_id: str) -> bool:
        """Ask the adapter running ``session_id`` to stop it.

        Returns:
            True if a running execution was signalled, False if the session
            exists but nothing is running for it

        Raises:
            NotFoundError: If the session id is unknown
        """
        adapter = self._running.get(session_id)
        if adapter is None:
            if self.sessions.get(session_id) is None:
                raise NotFoundError(f"Session {session_id} not found")
            return False

        await adapter.cancel(session_id)
        return True

    async def availability(self) -> dict[str, bool]:
        """Probe every configured tool. Disabled tools report False unprobed."""
        status = {}
        for tool in self.config.tools:
            if not tool.enabled or not self.is_known(tool.name):
                status[tool.name] = False
                continue
            status[tool.name] = await self.adapter(tool.name).is_available()
        return status

    def _open_session(
        self, request: TaskRequest, tool: str, analysis: TaskAnalysis
    ) -> tuple[TaskRequest, str]:
        session = self.sessions.create(
            tool,
            request.options.session_id,
            metadata={
                "taskType": analysis.task_type.value,
                "complexity": analysis.complexity,
                "directory": request.context.directory,
            },
        )
        self.sessions.add_message(session.id, "user", request.prompt)
        telemetry.record_session(tool)
        logger.info(f"Dispatching to {tool} (session {session.id})")

        # Adapters pick up the session id from the request
        options = replace(request.options, session_id=session.id)
        return replace(request, options=options), session.id

    def _close_session(
        self, session_id: str, success: bool, output: str, error: str | None
    ) -> None:
        if output:
            self.sessions.add_message(session_id, "assistant", output)
        if not success:
            self.sessions.add_message(session_id, "system", error or "Execution failed")
        self.sessions.complete(session_id, "completed" if success else "failed")

    @staticmethod
    def _set_analysis_attributes(span: trace.Span, analysis: TaskAnalysis) -> None:
        span.set_attribute("task.type", analysis.task_type.value)
        span.set_attribute("task.complexity", analysis.complexity)
        span.set_attribute("task.suggested_tool", analysis.suggested_tool)
        span.set_attribute("task.confidence", analysis.confidence)
