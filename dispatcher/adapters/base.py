"""Tool adapter contract shared by every backend.

Adapters are not related by inheritance. Each one satisfies the
``ToolAdapter`` protocol on its own and composes a transport runner
(subprocess or HTTP) for the heavy lifting.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from dispatcher.models import StreamEvent, TaskRequest, ToolResult, new_session_id

logger = logging.getLogger(__name__)

EventSink = Callable[[StreamEvent], Awaitable[Any] | Any]


@runtime_checkable
class ToolAdapter(Protocol):
    """Uniform execution wrapper around one backend tool."""

    name: str

    async def is_available(self) -> bool:
        """Bounded-time probe; never blocks indefinitely."""
        ...

    async def execute(self, request: TaskRequest) -> ToolResult:
        """Run to completion. Failures come back as ``success=False``."""
        ...

    async def stream(self, request: TaskRequest, sink: EventSink) -> None:
        """Emit routing, zero or more output, then exactly one terminal event."""
        ...

    async def cancel(self, session_id: str) -> None:
        """Advisory cancellation; no-op when unsupported."""
        ...


def session_id_for(request: TaskRequest, tool: str) -> str:
    """Use the pre-assigned session id or generate one for ``tool``."""
    return request.options.session_id or new_session_id(tool)


class StreamEmitter:
    """Delivers stream events to a sink in order.

    Enforces the event grammar: one routing event first, output events
    after it, and a single terminal event. Anything emitted after the
    terminal event is dropped. Also accumulates output and error text so
    the stream can be written to the execution log.
    """

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink
        self._routed = False
        self._closed = False
        self.chunks: list[str] = []
        self.error_message: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def output_text(self) -> str:
        return "".join(self.chunks)

    async def routing(self, tool: str, session_id: str) -> None:
        if self._routed:
            return
        self._routed = True
        await self._deliver(StreamEvent.routing(tool, session_id))

    async def output(self, content: str) -> None:
        if self._closed or not content:
            return
        self.chunks.append(content)
        await self._deliver(StreamEvent.output(content))

    async def error(self, message: str) -> None:
        if self._closed:
            return
        self._closed = True
        self.error_message = message
        await self._deliver(StreamEvent.error(message))

    async def complete(self, status: str = "success", exit_code: int | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        await self._deliver(StreamEvent.complete(status, exit_code))

    async def _deliver(self, event: StreamEvent) -> None:
        if not self._routed:
            # Routing always precedes everything else
            raise RuntimeError(f"{event.type} event emitted before routing")
        result = self._sink(event)
        if inspect.isawaitable(result):
            await result
