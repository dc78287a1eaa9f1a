"""HTTP transport for service-backed tools.

Posts requests as JSON to a tool endpoint and, for streaming, decodes a
line-delimited ``data: {...}`` body into ``output`` events. Network
errors, non-2xx responses and exceeded time budgets are converted into
failed results or ``error`` events.
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable

import httpx

from dispatcher.adapters.base import EventSink, StreamEmitter
from dispatcher.adapters.execution_log import write_execution_log
from dispatcher.adapters.files import collect_files
from dispatcher.config import DEFAULT_PROBE_TIMEOUT_SECONDS, DEFAULT_TIMEOUT_SECONDS
from dispatcher.errors import ConfigurationError, ExecutionTimeoutError
from dispatcher.models import TaskRequest, ToolResult

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., httpx.AsyncClient]

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"
CANCELLED = "cancelled"


def decode_stream_line(line: str) -> str | None:
    """Extract text content from one ``data:`` line of a streaming body.

    Returns:
        The ``content`` (or fallback ``text``) field, or None for lines that
        carry no text (blank, non-data, undecodable, or the done marker)
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].strip()
    if not payload or payload == DONE_MARKER:
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Skipping undecodable stream line: {payload[:80]}")
        return None

    if not isinstance(data, dict):
        return None

    content = data.get("content")
    if content is None:
        content = data.get("text")
    return str(content) if content else None


def is_done_line(line: str) -> bool:
    line = line.strip()
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_MARKER


def _http_error_message(error: httpx.HTTPError) -> str:
    return str(error) or type(error).__name__


class HttpRunner:
    """Talks to one tool's HTTP endpoint.

    Endpoints used:
        POST {endpoint}/v1/generate          - blocking generation
        POST {endpoint}/v1/generate/stream   - streaming generation
        GET  {endpoint}/health               - availability probe
    """

    def __init__(
        self,
        tool: str,
        endpoint: str | None,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client_factory: ClientFactory | None = None,
        log_dir: Any = None,
    ) -> None:
        self.tool = tool
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.log_dir = log_dir
        self._client_factory = client_factory or httpx.AsyncClient
        self._responses: dict[str, httpx.Response] = {}
        self._cancelled: set[str] = set()

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, request: TaskRequest) -> dict[str, Any]:
        """Serialize a request into the tool's JSON body."""
        files = collect_files(request.context)
        return {
            "prompt": request.prompt,
            "files": [
                {"path": f.path, "content": f.content, "language": f.language}
                for f in files
            ],
            "cwd": request.context.directory,
        }

    async def probe(self, timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS) -> bool:
        """GET the health endpoint; True on any 2xx within ``timeout``."""
        if not self.endpoint:
            return False

        try:
            async with self._client_factory(timeout=timeout) as client:
                response = await asyncio.wait_for(
                    client.get(f"{self.endpoint}/health", headers=self.headers()),
                    timeout=timeout,
                )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.debug(f"{self.tool} health check failed: {e!r}")
            return False

        return response.is_success

    async def execute(self, request: TaskRequest, session_id: str) -> ToolResult:
        """POST the request and return the ``output`` field. Never raises."""
        started = time.monotonic()

        if not self.endpoint:
            result = ToolResult.failure(session_id, str(ConfigurationError(self.tool)))
        else:
            try:
                result = await asyncio.wait_for(
                    self._post(request, session_id), timeout=self.timeout_seconds
                )
            except asyncio.TimeoutError:
                result = ToolResult.failure(
                    session_id,
                    str(ExecutionTimeoutError(self.tool, self.timeout_seconds)),
                )
            except Exception as e:
                logger.exception(f"{self.tool} request raised")
                result = ToolResult.failure(session_id, str(e) or type(e).__name__)

        result.duration_seconds = time.monotonic() - started
        write_execution_log(
            self.log_dir, self.tool, session_id, request.prompt, result.output, result.error
        )
        return result

    async def stream(self, request: TaskRequest, session_id: str, sink: EventSink) -> None:
        """POST the request and forward the streamed body as events."""
        emitter = StreamEmitter(sink)
        await emitter.routing(self.tool, session_id)

        if not self.endpoint:
            await emitter.error(str(ConfigurationError(self.tool)))
            return

        try:
            await asyncio.wait_for(
                self._stream(request, session_id, emitter), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            if session_id in self._cancelled:
                await emitter.error(CANCELLED)
            else:
                await emitter.error(
                    str(ExecutionTimeoutError(self.tool, self.timeout_seconds))
                )
        except Exception as e:
            if session_id in self._cancelled:
                await emitter.error(CANCELLED)
            else:
                logger.warning(f"{self.tool} stream failed: {e!r}")
                await emitter.error(str(e) or type(e).__name__)
        finally:
            self._responses.pop(session_id, None)
            self._cancelled.discard(session_id)
            write_execution_log(
                self.log_dir,
                self.tool,
                session_id,
                request.prompt,
                emitter.output_text,
                emitter.error_message,
            )

    async def cancel(self, session_id: str) -> None:
        """Close the in-flight streaming response for ``session_id``, if any."""
        response = self._responses.get(session_id)
        if response is None:
            return

        self._cancelled.add(session_id)
        try:
            await response.aclose()
        except Exception as e:
            logger.debug(f"Error closing {self.tool} stream: {e!r}")
        logger.info(f"Cancelled {self.tool} session {session_id}")

    async def _post(self, request: TaskRequest, session_id: str) -> ToolResult:
        try:
            async with self._client_factory(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    f"{self.endpoint}/v1/generate",
                    json=self.build_payload(request),
                    headers=self.headers(),
                )
        except httpx.TimeoutException:
            return ToolResult.failure(
                session_id, str(ExecutionTimeoutError(self.tool, self.timeout_seconds))
            )
        except httpx.HTTPError as e:
            return ToolResult.failure(session_id, _http_error_message(e))

        if not response.is_success:
            return ToolResult.failure(
                session_id, f"API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError:
            return ToolResult.failure(session_id, "Invalid JSON in API response")

        output = data.get("output", "") if isinstance(data, dict) else ""
        return ToolResult(success=True, output=str(output or ""), session_id=session_id)

    async def _stream(
        self, request: TaskRequest, session_id: str, emitter: StreamEmitter
    ) -> None:
        async with self._client_factory(timeout=self.timeout_seconds) as client:
            async with client.stream(
                "POST",
                f"{self.endpoint}/v1/generate/stream",
                json=self.build_payload(request),
                headers=self.headers(),
            ) as response:
                if not response.is_success:
                    await emitter.error(
                        f"API error: {response.status_code} {response.reason_phrase}"
                    )
                    return

                self._responses[session_id] = response

                async for line in response.aiter_lines():
                    if session_id in self._cancelled or is_done_line(line):
                        break
                    content = decode_stream_line(line)
                    if content is not None:
                        await emitter.output(content)

        if session_id in self._cancelled:
            await emitter.error(CANCELLED)
        else:
            await emitter.complete("success")
