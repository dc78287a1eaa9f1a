"""Subprocess transport for CLI-backed tools.

Runs a tool executable to completion (``execute``) or streams its stdout
(``stream``) under a hard wall-clock ceiling. Stalled processes are killed
and reaped. All failures are converted into failed results or ``error``
events.
"""

import asyncio
import codecs
import logging
import os
import shlex
import time
from typing import Any, Awaitable, Callable

from dispatcher.adapters.base import EventSink, StreamEmitter
from dispatcher.adapters.execution_log import write_execution_log
from dispatcher.config import DEFAULT_PROBE_TIMEOUT_SECONDS, DEFAULT_TIMEOUT_SECONDS
from dispatcher.errors import ConfigurationError, ExecutionTimeoutError
from dispatcher.models import TaskRequest, ToolResult

logger = logging.getLogger(__name__)

Spawn = Callable[..., Awaitable[asyncio.subprocess.Process]]

CHUNK_SIZE = 4096
CANCELLED = "cancelled"


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill a process if still running and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class SubprocessRunner:
    """Executes one tool's command line with bounded time.

    Attributes:
        tool: Tool name used in messages and log paths
        timeout_seconds: Wall-clock ceiling per execution
        log_dir: Execution log directory (None disables)
    """

    def __init__(
        self,
        tool: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        spawn: Spawn | None = None,
        log_dir: Any = None,
    ) -> None:
        self.tool = tool
        self.timeout_seconds = timeout_seconds
        self.log_dir = log_dir
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._cancelled: set[str] = set()

    async def probe(
        self,
        command: str | None,
        args: tuple[str, ...] = ("--version",),
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
    ) -> bool:
        """Check that ``command`` runs and exits 0 within ``timeout`` seconds."""
        if not command:
            return False

        try:
            process = await self._spawn(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError:
            return False

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.tool} probe timed out after {timeout:g}s")
            await _terminate(process)
            return False

        return returncode == 0

    async def execute(
        self,
        request: TaskRequest,
        command: str | None,
        args: list[str],
        session_id: str,
    ) -> ToolResult:
        """Run the command to completion.

        Exit code 0 is success with stdout as output; anything else is a
        failure carrying stderr. Never raises.
        """
        started = time.monotonic()

        if not command:
            result = ToolResult.failure(session_id, str(ConfigurationError(self.tool)))
        else:
            try:
                result = await self._run(request, command, args, session_id)
            except Exception as e:
                logger.exception(f"{self.tool} execution raised")
                result = ToolResult.failure(session_id, str(e) or type(e).__name__)
            finally:
                self._processes.pop(session_id, None)
                self._cancelled.discard(session_id)

        result.duration_seconds = time.monotonic() - started
        write_execution_log(
            self.log_dir, self.tool, session_id, request.prompt, result.output, result.error
        )
        return result

    async def stream(
        self,
        request: TaskRequest,
        command: str | None,
        args: list[str],
        session_id: str,
        sink: EventSink,
    ) -> None:
        """Run the command, forwarding stdout chunks as ``output`` events."""
        emitter = StreamEmitter(sink)
        await emitter.routing(self.tool, session_id)

        if not command:
            await emitter.error(str(ConfigurationError(self.tool)))
            return

        try:
            await asyncio.wait_for(
                self._stream(request, command, args, session_id, emitter),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            if session_id in self._cancelled:
                await emitter.error(CANCELLED)
            else:
                await emitter.error(
                    str(ExecutionTimeoutError(self.tool, self.timeout_seconds))
                )
        except Exception as e:
            logger.exception(f"{self.tool} stream raised")
            await emitter.error(str(e) or type(e).__name__)
        finally:
            self._processes.pop(session_id, None)
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
        """Kill the process running for ``session_id``, if any."""
        process = self._processes.get(session_id)
        if process is None or process.returncode is not None:
            return

        self._cancelled.add(session_id)
        try:
            process.kill()
        except ProcessLookupError:
            pass
        logger.info(f"Cancelled {self.tool} session {session_id}")

    async def _start(
        self, request: TaskRequest, command: str, args: list[str]
    ) -> asyncio.subprocess.Process:
        directory = request.context.directory
        cwd = directory if directory and os.path.isdir(directory) else None
        env = {**os.environ, **request.context.env} if request.context.env else None

        logger.debug(f"[{self.tool}] {shlex.join([command, *args])}")

        return await self._spawn(
            command,
            *args,
            cwd=cwd,
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _run(
        self, request: TaskRequest, command: str, args: list[str], session_id: str
    ) -> ToolResult:
        try:
            process = await self._start(request, command, args)
        except OSError as e:
            return ToolResult.failure(session_id, f"Failed to start {command}: {e}")

        self._processes[session_id] = process

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            await _terminate(process)
            if session_id in self._cancelled:
                return ToolResult.failure(session_id, CANCELLED)
            return ToolResult.failure(
                session_id, str(ExecutionTimeoutError(self.tool, self.timeout_seconds))
            )

        if session_id in self._cancelled:
            return ToolResult.failure(session_id, CANCELLED, exit_code=process.returncode)

        output = stdout.decode("utf-8", errors="replace").strip()
        if process.returncode == 0:
            return ToolResult(
                success=True, output=output, session_id=session_id, exit_code=0
            )

        error = stderr.decode("utf-8", errors="replace").strip()
        return ToolResult(
            success=False,
            output=output,
            session_id=session_id,
            error=error or f"{self.tool} exited with code {process.returncode}",
            exit_code=process.returncode,
        )

    async def _stream(
        self,
        request: TaskRequest,
        command: str,
        args: list[str],
        session_id: str,
        emitter: StreamEmitter,
    ) -> None:
        try:
            process = await self._start(request, command, args)
        except OSError as e:
            await emitter.error(f"Failed to start {command}: {e}")
            return

        self._processes[session_id] = process
        if process.stdout is None or process.stderr is None:
            await _terminate(process)
            await emitter.error("No output stream available")
            return

        stderr_task = asyncio.create_task(process.stderr.read())
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        try:
            while True:
                chunk = await process.stdout.read(CHUNK_SIZE)
                if not chunk or session_id in self._cancelled:
                    break
                await emitter.output(decoder.decode(chunk))

            if session_id not in self._cancelled:
                await emitter.output(decoder.decode(b"", final=True))
            returncode = await process.wait()
            stderr = await stderr_task
        finally:
            # Reached on timeout cancellation as well
            if not stderr_task.done():
                stderr_task.cancel()
            await _terminate(process)

        if session_id in self._cancelled:
            await emitter.error(CANCELLED)
        elif returncode == 0:
            await emitter.complete("success", exit_code=0)
        else:
            error = stderr.decode("utf-8", errors="replace").strip()
            await emitter.error(error or f"{self.tool} exited with code {returncode}")
