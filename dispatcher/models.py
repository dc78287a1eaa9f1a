"""Data models for the Dispatcher.

Defines dataclasses for task requests, routing analysis, tool capabilities,
execution results, stream events, and sessions. JSON-facing models expose
``to_dict()`` producing the camelCase wire shapes used by API/CLI shells.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Literal


class TaskType(str, Enum):
    """Coarse category of a coding request, used to bias tool selection."""

    CODE_GENERATION = "code_generation"
    REFACTORING = "refactoring"
    DEBUGGING = "debugging"
    REVIEW = "review"
    DOCUMENTATION = "documentation"
    ARCHITECTURE = "architecture"
    QUICK_FIX = "quick_fix"


ComplexityTier = Literal["simple", "medium", "complex"]
MessageRole = Literal["user", "assistant", "system"]
SessionStatus = Literal["active", "completed", "failed"]
EventType = Literal["routing", "output", "error", "complete"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FileContext:
    """A file sent along with a request to HTTP-backed tools."""

    path: str
    content: str
    language: str | None = None


@dataclass(frozen=True)
class ExecutionContext:
    """Where and how a task should be executed.

    Attributes:
        directory: Project directory the tool works in
        env: Environment variable overrides for the execution
        include: Glob patterns of files the task is about
        exclude: Glob patterns of files to leave out
        files: Explicit file contents (takes precedence over include globs)
    """

    directory: str
    env: dict[str, str] | None = None
    include: tuple[str, ...] | None = None
    exclude: tuple[str, ...] | None = None
    files: tuple[FileContext, ...] | None = None


@dataclass(frozen=True)
class RequestOptions:
    stream: bool = False
    session_id: str | None = None


@dataclass(frozen=True)
class TaskRequest:
    """A coding task submitted for dispatch. Immutable once constructed."""

    prompt: str
    context: ExecutionContext
    options: RequestOptions = field(default_factory=RequestOptions)

    @classmethod
    def create(
        cls,
        prompt: str,
        directory: str | Path = ".",
        *,
        env: dict[str, str] | None = None,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        stream: bool = False,
        session_id: str | None = None,
    ) -> "TaskRequest":
        """Build a request from loose arguments as received by CLI/API shells."""
        return cls(
            prompt=prompt,
            context=ExecutionContext(
                directory=str(directory),
                env=dict(env) if env else None,
                include=tuple(include) if include else None,
                exclude=tuple(exclude) if exclude else None,
            ),
            options=RequestOptions(stream=stream, session_id=session_id),
        )


@dataclass(frozen=True)
class TaskAnalysis:
    """Routing analysis of a request. Produced fresh per request."""

    task_type: TaskType
    complexity: int
    suggested_tool: str
    confidence: float
    reasoning: str
    affected_files: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 1 <= self.complexity <= 10:
            raise ValueError(f"complexity must be in [1, 10], got {self.complexity}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskType": self.task_type.value,
            "complexity": self.complexity,
            "suggestedTool": self.suggested_tool,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class ToolCapability:
    """Static declaration of what a backend tool is good at.

    Attributes:
        name: Tool identifier
        strengths: Task types the tool handles well, most important first
        complexity: Complexity tier the tool is suited for
        requires_git: Tool needs a version-controlled working directory
        requires_runtime: Tool needs a language runtime installed
        priority: Lower is preferred when several tools fit
    """

    name: str
    strengths: tuple[TaskType, ...]
    complexity: ComplexityTier
    requires_git: bool = False
    requires_runtime: bool = False
    priority: int = 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "strengths": [s.value for s in self.strengths],
            "complexity": self.complexity,
            "requiresGit": self.requires_git,
            "requiresRuntime": self.requires_runtime,
            "priority": self.priority,
        }


@dataclass
class ToolResult:
    """Terminal result of a non-streaming execution."""

    success: bool
    output: str
    session_id: str
    error: str | None = None
    exit_code: int | None = None
    duration_seconds: float = 0.0

    @classmethod
    def failure(cls, session_id: str, error: str, **kwargs: Any) -> "ToolResult":
        return cls(success=False, output="", session_id=session_id, error=error, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "output": self.output,
            "sessionId": self.session_id,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class StreamEvent:
    """One event of a streaming execution.

    Shape of ``data`` by type:
        routing: {"tool", "sessionId"}
        output: {"content"}
        error: {"error"}
        complete: {"status", "exitCode"?}
    """

    type: EventType
    data: dict[str, Any]

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    @classmethod
    def routing(cls, tool: str, session_id: str) -> "StreamEvent":
        return cls("routing", {"tool": tool, "sessionId": session_id})

    @classmethod
    def output(cls, content: str) -> "StreamEvent":
        return cls("output", {"content": content})

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls("error", {"error": message})

    @classmethod
    def complete(cls, status: str = "success", exit_code: int | None = None) -> "StreamEvent":
        data: dict[str, Any] = {"status": status}
        if exit_code is not None:
            data["exitCode"] = exit_code
        return cls("complete", data)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": dict(self.data)}


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Session:
    """Tracked record of one end-to-end tool invocation.

    Status transitions are monotonic: active -> completed | failed.
    """

    id: str
    tool: str
    messages: list[Message] = field(default_factory=list)
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    status: SessionStatus = "active"
    metadata: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "active"

    def copy(self) -> "Session":
        """Snapshot copy safe to hand out of the session registry."""
        return Session(
            id=self.id,
            tool=self.tool,
            messages=list(self.messages),
            start_time=self.start_time,
            end_time=self.end_time,
            status=self.status,
            metadata=dict(self.metadata) if self.metadata is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "tool": self.tool,
            "messages": [m.to_dict() for m in self.messages],
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            tool=data["tool"],
            messages=[
                Message(
                    role=m["role"],
                    content=m["content"],
                    timestamp=datetime.fromisoformat(m["timestamp"]),
                )
                for m in data.get("messages", [])
            ],
            start_time=datetime.fromisoformat(data["startTime"]),
            end_time=(
                datetime.fromisoformat(data["endTime"]) if data.get("endTime") else None
            ),
            status=data["status"],
            metadata=data.get("metadata"),
        )


def new_session_id(tool: str) -> str:
    """Generate a unique session id: tool name, monotonic timestamp, random suffix."""
    return f"{tool}-{time.monotonic_ns()}-{uuid.uuid4().hex[:8]}"
