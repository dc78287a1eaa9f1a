"""Tests for dispatcher data models."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from dispatcher.models import (
    Session,
    StreamEvent,
    TaskAnalysis,
    TaskRequest,
    TaskType,
    ToolResult,
    new_session_id,
)


class TestTaskRequest:
    def test_create_builds_context_and_options(self):
        request = TaskRequest.create(
            "add tests",
            "/srv/app",
            include=["*.py"],
            env={"DEBUG": "1"},
            stream=True,
        )

        assert request.context.directory == "/srv/app"
        assert request.context.include == ("*.py",)
        assert request.context.env == {"DEBUG": "1"}
        assert request.options.stream is True
        assert request.options.session_id is None

    def test_request_is_immutable(self):
        request = TaskRequest.create("add tests")

        with pytest.raises(FrozenInstanceError):
            request.prompt = "something else"  # type: ignore[misc]


class TestTaskAnalysis:
    def test_rejects_out_of_range_complexity(self):
        with pytest.raises(ValueError, match="complexity"):
            TaskAnalysis(TaskType.REVIEW, 11, "claude-code", 0.9, "")

    def test_rejects_out_of_range_confidence(self):
        with pytest.raises(ValueError, match="confidence"):
            TaskAnalysis(TaskType.REVIEW, 5, "claude-code", 1.5, "")

    def test_to_dict_uses_wire_names(self):
        analysis = TaskAnalysis(TaskType.QUICK_FIX, 2, "opencode", 0.85, "fast")

        assert analysis.to_dict() == {
            "taskType": "quick_fix",
            "complexity": 2,
            "suggestedTool": "opencode",
            "confidence": 0.85,
            "reasoning": "fast",
        }


class TestStreamEvent:
    def test_complete_omits_missing_exit_code(self):
        assert StreamEvent.complete().data == {"status": "success"}
        assert StreamEvent.complete("success", 0).data == {
            "status": "success",
            "exitCode": 0,
        }

    def test_terminal_types(self):
        assert StreamEvent.error("boom").is_terminal
        assert StreamEvent.complete().is_terminal
        assert not StreamEvent.output("x").is_terminal
        assert not StreamEvent.routing("opencode", "s1").is_terminal

    def test_routing_payload(self):
        event = StreamEvent.routing("opencode", "s1")

        assert event.to_dict() == {
            "type": "routing",
            "data": {"tool": "opencode", "sessionId": "s1"},
        }


class TestToolResult:
    def test_failure_helper(self):
        result = ToolResult.failure("s1", "boom", exit_code=2)

        assert result.success is False
        assert result.output == ""
        assert result.exit_code == 2

    def test_to_dict_omits_error_on_success(self):
        result = ToolResult(success=True, output="done", session_id="s1")

        assert result.to_dict() == {"success": True, "output": "done", "sessionId": "s1"}


class TestSession:
    def test_copy_does_not_share_messages(self):
        session = Session(id="s1", tool="aider")
        snapshot = session.copy()
        snapshot.messages.append(None)  # type: ignore[arg-type]

        assert session.messages == []

    def test_from_dict_restores_saved_session(self):
        started = datetime(2025, 1, 15, 14, 23, tzinfo=timezone.utc)
        session = Session(
            id="s1",
            tool="aider",
            start_time=started,
            end_time=started,
            status="failed",
            metadata={"taskType": "refactoring"},
        )

        restored = Session.from_dict(session.to_dict())

        assert restored == session


class TestSessionIds:
    def test_ids_are_unique_and_prefixed(self):
        ids = {new_session_id("opencode") for _ in range(100)}

        assert len(ids) == 100
        assert all(i.startswith("opencode-") for i in ids)
