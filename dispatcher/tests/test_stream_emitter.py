"""Tests for stream event ordering."""

import pytest

from dispatcher.adapters.base import StreamEmitter
from dispatcher.models import StreamEvent


class TestStreamEmitter:
    @pytest.mark.asyncio
    async def test_routing_must_come_first(self):
        emitter = StreamEmitter(lambda e: None)

        with pytest.raises(RuntimeError):
            await emitter.output("too early")

    @pytest.mark.asyncio
    async def test_nothing_after_terminal_event(self):
        events: list[StreamEvent] = []
        emitter = StreamEmitter(events.append)

        await emitter.routing("aider", "s1")
        await emitter.output("a")
        await emitter.complete()
        await emitter.output("late")
        await emitter.error("late")

        assert [e.type for e in events] == ["routing", "output", "complete"]
        assert emitter.closed

    @pytest.mark.asyncio
    async def test_routing_sent_once_and_empty_output_skipped(self):
        events: list[StreamEvent] = []
        emitter = StreamEmitter(events.append)

        await emitter.routing("aider", "s1")
        await emitter.routing("aider", "s1")
        await emitter.output("")
        await emitter.error("boom")

        assert [e.type for e in events] == ["routing", "error"]
        assert emitter.error_message == "boom"

    @pytest.mark.asyncio
    async def test_accumulates_output(self):
        emitter = StreamEmitter(lambda e: None)

        await emitter.routing("aider", "s1")
        await emitter.output("ab")
        await emitter.output("cd")

        assert emitter.output_text == "abcd"
