"""Tests for the newline-delimited JSON event stream."""

import json
from typing import (
    AsyncGenerator,
    List,
)

import pytest
from pydantic import BaseModel

from agentwire.api.streaming import ndjson_stream
from agentwire.core.schema import (
    DoneEvent,
    ErrorEvent,
    TextEvent,
    ToolFinishedEvent,
    ToolStartedEvent,
    encode_event,
)


async def _events(
    items: List[BaseModel], closed: List[bool]
) -> AsyncGenerator[BaseModel, None]:
    try:
        for item in items:
            yield item
    finally:
        closed.append(True)


def test_encode_event_is_one_compact_line() -> None:
    """Each event is a single JSON line; absent optional fields are omitted."""
    line = encode_event(ToolFinishedEvent(id="t1", tool="fetch_url"))

    assert line.endswith("\n") and line.count("\n") == 1
    assert json.loads(line) == {"type": "tool_result", "id": "t1", "tool": "fetch_url"}


def test_encode_event_shapes() -> None:
    """Wire shapes of every event type."""
    assert json.loads(encode_event(TextEvent(text="hi"))) == {"type": "text", "text": "hi"}
    assert json.loads(encode_event(ToolStartedEvent(id="a", tool="run_code", input={"x": 1}))) == {
        "type": "tool_call",
        "id": "a",
        "tool": "run_code",
        "input": {"x": 1},
    }
    assert json.loads(encode_event(DoneEvent())) == {"type": "done"}
    assert json.loads(encode_event(ErrorEvent(message="bad"))) == {
        "type": "error",
        "message": "bad",
    }


@pytest.mark.asyncio
async def test_stream_writes_every_event() -> None:
    """All events are written in order and the source is closed at the end."""
    closed: List[bool] = []
    source = _events([TextEvent(text="a"), TextEvent(text="b"), DoneEvent()], closed)

    lines = [line async for line in ndjson_stream(source)]

    assert [json.loads(line)["type"] for line in lines] == ["text", "text", "done"]
    assert closed == [True]


@pytest.mark.asyncio
async def test_stream_stops_after_terminal_event() -> None:
    """Nothing follows a Done/Error event."""
    closed: List[bool] = []
    source = _events([ErrorEvent(message="x"), TextEvent(text="late")], closed)

    lines = [line async for line in ndjson_stream(source)]

    assert len(lines) == 1
    assert closed == [True]


@pytest.mark.asyncio
async def test_stream_stops_when_client_disconnects() -> None:
    """Once the disconnect probe fires no further event is written."""
    closed: List[bool] = []
    source = _events([TextEvent(text=str(i)) for i in range(10)] + [DoneEvent()], closed)
    polls = 0

    async def is_disconnected() -> bool:
        nonlocal polls
        polls += 1
        return polls > 2

    lines = [line async for line in ndjson_stream(source, is_disconnected)]

    assert [json.loads(line)["text"] for line in lines] == ["0", "1"]
    assert closed == [True]
