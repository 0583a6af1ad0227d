"""Tests for the Anthropic model client and its conversion helpers (no network)."""

from types import SimpleNamespace
from typing import (
    Any,
    Dict,
    List,
)

import pytest

from agentwire.agent.model_interface import (
    AnthropicModelClient,
    RoundComplete,
    StopReason,
    TextDelta,
    blocks_from_message,
    load_model_client,
    map_stop_reason,
    tool_to_param,
    turn_to_param,
)
from agentwire.core.schema import (
    ConversationTurn,
    Role,
    TextBlock,
    ToolCallResult,
    ToolUseBlock,
)
from agentwire.tools.fetch_url import FETCH_URL_DESCRIPTOR


def test_stop_reason_mapping() -> None:
    """Only end_turn and tool_use are recognised; everything else is OTHER."""
    assert map_stop_reason("end_turn") is StopReason.END_TURN
    assert map_stop_reason("tool_use") is StopReason.TOOL_USE
    assert map_stop_reason("max_tokens") is StopReason.OTHER
    assert map_stop_reason(None) is StopReason.OTHER


def test_plain_turn_to_param() -> None:
    """Plain text turns pass through unchanged."""
    turn = ConversationTurn(role=Role.USER, content="hello")
    assert turn_to_param(turn) == {"role": "user", "content": "hello"}


def test_structured_turns_to_param() -> None:
    """Tool request and result turns use the provider's block format."""
    request = ConversationTurn(
        role=Role.ASSISTANT,
        content=[
            TextBlock(text="Checking."),
            ToolUseBlock(id="toolu_1", name="fetch_url", input={"url": "https://a.b"}),
        ],
    )
    result = ConversationTurn(
        role=Role.USER,
        content=[ToolCallResult(call_id="toolu_1", content="page", meta={"x": 1}).to_block()],
    )

    assert turn_to_param(request) == {
        "role": "assistant",
        "content": [
            {"type": "text", "text": "Checking."},
            {
                "type": "tool_use",
                "id": "toolu_1",
                "name": "fetch_url",
                "input": {"url": "https://a.b"},
            },
        ],
    }
    assert turn_to_param(result) == {
        "role": "user",
        "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "page"}],
    }


def test_tool_to_param() -> None:
    """Descriptors are advertised with name, description and input_schema."""
    param = tool_to_param(FETCH_URL_DESCRIPTOR)

    assert param["name"] == "fetch_url"
    assert param["input_schema"]["required"] == ["url"]
    assert set(param) == {"name", "description", "input_schema"}


def test_blocks_from_message_keeps_order_and_skips_unknown() -> None:
    """Text and tool-use blocks survive in order; other block types are dropped."""
    content = [
        SimpleNamespace(type="thinking", thinking="hmm"),
        SimpleNamespace(type="text", text="Let me run it."),
        SimpleNamespace(
            type="tool_use", id="t1", name="run_code", input={"code": "1", "language": "python"}
        ),
        SimpleNamespace(type="tool_use", id="t2", name="fetch_url", input=None),
    ]

    blocks = blocks_from_message(content)

    assert blocks == [
        TextBlock(text="Let me run it."),
        ToolUseBlock(id="t1", name="run_code", input={"code": "1", "language": "python"}),
        ToolUseBlock(id="t2", name="fetch_url", input={}),
    ]


def test_load_model_client() -> None:
    """The anthropic client is registered; unknown names are rejected."""
    assert isinstance(load_model_client("anthropic"), AnthropicModelClient)
    with pytest.raises(ValueError):
        load_model_client("nope")


class _FakeStream:
    """Async context manager standing in for the SDK's ``MessageStream``."""

    def __init__(self, events: List[Any], final: Any) -> None:
        self.events = events
        self.final = final
        self.closed = False

    async def __aenter__(self) -> "_FakeStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self.closed = True
        return False

    async def _iterate(self):
        for event in self.events:
            yield event

    def __aiter__(self):
        return self._iterate()

    async def get_final_message(self) -> Any:
        return self.final


class _FakeMessages:
    def __init__(self, stream: _FakeStream) -> None:
        self._stream = stream
        self.kwargs: Dict[str, Any] = {}

    def stream(self, **kwargs: Any) -> _FakeStream:
        self.kwargs = kwargs
        return self._stream


def _delta(kind: str, **fields: Any) -> SimpleNamespace:
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type=kind, **fields))


def _client_with(stream: _FakeStream) -> tuple[AnthropicModelClient, _FakeMessages]:
    messages = _FakeMessages(stream)
    client = AnthropicModelClient(api_key="test-key", max_tokens=256)
    client._client = SimpleNamespace(messages=messages)  # pylint: disable=protected-access
    return client, messages


@pytest.mark.asyncio
async def test_stream_forwards_text_deltas_then_one_round_complete() -> None:
    """Only text deltas are forwarded; the final message becomes the closing RoundComplete."""
    final = SimpleNamespace(
        stop_reason="tool_use",
        content=[
            SimpleNamespace(type="text", text="Let me check."),
            SimpleNamespace(type="tool_use", id="toolu_9", name="fetch_url", input={"url": "u"}),
        ],
    )
    stream = _FakeStream(
        [
            SimpleNamespace(type="message_start"),
            SimpleNamespace(type="content_block_start"),
            _delta("text_delta", text="Let me "),
            _delta("text_delta", text="check."),
            SimpleNamespace(type="content_block_stop"),
            _delta("input_json_delta", partial_json='{"url": "u"}'),
            SimpleNamespace(type="message_delta"),
            SimpleNamespace(type="message_stop"),
        ],
        final,
    )
    client, messages = _client_with(stream)
    history = [ConversationTurn(role=Role.USER, content="check u")]

    events = [
        event
        async for event in client.stream(
            model="claude-haiku-4-5",
            messages=history,
            system="be brief",
            tools=[FETCH_URL_DESCRIPTOR],
        )
    ]

    assert events == [
        TextDelta(text="Let me "),
        TextDelta(text="check."),
        RoundComplete(
            stop_reason=StopReason.TOOL_USE,
            content=[
                TextBlock(text="Let me check."),
                ToolUseBlock(id="toolu_9", name="fetch_url", input={"url": "u"}),
            ],
            raw_stop_reason="tool_use",
        ),
    ]
    assert stream.closed
    assert messages.kwargs == {
        "model": "claude-haiku-4-5",
        "max_tokens": 256,
        "messages": [{"role": "user", "content": "check u"}],
        "system": "be brief",
        "tools": [tool_to_param(FETCH_URL_DESCRIPTOR)],
    }


@pytest.mark.asyncio
async def test_stream_omits_empty_system_and_tools() -> None:
    """No system instruction and an empty catalog are left out of the request."""
    final = SimpleNamespace(stop_reason="max_tokens", content=[])
    client, messages = _client_with(_FakeStream([], final))

    events = [
        event
        async for event in client.stream(
            model="claude-haiku-4-5",
            messages=[ConversationTurn(role=Role.USER, content="hi")],
            system=None,
            tools=[],
        )
    ]

    assert events == [
        RoundComplete(stop_reason=StopReason.OTHER, content=[], raw_stop_reason="max_tokens")
    ]
    assert "system" not in messages.kwargs
    assert "tools" not in messages.kwargs
