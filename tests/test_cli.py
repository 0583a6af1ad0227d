"""Tests for the terminal client's stream handling."""

import json

import httpx
import pytest

from agentwire.client.cli import (
    render_event,
    stream_chat,
)


def test_render_event_returns_text_only_for_text(capsys: pytest.CaptureFixture[str]) -> None:
    """Text events return their fragment; tool events are shown but return nothing."""
    assert render_event({"type": "text", "text": "hi"}) == "hi"
    assert render_event({"type": "tool_call", "tool": "fetch_url", "input": {"url": "u"}}) is None
    finished = {"type": "tool_result", "tool": "run_code", "meta": {"exit_code": 0}}
    assert render_event(finished) is None

    out = capsys.readouterr().out
    assert "fetch_url u" in out
    assert "exit code 0" in out


def test_stream_chat_collects_reply() -> None:
    """The reply is the concatenated text of the stream."""
    lines = [
        {"type": "text", "text": "Hel"},
        {"type": "tool_call", "id": "1", "tool": "run_code", "input": {"language": "python"}},
        {"type": "tool_result", "id": "1", "tool": "run_code"},
        {"type": "text", "text": "lo"},
        {"type": "done"},
    ]
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        body = "".join(json.dumps(line) + "\n" for line in lines)
        return httpx.Response(200, text=body, headers={"content-type": "application/x-ndjson"})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        reply = stream_chat(
            [{"role": "user", "content": "hi"}], model="claude-haiku-4-5", client=client
        )

    assert reply == "Hello"
    assert seen["body"] == {
        "messages": [{"role": "user", "content": "hi"}],
        "model": "claude-haiku-4-5",
    }


def test_stream_chat_reports_validation_error(capsys: pytest.CaptureFixture[str]) -> None:
    """A 400 from the server is printed and yields an empty reply."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Invalid model: x"})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        reply = stream_chat([{"role": "user", "content": "hi"}], model="x", client=client)

    assert reply == ""
    assert "Invalid model: x" in capsys.readouterr().out


def test_stream_chat_reports_plain_text_error(capsys: pytest.CaptureFixture[str]) -> None:
    """Error bodies that are not JSON are shown as-is."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        reply = stream_chat([{"role": "user", "content": "hi"}], client=client)

    assert reply == ""
    assert "API error: Bad Gateway" in capsys.readouterr().out
