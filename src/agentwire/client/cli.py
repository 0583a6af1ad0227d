"""Terminal client for the agentwire API."""

from __future__ import annotations

import json
import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Tuple,
)

import httpx

from agentwire.common import (
    AnsiColors,
    colored_print,
)
from agentwire.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def render_event(event: Dict[str, Any]) -> str | None:
    """
    Print one stream event and return any assistant text it carried.

    Returns *None* for events without text.
    """
    kind = event.get("type")
    if kind == "text":
        colored_print(event.get("text", ""), AnsiColors.YELLOW, end="", flush=True)
        return event.get("text", "")
    if kind == "tool_call":
        target = event.get("input", {}).get("url") or event.get("input", {}).get("language", "")
        colored_print(f"\n⚙️  {event.get('tool')} {target}".rstrip(), AnsiColors.GREY)
    elif kind == "tool_result":
        meta = event.get("meta") or {}
        detail = f" (exit code {meta['exit_code']})" if "exit_code" in meta else ""
        colored_print(f"✓  {event.get('tool')}{detail}", AnsiColors.GREY)
    elif kind == "error":
        colored_print(f"\n⚠️ {event.get('message')}", AnsiColors.RED)
    elif kind == "done":
        print()
    else:
        logger.debug("Ignoring unknown event: %s", event)
    return None


def stream_chat(
    messages: List[Dict[str, str]],
    model: str | None = None,
    system: str | None = None,
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> str:
    """Post the conversation, render the event stream and return the assistant's reply text."""
    api_url = f"http://localhost:{settings.API_PORT}/api/chat"
    payload: Dict[str, Any] = {"messages": messages}
    if model:
        payload["model"] = model
    if system:
        payload["system"] = system

    http = client or httpx.Client(timeout=httpx.Timeout(30.0, read=None))
    try:
        for attempt in range(max_retries):
            try:
                reply: List[str] = []
                with http.stream("POST", api_url, json=payload) as response:
                    if response.status_code >= 400:
                        response.read()
                        try:
                            detail = response.json().get("detail", response.text)
                        except ValueError:
                            detail = response.text
                        colored_print(f"API error: {detail}", AnsiColors.RED)
                        return ""
                    for line in response.iter_lines():
                        if not line.strip():
                            continue
                        text = render_event(json.loads(line))
                        if text:
                            reply.append(text)
                return "".join(reply)
            except httpx.ConnectError:
                # On connection refused, retry with exponential backoff
                if attempt == max_retries - 1:
                    break
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
            except httpx.HTTPError as e:
                logger.error("API request error: %s", str(e))
                colored_print(f"Error connecting to API: {e}", AnsiColors.RED)
                return ""
    finally:
        if client is None:
            http.close()

    colored_print(f"Failed to connect to API after {max_retries} attempts", AnsiColors.RED)
    return ""


def run_cli(model: str | None = None, system: str | None = None) -> None:
    """Run the CLI client that communicates with the API."""
    history: List[Dict[str, str]] = []

    colored_print(
        "\n🔌 agentwire shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break

        history.append({"role": "user", "content": user_msg})
        reply = stream_chat(history, model=model, system=system)
        if reply:
            history.append({"role": "assistant", "content": reply})
        else:
            history.pop()  # keep user/assistant alternation after a failed turn


if __name__ == "__main__":
    run_cli()
