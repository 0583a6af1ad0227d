"""Serializes agent-loop events onto the outbound newline-delimited JSON stream."""

import logging
from typing import (
    AsyncGenerator,
    AsyncIterator,
    Awaitable,
    Callable,
)

from pydantic import BaseModel

from agentwire.core.schema import (
    TERMINAL_EVENTS,
    encode_event,
)

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def ndjson_stream(
    events: AsyncGenerator[BaseModel, None],
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """
    Yield one JSON line per event from *events*.

    *is_disconnected* is polled before each write; once it reports a disconnect the loop is closed
    and nothing more is written.  Nothing is written after a terminal event either.
    """
    try:
        async for event in events:
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected; stopping the agent loop")
                return
            yield encode_event(event)
            if isinstance(event, TERMINAL_EVENTS):
                return
    finally:
        await events.aclose()
