"""
Main orchestration loop for agentwire.

One :class:`AgentLoop` run drives a single conversation through as many model rounds as it needs:

1. call the model with the full history, the system instruction and the tool catalog;
2. forward text fragments to the caller as they arrive;
3. on ``end_turn`` finish; on ``tool_use`` append the assistant turn, run every requested tool in
   order, append one user turn holding all results and go back to 1; on anything else finish
   quietly.

The assistant tool-request turn and the user result turn are always appended together, and every
request of a round has a result before the model is called again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import (
    AsyncGenerator,
    AsyncIterator,
    List,
    Sequence,
)

from agentwire.agent.model_interface import (
    BaseModelClient,
    RoundComplete,
    StopReason,
    TextDelta,
)
from agentwire.core.schema import (
    ConversationTurn,
    DoneEvent,
    ErrorEvent,
    LoopSession,
    LoopState,
    Role,
    StreamEvent,
    TextEvent,
    ToolCallRequest,
    ToolCallResult,
    ToolFinishedEvent,
    ToolStartedEvent,
)
from agentwire.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ModelProtocolError(RuntimeError):
    """Raised when a model round ends without a completion signal."""


class AgentLoop:
    """Runs the model/tool rounds of one session and yields stream events."""

    def __init__(
        self,
        model_client: BaseModelClient,
        registry: ToolRegistry,
        max_rounds: int | None = None,
        parallel_tool_calls: bool = False,
    ) -> None:
        self.model_client = model_client
        self.registry = registry
        self.max_rounds = max_rounds
        self.parallel_tool_calls = parallel_tool_calls

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def run(self, session: LoopSession) -> AsyncGenerator[StreamEvent, None]:
        """
        Drive *session* to completion, yielding stream events.

        Exactly one :class:`DoneEvent` or :class:`ErrorEvent` is yielded, always last.  Closing the
        generator stops the loop at once; nothing is yielded afterwards.
        """
        tools = self.registry.describe_all()

        while True:
            if self.max_rounds is not None and session.rounds >= self.max_rounds:
                logger.warning("Session hit the round cap (%d)", self.max_rounds)
                self._transition(session, LoopState.ERROR)
                yield ErrorEvent(
                    message=f"Stopped after {session.rounds} rounds without a final answer."
                )
                return

            session.rounds += 1
            self._transition(session, LoopState.REQUESTING)
            completion: RoundComplete | None = None
            try:
                model_stream = self.model_client.stream(
                    model=session.model,
                    messages=list(session.history),
                    system=session.system,
                    tools=tools,
                )
                async with contextlib.aclosing(model_stream):
                    async for event in model_stream:
                        if isinstance(event, TextDelta):
                            if session.state is not LoopState.STREAMING:
                                self._transition(session, LoopState.STREAMING)
                            yield TextEvent(text=event.text)
                        elif isinstance(event, RoundComplete):
                            completion = event
                if completion is None:
                    raise ModelProtocolError("Model stream ended without a completion signal")
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Model call failed in round %d: %s", session.rounds, exc)
                self._transition(session, LoopState.ERROR)
                yield ErrorEvent(message=str(exc) or type(exc).__name__)
                return

            self._transition(session, LoopState.DECIDING)
            calls = completion.tool_calls

            if completion.stop_reason is StopReason.END_TURN:
                self._transition(session, LoopState.DONE)
                yield DoneEvent()
                return

            if completion.stop_reason is not StopReason.TOOL_USE:
                logger.warning(
                    "Unexpected stop reason '%s'; ending the session",
                    completion.raw_stop_reason or completion.stop_reason.value,
                )
                self._transition(session, LoopState.DONE)
                yield DoneEvent()
                return

            self._transition(session, LoopState.EXECUTING_TOOLS)
            logger.info(
                "Round %d requested %d tool call(s): %s",
                session.rounds,
                len(calls),
                [call.name for call in calls],
            )
            session.history.append(
                ConversationTurn(role=Role.ASSISTANT, content=list(completion.content))
            )

            results: List[ToolCallResult] = []
            if self.parallel_tool_calls:
                async for event in self._run_parallel(calls, results):
                    yield event
            else:
                async for event in self._run_sequential(calls, results):
                    yield event

            session.history.append(
                ConversationTurn(role=Role.USER, content=[result.to_block() for result in results])
            )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    async def _run_sequential(
        self, calls: Sequence[ToolCallRequest], results: List[ToolCallResult]
    ) -> AsyncIterator[StreamEvent]:
        for call in calls:
            yield ToolStartedEvent(id=call.id, tool=call.name, input=call.input)
            result = await self.registry.dispatch(call.name, call.input, call_id=call.id)
            results.append(result)
            yield ToolFinishedEvent(id=call.id, tool=call.name, meta=result.meta)

    async def _run_parallel(
        self, calls: Sequence[ToolCallRequest], results: List[ToolCallResult]
    ) -> AsyncIterator[StreamEvent]:
        for call in calls:
            yield ToolStartedEvent(id=call.id, tool=call.name, input=call.input)
        # gather keeps the request order regardless of completion order
        gathered = await asyncio.gather(
            *(self.registry.dispatch(call.name, call.input, call_id=call.id) for call in calls)
        )
        for call, result in zip(calls, gathered):
            results.append(result)
            yield ToolFinishedEvent(id=call.id, tool=call.name, meta=result.meta)

    @staticmethod
    def _transition(session: LoopSession, state: LoopState) -> None:
        logger.debug("Session state %s -> %s", session.state.value, state.value)
        session.state = state
