"""
Model interface for agentwire.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
transport) stays model-agnostic and talks to a :class:`BaseModelClient`.

One round with the model yields any number of :class:`TextDelta` fragments followed by exactly one
:class:`RoundComplete`, which carries the stop reason and the full content of the assistant turn
(text and tool requests).

Additional providers can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_model_client`.  Tests substitute a scripted client the same way.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)

from agentwire.config import settings
from agentwire.core.schema import (
    ContentBlock,
    ConversationTurn,
    TextBlock,
    ToolDescriptor,
    ToolUseBlock,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Round events
# ---------------------------------------------------------------------------
class StopReason(str, Enum):
    """Why the model ended a round."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    OTHER = "other"


class TextDelta(BaseModel):
    """A text fragment, forwarded to the caller as soon as it arrives."""

    text: str


class RoundComplete(BaseModel):
    """The model finished the round."""

    stop_reason: StopReason
    content: List[ContentBlock] = Field(default_factory=list)
    raw_stop_reason: str | None = None

    @property
    def tool_calls(self) -> List[ToolUseBlock]:
        """Tool requests in the order the model issued them."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]


ModelEvent = Union[TextDelta, RoundComplete]


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_model_client(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_model_client(name: str = "anthropic") -> "BaseModelClient":
    """Factory that returns an instantiated model client."""
    cls = _CLIENT_REGISTRY.get(name.lower())
    if cls is None:
        raise ValueError(f"Model client '{name}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract streaming model capability."""

    @abstractmethod
    def stream(
        self,
        *,
        model: str,
        messages: Sequence[ConversationTurn],
        system: str | None,
        tools: Sequence[ToolDescriptor],
    ) -> AsyncIterator[ModelEvent]:
        """Run one round: yield text fragments, then a single :class:`RoundComplete`."""


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
_STOP_REASONS = {
    "end_turn": StopReason.END_TURN,
    "tool_use": StopReason.TOOL_USE,
}


def map_stop_reason(raw: str | None) -> StopReason:
    """Map a provider stop reason onto :class:`StopReason`."""
    return _STOP_REASONS.get(raw or "", StopReason.OTHER)


def turn_to_param(turn: ConversationTurn) -> Dict[str, Any]:
    """Convert a conversation turn into an Anthropic message param."""
    if isinstance(turn.content, str):
        return {"role": turn.role.value, "content": turn.content}
    return {
        "role": turn.role.value,
        "content": [block.model_dump() for block in turn.content],
    }


def tool_to_param(tool: ToolDescriptor) -> Dict[str, Any]:
    """Convert a tool descriptor into an Anthropic tool param."""
    return {"name": tool.name, "description": tool.description, "input_schema": tool.input_schema}


def blocks_from_message(content: Sequence[Any]) -> List[ContentBlock]:
    """Keep the text and tool-use blocks of a provider response, in order."""
    blocks: List[ContentBlock] = []
    for block in content:
        if block.type == "text":
            blocks.append(TextBlock(text=block.text))
        elif block.type == "tool_use":
            blocks.append(ToolUseBlock(id=block.id, name=block.name, input=dict(block.input or {})))
        else:
            logger.debug("Ignoring content block of type '%s'", block.type)
    return blocks


@register_model_client("anthropic")
class AnthropicModelClient(BaseModelClient):
    """Anthropic Messages API client using the streaming endpoint."""

    def __init__(self, api_key: str | None = None, max_tokens: int | None = None) -> None:
        self._api_key = api_key or settings.ANTHROPIC_API_KEY
        self._max_tokens = max_tokens or settings.MAX_TOKENS
        self._client: Any = None

    def _get_client(self) -> Any:
        # Built on first use so the app can start (and be tested) without credentials.
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            if not self._api_key:
                logger.warning("ANTHROPIC_API_KEY is not set; model calls will fail.")
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key, max_retries=settings.MODEL_MAX_RETRIES
            )
        return self._client

    async def stream(
        self,
        *,
        model: str,
        messages: Sequence[ConversationTurn],
        system: str | None,
        tools: Sequence[ToolDescriptor],
    ) -> AsyncIterator[ModelEvent]:
        kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": self._max_tokens,
            "messages": [turn_to_param(turn) for turn in messages],
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [tool_to_param(tool) for tool in tools]

        async with self._get_client().messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield TextDelta(text=event.delta.text)
            final = await stream.get_final_message()

        logger.debug("Anthropic round finished: stop_reason=%s", final.stop_reason)
        yield RoundComplete(
            stop_reason=map_stop_reason(final.stop_reason),
            content=blocks_from_message(final.content),
            raw_stop_reason=final.stop_reason,
        )
