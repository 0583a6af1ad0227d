"""
Schema definitions for model <-> agent loop <-> tool <-> caller messages.

These data models serve as the contract between the model client, the orchestration loop,
individual tools and the outbound event stream.  We keep them separate from runtime logic so they
can be imported anywhere without side-effects.

Content blocks use the same field names as the provider's wire format so history can be dumped
verbatim when it is replayed to the model.
"""

from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


# ---------------------------------------------------------------------------
# Conversation content
# ---------------------------------------------------------------------------
class TextBlock(BaseModel):
    """Plain text produced by the model inside a structured turn."""

    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """A tool invocation requested by the model (the correlation id is ``id``)."""

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(..., description="Opaque id echoed back in the matching result")
    name: str = Field(..., description="Registered tool name")
    input: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


# A tool request is exactly what the model emits.
ToolCallRequest = ToolUseBlock


class ToolResultBlock(BaseModel):
    """Model-facing result for one tool call."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock, ToolResultBlock], Field(discriminator="type")
]


class ConversationTurn(BaseModel):
    """One turn of the conversation, replayed to the model on every round."""

    role: Role
    content: Union[str, List[ContentBlock]]

    @property
    def tool_calls(self) -> List[ToolUseBlock]:
        """Tool requests carried by this turn (empty for plain text)."""
        if isinstance(self.content, str):
            return []
        return [block for block in self.content if isinstance(block, ToolUseBlock)]


class ToolCallResult(BaseModel):
    """Outcome of one tool call.

    ``content`` is what the model reads; ``meta`` only ever reaches the caller's event stream.
    """

    call_id: str = ""
    content: str
    meta: Optional[Dict[str, Any]] = None

    def to_block(self) -> ToolResultBlock:
        """Return the model-facing block (``meta`` is not included)."""
        return ToolResultBlock(tool_use_id=self.call_id, content=self.content)


class ToolDescriptor(BaseModel):
    """Name, description and JSON-schema input contract advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: Dict[str, Any]


# ---------------------------------------------------------------------------
# Per-request loop state
# ---------------------------------------------------------------------------
class LoopState(str, Enum):
    """States of the agent loop."""

    REQUESTING = "requesting"
    STREAMING = "streaming"
    DECIDING = "deciding"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ERROR = "error"


class LoopSession(BaseModel):
    """Transient state owned by a single run of the agent loop."""

    model: str
    system: Optional[str] = None
    history: List[ConversationTurn] = Field(default_factory=list)
    state: LoopState = LoopState.REQUESTING
    rounds: int = 0


# ---------------------------------------------------------------------------
# Outbound stream events
# ---------------------------------------------------------------------------
class TextEvent(BaseModel):
    """A text fragment streamed by the model."""

    type: Literal["text"] = "text"
    text: str


class ToolStartedEvent(BaseModel):
    """A tool call is about to run."""

    type: Literal["tool_call"] = "tool_call"
    id: str
    tool: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolFinishedEvent(BaseModel):
    """A tool call finished; ``meta`` carries the executor's structured details."""

    type: Literal["tool_result"] = "tool_result"
    id: str
    tool: str
    meta: Optional[Dict[str, Any]] = None


class DoneEvent(BaseModel):
    """Terminal event: the model finished."""

    type: Literal["done"] = "done"


class ErrorEvent(BaseModel):
    """Terminal event: the session failed."""

    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[
    Union[TextEvent, ToolStartedEvent, ToolFinishedEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (DoneEvent, ErrorEvent)


def encode_event(event: BaseModel) -> str:
    """Render *event* as one newline-delimited JSON line."""
    return event.model_dump_json(exclude_none=True) + "\n"
