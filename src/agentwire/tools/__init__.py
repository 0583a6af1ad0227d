"""
Tool registry for agentwire.

Every tool the model may call is one member of :class:`ToolKind`.  A :class:`ToolRegistry` maps
each kind's name to its :class:`~agentwire.core.schema.ToolDescriptor` (what the model is told)
and its handler (what actually runs).  The default registry is built once at startup by
:func:`build_default_registry` and is read-only afterwards, so it can be shared by every
concurrent session without locking.
"""

import logging
from enum import Enum
from typing import (
    Any,
    Dict,
    Tuple,
)

from agentwire.agent.tool_executor import (
    ToolHandler,
    execute_tool,
)
from agentwire.core.schema import (
    ToolCallResult,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)


class ToolKind(str, Enum):
    """The closed set of tools the host knows how to run."""

    FETCH_URL = "fetch_url"
    RUN_CODE = "run_code"


class DuplicateToolName(ValueError):
    """Raised when a tool name is registered twice."""


class ToolRegistry:
    """Lookup table of tool descriptors and handlers, keyed by tool name."""

    def __init__(self) -> None:
        self._descriptors: Dict[str, ToolDescriptor] = {}
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        """
        Register *handler* under ``descriptor.name``.

        Raises
        ------
        DuplicateToolName
            If a tool with the same name is already registered.
        """
        if descriptor.name in self._descriptors:
            raise DuplicateToolName(f"Tool '{descriptor.name}' is already registered.")
        logger.debug("Registering tool '%s'", descriptor.name)
        self._descriptors[descriptor.name] = descriptor
        self._handlers[descriptor.name] = handler

    def describe_all(self) -> Tuple[ToolDescriptor, ...]:
        """Return every descriptor, in registration order."""
        return tuple(self._descriptors.values())

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    async def dispatch(
        self, name: str, args: Dict[str, Any] | None = None, call_id: str = ""
    ) -> ToolCallResult:
        """Run the tool called *name*; unknown names and failures come back as result text."""
        return await execute_tool(name, self._handlers.get(name), args, call_id=call_id)


def build_default_registry() -> ToolRegistry:
    """Create the registry holding every :class:`ToolKind`."""
    # Imported here so the executors can import ToolKind from this module.
    from agentwire.tools.fetch_url import (  # pylint: disable=import-outside-toplevel
        FETCH_URL_DESCRIPTOR,
        fetch_url_handler,
    )
    from agentwire.tools.run_code import (  # pylint: disable=import-outside-toplevel
        RUN_CODE_DESCRIPTOR,
        run_code_handler,
    )

    handlers: Dict[ToolKind, Tuple[ToolDescriptor, ToolHandler]] = {
        ToolKind.FETCH_URL: (FETCH_URL_DESCRIPTOR, fetch_url_handler),
        ToolKind.RUN_CODE: (RUN_CODE_DESCRIPTOR, run_code_handler),
    }
    registry = ToolRegistry()
    for kind in ToolKind:
        descriptor, handler = handlers[kind]
        registry.register(descriptor, handler)
    return registry
