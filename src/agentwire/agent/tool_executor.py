"""Invokes registered tool handlers and turns every failure into model-readable text."""

import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
)

from pydantic import ValidationError

from agentwire.core.schema import ToolCallResult

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[ToolCallResult]]
"""A tool implementation: takes the raw input map, returns the tool's result."""


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


async def _invoke(name: str, handler: ToolHandler, args: Dict[str, Any]) -> ToolCallResult:
    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        return await handler(args)
    except ValidationError as exc:
        # Argument mismatch: report the failing fields.
        logger.warning("Invalid input for tool '%s': %s", name, exc)
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ToolExecutionError(f"Invalid input for tool '{name}': {details}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(f"Tool '{name}' failed: {exc}") from exc


async def execute_tool(
    name: str,
    handler: ToolHandler | None,
    args: Dict[str, Any] | None = None,
    call_id: str = "",
) -> ToolCallResult:
    """
    Invoke *handler* with *args* and return its result tagged with *call_id*.

    Parameters
    ----------
    name:
        The tool name the model asked for.
    handler:
        The registered handler, or *None* when the name is unknown.
    args:
        The raw input map from the model.  If *None*, an empty dict is assumed.
    call_id:
        The model's correlation id, copied onto the result.

    Returns
    -------
    ToolCallResult
        The handler's result, or a textual description of what went wrong.  Tool failures are
        never raised: the model reads the text and decides how to proceed.
    """

    if args is None:
        args = {}

    if handler is None:
        logger.warning("Model requested unknown tool '%s'", name)
        return ToolCallResult(call_id=call_id, content=f"Unknown tool: {name}")

    try:
        result = await _invoke(name, handler, args)
    except ToolExecutionError as exc:
        return ToolCallResult(call_id=call_id, content=str(exc))

    return result.model_copy(update={"call_id": call_id})
