"""
``run_code`` tool: execute a Python or JavaScript snippet in a child process.

The snippet runs with the host's permissions.  The only limits are a wall-clock timeout and a cap
on captured output; there is no OS-level isolation.  A non-zero exit, a timeout or an overflow is
a normal result the model reads and reacts to, not a failure of the tool.

The snippet runs in its own process group.  Anything it leaves running in the background is
killed as soon as the snippet exits.
"""

import asyncio
import contextlib
import logging
import os
import signal
import tempfile
from typing import (
    Any,
    Dict,
    Literal,
    Mapping,
    cast,
)

from pydantic import (
    BaseModel,
    Field,
)

from agentwire.config import settings
from agentwire.core.schema import (
    ToolCallResult,
    ToolDescriptor,
)
from agentwire.tools import ToolKind

logger = logging.getLogger(__name__)

Language = Literal["python", "javascript"]

_EXTENSIONS: Dict[str, str] = {"python": ".py", "javascript": ".js"}
_CHUNK_SIZE = 64 * 1024

TIMEOUT_EXIT_CODE = 1
SPAWN_FAILURE_EXIT_CODE = 127

RUN_CODE_DESCRIPTOR = ToolDescriptor(
    name=ToolKind.RUN_CODE.value,
    description=(
        "Execute Python or JavaScript code and return its output. "
        "Use this to test code you write, verify correctness, debug errors, "
        "and iterate until the solution works. Always run code before presenting it as a final "
        "answer."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": "The complete, self-contained code to execute",
            },
            "language": {
                "type": "string",
                "enum": ["python", "javascript"],
                "description": 'Programming language: "python" or "javascript"',
            },
        },
        "required": ["code", "language"],
    },
)


class RunCodeInput(BaseModel):
    """Arguments accepted by ``run_code``."""

    code: str = Field(..., description="The complete, self-contained code to execute")
    language: Language


class CodeRunResult(BaseModel):
    """Everything captured from one run, forwarded in full to the caller."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    language: str
    timed_out: bool = False
    truncated: bool = False


class _OutputBudget:
    """Byte budget shared by stdout and stderr."""

    def __init__(self, limit: int) -> None:
        self.remaining = limit
        self.exceeded = False

    def take(self, size: int) -> int:
        allowed = min(size, self.remaining)
        self.remaining -= allowed
        if allowed < size:
            self.exceeded = True
        return allowed


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill *proc* and everything it spawned, even after *proc* itself has exited."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except (PermissionError, AttributeError):
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()


async def _wait_and_reap(proc: asyncio.subprocess.Process) -> None:
    await proc.wait()
    # Background children would otherwise hold the output pipes open.
    _kill(proc)


async def _drain(
    stream: asyncio.StreamReader,
    sink: bytearray,
    budget: _OutputBudget,
    proc: asyncio.subprocess.Process,
) -> None:
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return
        allowed = budget.take(len(chunk))
        sink.extend(chunk[:allowed])
        if budget.exceeded:
            _kill(proc)
            return


def _decode(data: bytearray) -> str:
    return data.decode("utf-8", errors="replace").strip()


async def run_code(
    code: str,
    language: Language,
    *,
    timeout: float | None = None,
    max_output: int | None = None,
    interpreters: Mapping[str, str] | None = None,
    scratch_dir: str | None = None,
) -> CodeRunResult:
    """
    Write *code* to a temporary file and run it with the interpreter for *language*.

    Parameters
    ----------
    code:
        Source to execute.
    language:
        ``"python"`` or ``"javascript"``.
    timeout:
        Wall-clock limit in seconds (default from settings).
    max_output:
        Combined stdout + stderr cap in bytes (default from settings).
    interpreters:
        Override of the language -> executable mapping.
    scratch_dir:
        Directory for the temporary file (default: the OS temp directory).
    """
    timeout = settings.RUN_CODE_TIMEOUT if timeout is None else timeout
    max_output = settings.RUN_CODE_MAX_OUTPUT if max_output is None else max_output
    if interpreters is None:
        interpreters = {"python": settings.PYTHON_BIN, "javascript": settings.NODE_BIN}
    interpreter = interpreters[language]

    fd, path = tempfile.mkstemp(prefix="agentwire_", suffix=_EXTENSIONS[language], dir=scratch_dir)
    proc: asyncio.subprocess.Process | None = None
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(code)

        try:
            proc = await asyncio.create_subprocess_exec(
                interpreter,
                path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Could not start %s: %s", interpreter, exc)
            return CodeRunResult(
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                stderr=f"Failed to start {interpreter}: {exc}",
                language=language,
            )

        out_reader = cast(asyncio.StreamReader, proc.stdout)
        err_reader = cast(asyncio.StreamReader, proc.stderr)
        stdout, stderr = bytearray(), bytearray()
        budget = _OutputBudget(max_output)
        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _drain(out_reader, stdout, budget, proc),
                    _drain(err_reader, stderr, budget, proc),
                    _wait_and_reap(proc),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            _kill(proc)
            await proc.wait()

        if timed_out:
            logger.info("%s snippet timed out after %ss", language, timeout)
            return CodeRunResult(
                exit_code=proc.returncode if proc.returncode is not None else TIMEOUT_EXIT_CODE,
                stdout=_decode(stdout),
                stderr=f"Process timed out after {timeout:g} seconds",
                language=language,
                timed_out=True,
            )

        err_text = _decode(stderr)
        if budget.exceeded:
            logger.info("%s snippet exceeded the %d byte output cap", language, max_output)
            notice = f"Output limit of {max_output} bytes exceeded; process terminated"
            err_text = f"{err_text}\n{notice}" if err_text else notice

        logger.debug("%s snippet exited with %s", language, proc.returncode)
        return CodeRunResult(
            exit_code=proc.returncode if proc.returncode is not None else TIMEOUT_EXIT_CODE,
            stdout=_decode(stdout),
            stderr=err_text,
            language=language,
            truncated=budget.exceeded,
        )
    finally:
        if proc is not None:
            _kill(proc)
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path)


def format_code_result(result: CodeRunResult) -> str:
    """Render *result* as the compact text the model reads."""
    parts = [f"Exit code: {result.exit_code}"]
    if result.stdout:
        parts.append(f"\nOutput:\n{result.stdout}")
    if result.stderr:
        parts.append(f"\nErrors:\n{result.stderr}")
    return "\n".join(parts)


async def run_code_handler(args: Dict[str, Any], **kwargs: Any) -> ToolCallResult:
    """Registry entry point for ``run_code``; *kwargs* are passed through to :func:`run_code`."""
    params = RunCodeInput.model_validate(args)
    result = await run_code(params.code, params.language, **kwargs)
    return ToolCallResult(content=format_code_result(result), meta=result.model_dump())
