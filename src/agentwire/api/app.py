"""
Core API backend for agentwire.

It exposes the following endpoints:
- **GET /health**      - liveness probe for health checks.
- **GET /api/models**  - the allow-listed models.
- **POST /api/chat**   - run the agent loop over a conversation and stream its events as
  newline-delimited JSON: {"messages": [...], "model": "...", "system": "..."}

Requests are validated before the stream opens and rejected with a 400.  Once the stream is open,
every failure is reported inside it as an ``error`` event.
"""

import logging
from typing import List

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from agentwire.agent.agent_loop import AgentLoop
from agentwire.agent.model_interface import (
    BaseModelClient,
    load_model_client,
)
from agentwire.api.models import (
    ChatRequest,
    ModelInfo,
)
from agentwire.api.streaming import (
    NDJSON_MEDIA_TYPE,
    ndjson_stream,
)
from agentwire.common import (
    AnsiColors,
    colored_print,
)
from agentwire.config import settings
from agentwire.core.schema import (
    ConversationTurn,
    LoopSession,
)
from agentwire.tools import (
    ToolRegistry,
    build_default_registry,
)

logger = logging.getLogger(__name__)


def create_app(
    model_client: BaseModelClient | None = None, registry: ToolRegistry | None = None
) -> FastAPI:
    """
    Build the FastAPI application.

    The model client and tool registry are created once here and shared, read-only, by every
    request.  Tests pass their own.
    """
    app = FastAPI(title="agentwire API", version="0.1.0", description="Streaming tool-using agent")
    app.state.model_client = model_client or load_model_client("anthropic")
    app.state.registry = registry or build_default_registry()

    # Add CORS middleware to allow requests from the web UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.get("/api/models", response_model=List[ModelInfo], summary="List models")
    async def list_models() -> List[ModelInfo]:
        """List the models a chat request may ask for."""
        return [ModelInfo(id=model_id, name=name) for model_id, name in settings.MODELS.items()]

    @app.post("/api/chat", summary="Run the agent over a conversation")
    async def chat(req: ChatRequest, request: Request) -> StreamingResponse:
        """Validate the conversation, then stream the agent loop's events."""
        if not req.messages:
            raise HTTPException(status_code=400, detail="messages array is required")
        model = req.model if req.model is not None else settings.DEFAULT_MODEL
        if model not in settings.MODELS:
            logger.info("Rejected chat request for unknown model '%s'", model)
            raise HTTPException(status_code=400, detail=f"Invalid model: {model}")

        session = LoopSession(
            model=model,
            system=req.system_instruction(),
            history=[ConversationTurn(role=m.role, content=m.content) for m in req.messages],
        )
        loop = AgentLoop(
            request.app.state.model_client,
            request.app.state.registry,
            max_rounds=settings.MAX_ROUNDS,
            parallel_tool_calls=settings.PARALLEL_TOOL_CALLS,
        )
        logger.info("Starting chat: model=%s, %d message(s)", model, len(req.messages))

        return StreamingResponse(
            ndjson_stream(loop.run(session), request.is_disconnected),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 3001, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting the app built by :func:`create_app`.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg‑import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting agentwire API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    if not settings.ANTHROPIC_API_KEY:
        colored_print("⚠️  ANTHROPIC_API_KEY is not set; model calls will fail.", AnsiColors.RED)

    colored_print(f"🔌 agentwire API is running at http://{host}:{port}.", AnsiColors.GREEN)
    uvicorn.run(
        "agentwire.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m agentwire.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
