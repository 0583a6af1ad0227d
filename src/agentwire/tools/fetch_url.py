"""
``fetch_url`` tool: download a page and reduce it to plain text the model can read.

Every failure comes back as a short sentence rather than an exception, because the model reads
the result and decides what to do next.
"""

import asyncio
import logging
import re
from typing import (
    Any,
    Dict,
)

import httpx
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

EMPTY_CONTENT = "No readable text content found on this page."

FETCH_URL_DESCRIPTOR = ToolDescriptor(
    name=ToolKind.FETCH_URL.value,
    description=(
        "Fetch the text content of a web page so it can be read, summarized, or analyzed. "
        "Use this whenever the user asks to summarize, read, or analyze a URL."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "The full URL to fetch (must start with http:// or https://)",
            },
        },
        "required": ["url"],
    },
)


class FetchUrlInput(BaseModel):
    """Arguments accepted by ``fetch_url``."""

    url: str = Field(..., description="The full URL to fetch")


# ---------------------------------------------------------------------------
# HTML -> text
# ---------------------------------------------------------------------------
_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# &amp; first, so "&amp;lt;" collapses within a single pass.
_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#039;", "'"),
    ("&nbsp;", " "),
)


def _decode_once(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def decode_entities(text: str) -> str:
    """Decode the common HTML entities until nothing is left to decode."""
    while True:
        decoded = _decode_once(text)
        if decoded == text:
            return decoded
        text = decoded


def extract_text(html: str) -> str:
    """Strip scripts, styles and tags from *html* and collapse whitespace."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = decode_entities(text)
    return _WS_RE.sub(" ", text).strip()


def truncate(text: str, max_chars: int) -> tuple[str, bool]:
    """Cap *text* at *max_chars*, appending a marker when something was cut."""
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars] + f"\n\n[Content truncated at {max_chars:,} characters]", True


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------
async def _get(
    url: str, timeout: float, transport: httpx.AsyncBaseTransport | None
) -> httpx.Response:
    headers = {"User-Agent": settings.FETCH_USER_AGENT}
    async with httpx.AsyncClient(
        timeout=timeout, follow_redirects=True, headers=headers, transport=transport
    ) as client:
        return await client.get(url)


async def fetch_url(
    url: str,
    *,
    timeout: float | None = None,
    max_chars: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ToolCallResult:
    """
    Fetch *url* and return its readable text.

    Parameters
    ----------
    url:
        Address to GET.
    timeout:
        Absolute bound on the whole request, in seconds (default from settings).
    max_chars:
        Length at which the extracted text is truncated (default from settings).
    transport:
        Optional httpx transport, used by tests to avoid the network.
    """
    timeout = settings.FETCH_TIMEOUT if timeout is None else timeout
    max_chars = settings.FETCH_MAX_CHARS if max_chars is None else max_chars
    failure_meta: Dict[str, Any] = {"url": url, "error": True}

    try:
        response = await asyncio.wait_for(_get(url, timeout, transport), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        logger.warning("Fetching %s timed out after %s seconds", url, timeout)
        return ToolCallResult(
            content=f"Error: Request timed out after {timeout:g} seconds.", meta=failure_meta
        )
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Fetching %s failed: %s", url, exc)
        message = str(exc) or type(exc).__name__
        return ToolCallResult(content=f"Error fetching URL: {message}", meta=failure_meta)

    if not response.is_success:
        logger.info("Fetching %s returned HTTP %d", url, response.status_code)
        return ToolCallResult(
            content=f"Error: HTTP {response.status_code} {response.reason_phrase}",
            meta={**failure_meta, "status_code": response.status_code},
        )

    content_type = response.headers.get("content-type", "")
    raw = response.text
    text = extract_text(raw) if "text/html" in content_type else raw.strip()
    text, truncated = truncate(text, max_chars)

    logger.debug("Fetched %s (%s, %d chars)", url, content_type or "unknown type", len(text))
    return ToolCallResult(
        content=text or EMPTY_CONTENT,
        meta={
            "url": url,
            "status_code": response.status_code,
            "content_type": content_type,
            "truncated": truncated,
        },
    )


async def fetch_url_handler(
    args: Dict[str, Any], *, transport: httpx.AsyncBaseTransport | None = None
) -> ToolCallResult:
    """Registry entry point for ``fetch_url``."""
    params = FetchUrlInput.model_validate(args)
    return await fetch_url(params.url, transport=transport)
