"""HTTP request tool."""

from __future__ import annotations

import logging
from typing import Annotated, Dict, Literal, Optional

import httpx
from langchain_core.tools import tool

LOGGER = logging.getLogger(__name__)

MAX_BODY_CHARS = 2000
USER_AGENT = "reflectAgent/0.1"


@tool
async def http_request(
    url: Annotated[str, "URL to request"],
    method: Annotated[Literal["GET", "POST"], "HTTP method"] = "GET",
    body: Annotated[Optional[str], "Request body for POST requests (JSON string)"] = None,
    headers: Annotated[Optional[Dict[str, str]], "Additional headers"] = None,
) -> str:
    """Make an HTTP GET or POST request (requires approval).

    Useful for calling APIs or fetching web content. Response bodies are
    truncated to 2000 characters.
    """
    request_headers = {"User-Agent": USER_AGENT, **(headers or {})}
    content = None
    if body and method == "POST":
        content = body
        request_headers.setdefault("Content-Type", "application/json")

    LOGGER.info(f"HTTP {method} {url}")
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=20.0) as client:
            response = await client.request(method, url, headers=request_headers, content=content)
    except httpx.HTTPError as e:
        return f"HTTP Error: {e}"

    text = response.text
    if len(text) > MAX_BODY_CHARS:
        text = text[:MAX_BODY_CHARS] + f"\n... [truncated, {len(text)} total characters]"

    status = "OK" if response.is_success else "WARNING"
    return f"{status} HTTP {response.status_code} {response.reason_phrase}\n\nResponse:\n{text}"


__all__ = ["http_request"]
