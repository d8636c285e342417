"""Engine-side web tools: DuckDuckGo search and URL fetching.

These run in the engine process and are never sent to the remote executor.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from bs4 import BeautifulSoup, Comment
from duckduckgo_search import DDGS

from conduit.tools.base import LocalTool, ToolDefinition, ToolParameter

MAX_CONTENT_CHARS = 5000
USER_AGENT = "Mozilla/5.0 (compatible; ConduitBot/1.0)"

_TIME_RANGES = {"day": "d", "week": "w", "month": "m", "year": "y"}
_REGIONS = {"en": "us-en", "es": "es-es", "fr": "fr-fr", "de": "de-de"}

WEB_SEARCH = ToolDefinition(
    id="web_search",
    name="Web Search",
    description="Search the web using DuckDuckGo and return titles, URLs and snippets",
    category="search",
    parameters=[
        ToolParameter(name="query", type="string", description="Search query", required=True),
        ToolParameter(
            name="time_range",
            type="string",
            description="Restrict results to a recent period",
            enum=list(_TIME_RANGES),
        ),
        ToolParameter(
            name="language",
            type="string",
            description="Result language",
            enum=list(_REGIONS),
        ),
        ToolParameter(
            name="max_results",
            type="number",
            description="Maximum number of results (1-10)",
            default=5,
        ),
    ],
)

FETCH_URL = ToolDefinition(
    id="fetch_url",
    name="Fetch URL",
    description="Fetch a web page and return its readable text content",
    category="search",
    parameters=[
        ToolParameter(name="url", type="string", description="Absolute URL to fetch", required=True),
    ],
)


def html_to_text(markup: str) -> str:
    """Readable text of an HTML page, without scripts, styles or comments."""
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    return " ".join(soup.get_text(" ", strip=True).split())


async def web_search(
    query: str,
    time_range: str | None = None,
    language: str | None = None,
    max_results: int | float = 5,
) -> dict[str, Any]:
    """Search the web and return structured results.

    Args:
        query: Search query string
        time_range: One of day, week, month, year
        language: One of en, es, fr, de
        max_results: Maximum number of results to return (clamped to 1-10)

    Returns:
        Dict with the query, result count and a list of results
    """
    limit = min(max(1, int(max_results)), 10)

    def _search() -> list[dict[str, Any]]:
        with DDGS() as ddgs:
            return list(
                ddgs.text(
                    query,
                    region=_REGIONS.get(language or "", "wt-wt"),
                    timelimit=_TIME_RANGES.get(time_range or ""),
                    max_results=limit,
                )
            )

    try:
        raw_results = await asyncio.to_thread(_search)
    except Exception as e:
        raise RuntimeError(f"Web search failed: {e}") from e

    results = [
        {
            "title": r.get("title", "No title"),
            "url": r.get("href", ""),
            "snippet": r.get("body", ""),
        }
        for r in raw_results
    ]
    return {"query": query, "resultCount": len(results), "results": results}


async def fetch_url(url: str, client: httpx.AsyncClient | None = None) -> dict[str, Any]:
    """Fetch a URL and extract plain text.

    Args:
        url: URL to fetch
        client: Optional shared HTTP client

    Returns:
        Dict with the URL, content length and (truncated) text content
    """
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=20.0, follow_redirects=True) as own_client:
                response = await own_client.get(url, headers={"User-Agent": USER_AGENT})
        else:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise RuntimeError(f"URL fetch failed: HTTP {status}: {e.response.reason_phrase}") from e
    except httpx.HTTPError as e:
        raise RuntimeError(f"URL fetch failed: {e}") from e

    content = html_to_text(response.text)
    if len(content) > MAX_CONTENT_CHARS:
        content = content[:MAX_CONTENT_CHARS] + "..."

    return {"url": url, "contentLength": len(content), "content": content}


def create_web_tools() -> list[LocalTool]:
    """Local tool instances for ``web_search`` and ``fetch_url``."""
    return [
        LocalTool(definition=WEB_SEARCH, fn=web_search),
        LocalTool(definition=FETCH_URL, fn=fetch_url),
    ]
