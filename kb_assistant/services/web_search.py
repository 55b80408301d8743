"""
Web search via the Google Programmable Search (Custom Search JSON API).

Needs GOOGLE_API_KEY and GOOGLE_CSE_ID. Missing credentials are a configuration state:
search_web raises ServiceUnavailableError and the web_search tool reports it as text.
"""

import logging

import httpx

from kb_assistant.core.config import (
    GOOGLE_API_KEY,
    GOOGLE_CSE_ID,
    GOOGLE_SEARCH_URL,
    TOOL_TIMEOUT,
    WEB_SEARCH_MAX_RESULTS,
)
from kb_assistant.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(GOOGLE_API_KEY and GOOGLE_CSE_ID)


async def search_web(query: str, num: int = WEB_SEARCH_MAX_RESULTS) -> list[dict]:
    """Return up to `num` results as {title, url, snippet}."""
    if not is_configured():
        raise ServiceUnavailableError("GOOGLE_API_KEY and GOOGLE_CSE_ID must be set for web search")
    q = (query or "").strip()
    if not q:
        return []
    params = {"key": GOOGLE_API_KEY, "cx": GOOGLE_CSE_ID, "q": q, "num": max(1, min(num, 10))}
    logger.info("[web_search:search_web] IN  query=%r num=%d", q, params["num"])
    async with httpx.AsyncClient(timeout=TOOL_TIMEOUT) as client:
        response = await client.get(GOOGLE_SEARCH_URL, params=params)
    if response.status_code != 200:
        raise RuntimeError(f"search API returned {response.status_code}")
    items = response.json().get("items") or []
    results = [
        {
            "title": (item.get("title") or "").strip(),
            "url": (item.get("link") or "").strip(),
            "snippet": (item.get("snippet") or "").strip(),
        }
        for item in items
    ]
    logger.info("[web_search:search_web] OUT results=%d", len(results))
    return results
