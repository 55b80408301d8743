"""
Source extraction: turn the tool messages of one run into numbered citations.

Only tool output tagged as knowledge-base or web-search results is parsed. Entries are
renumbered across the whole run in the order the tool messages appear; the tool's own
positional numbers are ignored. Malformed entries are skipped and repeated URLs keep
their first occurrence.
"""

import logging
import re
from typing import Any, Iterable

from kb_assistant.agent.tools import KB_RESULTS_TAG, WEB_RESULTS_TAG
from kb_assistant.schemas.query import Source

logger = logging.getLogger(__name__)

_ORIGIN_BY_TAG = {KB_RESULTS_TAG: "kb", WEB_RESULTS_TAG: "web"}

# "<n>. Title: <title>" followed on the next line by "URL: <url>"
_ENTRY_RE = re.compile(
    r"^[ \t]*(?P<index>\d+)\.[ \t]*Title:[ \t]*(?P<title>[^\n]*?)[ \t]*\n[ \t]*URL:[ \t]*(?P<url>[^\s]*)[ \t]*$",
    re.MULTILINE,
)


def _origin_of(content: str) -> str | None:
    first_line = content.lstrip().split("\n", 1)[0].strip()
    return _ORIGIN_BY_TAG.get(first_line)


def _looks_like_url(url: str) -> bool:
    return url.startswith(("http://", "https://", "/"))


def extract_sources(tool_messages: Iterable[dict[str, Any]]) -> list[Source]:
    """Parse tagged tool outputs into Source records numbered 1..N in run order."""
    sources: list[Source] = []
    seen_urls: set[str] = set()
    for msg in tool_messages:
        content = msg.get("content")
        if not isinstance(content, str) or not content:
            continue
        origin = _origin_of(content)
        if origin is None:
            continue
        for m in _ENTRY_RE.finditer(content):
            title = m.group("title").strip()
            url = m.group("url").strip()
            if not title or not url or not _looks_like_url(url):
                logger.debug("[sources] skip malformed entry index=%s", m.group("index"))
                continue
            if url in seen_urls:
                continue
            seen_urls.add(url)
            sources.append(Source(number=len(sources) + 1, title=title, url=url, origin=origin))
    logger.info("[sources:extract_sources] OUT sources=%d", len(sources))
    return sources
