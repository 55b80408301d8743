"""
Retrieval: semantic search over published knowledge-base pages.

Responsibility: Embed the query, search Milvus, return hits as {title, url, snippet, score}.
Relevance cut-off is applied by the caller (the knowledge_base_search tool).
"""

import asyncio
import logging
import re

from kb_assistant.core.config import KB_COLLECTION_NAME, KB_PAGE_URL_PREFIX, KB_SNIPPET_CHARS
from kb_assistant.services.vector_store import embed_query, get_milvus_client

logger = logging.getLogger(__name__)

OUTPUT_FIELDS = ["uuid", "title", "slug", "url", "description", "clean_text", "body"]
PUBLISHED_FILTER = 'status == "published"'

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def _clean_html(text: str) -> str:
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", text or "")).strip()


def _page_url(entity: dict) -> str:
    url = (entity.get("url") or "").strip()
    if url:
        return url
    slug = (entity.get("slug") or "").strip()
    return f"{KB_PAGE_URL_PREFIX}{slug}" if slug else ""


def _to_hit(h: dict) -> dict:
    # Milvus returns dict with "distance", "id", and optionally "entity" (output_fields)
    e = h.get("entity") or h
    snippet = (e.get("description") or "").strip() or _clean_html(e.get("clean_text") or e.get("body") or "")
    return {
        "id": e.get("uuid") or h.get("id"),
        "title": _WS_RE.sub(" ", (e.get("title") or "")).strip(),
        "url": _page_url(e),
        "snippet": snippet[:KB_SNIPPET_CHARS],
        "score": float(h.get("distance", h.get("score", 0.0))),
    }


async def search_kb_pages(query: str, limit: int) -> list[dict]:
    """
    Embed query, search the published KB collection, return up to `limit` hits sorted by score.
    Raises on backend errors; the tool layer turns those into error text.
    """
    logger.info("[retrieval:search_kb_pages] IN  query=%r limit=%d", query, limit)
    if not query or not query.strip():
        return []

    client = get_milvus_client()
    query_vec = await embed_query(query.strip())
    results = await asyncio.to_thread(
        client.search,
        collection_name=KB_COLLECTION_NAME,
        data=[query_vec],
        limit=limit,
        filter=PUBLISHED_FILTER,
        output_fields=OUTPUT_FIELDS,
    )
    # results: list of list of hits (one list per query vector)
    hits = [_to_hit(h) for h in (results[0] if results else [])]
    hits.sort(key=lambda x: -x["score"])
    logger.info(
        "[retrieval:search_kb_pages] OUT hits=%d titles=%s scores=%s",
        len(hits), [x["title"] for x in hits[:5]], [round(x["score"], 4) for x in hits[:5]],
    )
    return hits
