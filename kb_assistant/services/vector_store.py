"""
Vector store client: Milvus Cloud connection and query embeddings (HF Inference API).

Responsibility: Connect to Milvus and embed query text via all-MiniLM-L6-v2.
Corpus ingestion lives outside this service; only the read path is here.
"""

import logging
from typing import Any

import httpx

from kb_assistant.core.config import (
    EMBED_API_TIMEOUT,
    HF_API_KEY,
    HF_EMBED_MODEL,
    MILVUS_TOKEN,
    MILVUS_URI,
)
from kb_assistant.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)
HF_API_URL_STANDARD = f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}"

_milvus_client: Any = None


def _normalize(vec: list[float]) -> list[float]:
    # Milvus COSINE expects comparable magnitudes
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


async def embed_query(text: str) -> list[float]:
    """
    Embed one query string with the Hugging Face Inference API.

    Tries the router endpoint first and falls back to the standard endpoint on 403.
    Raises ServiceUnavailableError when HF_API_KEY is missing, RuntimeError on API errors.
    """
    if not HF_API_KEY:
        raise ServiceUnavailableError("HF_API_KEY must be set to embed knowledge-base queries")

    headers = {
        "Authorization": f"Bearer {HF_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {"inputs": [text], "options": {"wait_for_model": True}}
    response: httpx.Response | None = None

    async with httpx.AsyncClient(timeout=EMBED_API_TIMEOUT) as client:
        for api_url in (HF_API_URL_ROUTER, HF_API_URL_STANDARD):
            response = await client.post(api_url, json=payload, headers=headers)
            if response.status_code == 403 and api_url == HF_API_URL_ROUTER:
                logger.info("[vector_store:embed_query] router returned 403, trying standard endpoint")
                continue
            break

    if response is None or response.status_code != 200:
        status = response.status_code if response is not None else "no response"
        detail = response.text[:200] if response is not None else ""
        if status == 401:
            raise ServiceUnavailableError("Invalid HF API key. Check HF_API_KEY")
        raise RuntimeError(f"HF embedding API error {status}: {detail}")

    result = response.json()
    # Router returns [[...]] for a batch of one; older endpoint may return the bare vector
    if isinstance(result, list) and result and isinstance(result[0], list):
        vec = result[0]
    elif isinstance(result, list):
        vec = result
    else:
        raise RuntimeError(f"Unexpected HF embedding payload: {type(result).__name__}")
    return _normalize([float(x) for x in vec])


def get_milvus_client() -> Any:
    """Connect to Milvus Cloud once and reuse the client. Raises ServiceUnavailableError when unconfigured."""
    global _milvus_client
    if not MILVUS_URI or not MILVUS_TOKEN:
        raise ServiceUnavailableError("MILVUS_URI and MILVUS_TOKEN must be set in .env")
    if _milvus_client is None:
        from pymilvus import MilvusClient

        _milvus_client = MilvusClient(uri=MILVUS_URI, token=MILVUS_TOKEN)
        logger.info("Milvus connection established")
    return _milvus_client
