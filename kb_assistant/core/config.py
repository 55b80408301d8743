"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# OpenAI (agent LLM with tool calling)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
AGENT_MAX_TOKENS: int = _env_int("AGENT_MAX_TOKENS", 800)
AGENT_TEMPERATURE: float = _env_float("AGENT_TEMPERATURE", 0.7)

# Google Programmable Search (web_search tool). Both must be set or the tool reports unavailable.
GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "").strip()
GOOGLE_CSE_ID: str = os.getenv("GOOGLE_CSE_ID", "").strip()
GOOGLE_SEARCH_URL: str = "https://www.googleapis.com/customsearch/v1"
WEB_SEARCH_MAX_RESULTS: int = 5

# Milvus Cloud (knowledge-base vectors)
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
KB_COLLECTION_NAME: str = os.getenv("KB_COLLECTION_NAME", "kb_pages").strip() or "kb_pages"

# Hugging Face (query embeddings)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"

# Knowledge-base search defaults
KB_DEFAULT_LIMIT: int = _env_int("KB_DEFAULT_LIMIT", 3)
KB_MAX_LIMIT: int = 10
# Hits scoring below this cosine similarity are not surfaced to the model
KB_SCORE_THRESHOLD: float = _env_float("KB_SCORE_THRESHOLD", 0.5)
KB_SNIPPET_CHARS: int = 500
KB_PAGE_URL_PREFIX: str = "/insight/"

# Agent loop
MAX_AGENT_ROUNDS: int = _env_int("MAX_AGENT_ROUNDS", 8)

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = _env_float("LLM_API_TIMEOUT", 60.0)
TOOL_TIMEOUT: float = _env_float("TOOL_TIMEOUT", 15.0)
STORE_TIMEOUT: float = _env_float("STORE_TIMEOUT", 5.0)

# Session history (SQLite file, relative to project root unless absolute)
SESSION_DB_PATH: str = os.getenv("SESSION_DB_PATH", "data/sessions.db").strip() or "data/sessions.db"
