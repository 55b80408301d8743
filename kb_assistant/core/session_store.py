"""
Chat session store backed by SQLite. Keyed by session_id; history is not sent from frontend.

Tables: sessions (metadata, one row per session) and turns (ordered transcript).
Appends for one session are serialized with a per-session asyncio lock and written in
a single transaction, so a user/assistant pair is never split or interleaved.
Blocking sqlite3 calls run in a worker thread under STORE_TIMEOUT. An append that times
out still holds its session lock until the worker thread finishes.
"""

import asyncio
import logging
import sqlite3
import time
import uuid
import weakref
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from kb_assistant.core.config import KB_COLLECTION_NAME, SESSION_DB_PATH, STORE_TIMEOUT
from kb_assistant.core.errors import SessionStoreError
from kb_assistant.schemas.session import Session, SessionMetadata, Turn

logger = logging.getLogger(__name__)

# Project root
_ROOT = Path(__file__).resolve().parent.parent.parent

# Older transcripts stored the assistant side as "agent"
_ROLE_ALIASES = {"agent": "assistant", "ai": "assistant", "human": "user"}


def new_session_id() -> str:
    """session_<epoch ms>_<random hex>; the random part keeps concurrent creations apart."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore:
    """Persistent per-session transcripts with atomic turn-pair appends."""

    def __init__(self, db_path: str | Path | None = None, timeout: float = STORE_TIMEOUT) -> None:
        path = Path(db_path or SESSION_DB_PATH)
        self.db_path = path if path.is_absolute() else _ROOT / path
        self.timeout = timeout
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._initialized = False

    # --- sqlite plumbing ---

    def _get_conn(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        if self._initialized:
            return
        conn = self._get_conn()
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    user_id TEXT,
                    collection_name TEXT NOT NULL,
                    total_queries INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    last_activity_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS turns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_turns_session ON turns (session_id, id);
                """
            )
            conn.commit()
        finally:
            conn.close()
        self._initialized = True

    async def _run(self, op: str, fn: Callable[..., Any], *args: Any) -> Any:
        return await self._wait(op, asyncio.to_thread(fn, *args))

    async def _wait(self, op: str, aw: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(aw, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise SessionStoreError(f"session store {op} timed out after {self.timeout}s") from e
        except sqlite3.Error as e:
            raise SessionStoreError(f"session store {op} failed: {e}") from e

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    # --- blocking implementations ---

    def _insert_session(self, session_id: str, user_id: str | None) -> None:
        self._init_db()
        now = _now()
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO sessions (session_id, user_id, collection_name, total_queries, created_at, last_activity_at) "
                "VALUES (?, ?, ?, 0, ?, ?)",
                (session_id, user_id, KB_COLLECTION_NAME, now, now),
            )
            conn.commit()
        finally:
            conn.close()

    def _select_turns(self, session_id: str) -> list[Turn]:
        self._init_db()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT role, content FROM turns WHERE session_id = ? ORDER BY id ASC",
                (session_id,),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        turns = []
        for row in rows:
            role = _ROLE_ALIASES.get(row["role"], row["role"])
            if role not in ("user", "assistant"):
                continue
            turns.append(Turn(role=role, content=row["content"] or ""))
        return turns

    def _insert_turn_pair(self, session_id: str, user_text: str, assistant_text: str) -> None:
        self._init_db()
        now = _now()
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(
                    "INSERT OR IGNORE INTO sessions (session_id, user_id, collection_name, total_queries, created_at, last_activity_at) "
                    "VALUES (?, NULL, ?, 0, ?, ?)",
                    (session_id, KB_COLLECTION_NAME, now, now),
                )
                conn.executemany(
                    "INSERT INTO turns (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                    [
                        (session_id, "user", user_text or "", now),
                        (session_id, "assistant", assistant_text or "", now),
                    ],
                )
                conn.execute(
                    "UPDATE sessions SET total_queries = total_queries + 1, last_activity_at = ? WHERE session_id = ?",
                    (now, session_id),
                )
        finally:
            conn.close()

    def _select_session(self, session_id: str) -> Session | None:
        self._init_db()
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM sessions WHERE session_id = ?", (session_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return Session(
            session_id=row["session_id"],
            user_id=row["user_id"],
            turns=self._select_turns(session_id),
            metadata=SessionMetadata(
                total_queries=row["total_queries"],
                created_at=datetime.fromisoformat(row["created_at"]),
                last_activity_at=datetime.fromisoformat(row["last_activity_at"]),
                collection_name=row["collection_name"],
            ),
        )

    # --- public async API ---

    async def create_session(self, user_id: str | None = None) -> str:
        """Create an empty session and return its id."""
        session_id = new_session_id()
        await self._run("create", self._insert_session, session_id, user_id)
        logger.info("[session_store:create_session] session_id=%s user_id=%r", session_id, user_id)
        return session_id

    async def load_history(self, session_id: str) -> list[Turn]:
        """Return the session's turns in append order; unknown or empty sessions give []."""
        if not session_id or not isinstance(session_id, str):
            logger.info("[session_store:load_history] IN  session_id=%r -> empty", session_id)
            return []
        turns = await self._run("load", self._select_turns, session_id)
        logger.info("[session_store:load_history] IN  session_id=%s OUT turns=%d", session_id[:32], len(turns))
        return turns

    async def append_turn(self, session_id: str, user_text: str, assistant_text: str) -> None:
        """Append a user turn then an assistant turn, bump total_queries and last activity."""
        if not session_id or not isinstance(session_id, str):
            raise SessionStoreError(f"invalid session_id {session_id!r}")
        async with self._lock_for(session_id):
            write = asyncio.ensure_future(
                asyncio.to_thread(self._insert_turn_pair, session_id, user_text, assistant_text)
            )
            try:
                await self._wait("append", asyncio.shield(write))
            finally:
                # A timed-out write keeps running in its thread; hold the lock until it
                # commits or rolls back so the next append for this session lands after it.
                if not write.done():
                    await asyncio.wait([write])
                    if not write.cancelled() and write.exception() is not None:
                        logger.error(
                            "[session_store:append_turn] late write failed for session_id=%s: %s",
                            session_id[:32], write.exception(),
                        )
        logger.info(
            "[session_store:append_turn] session_id=%s user_len=%d assistant_len=%d",
            session_id[:32], len(user_text or ""), len(assistant_text or ""),
        )

    async def get_session(self, session_id: str) -> Session | None:
        """Return the full session (turns + metadata) or None when unknown."""
        if not session_id:
            return None
        return await self._run("get", self._select_session, session_id)


_default_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Process-wide store used by the API layer."""
    global _default_store
    if _default_store is None:
        _default_store = SessionStore()
    return _default_store
