"""Schemas for agent sessions and their transcripts."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class Turn(BaseModel):
    """One user or assistant message in a session transcript."""

    role: Literal["user", "assistant"]
    content: str = ""

    model_config = {"frozen": True}


class SessionMetadata(BaseModel):
    total_queries: int = 0
    created_at: datetime
    last_activity_at: datetime
    collection_name: str = "kb_pages"


class Session(BaseModel):
    """Durable, ordered conversation history keyed by session_id."""

    session_id: str
    user_id: str | None = None
    turns: list[Turn] = Field(default_factory=list)
    metadata: SessionMetadata


class CreateSessionRequest(BaseModel):
    """Request body for POST /agent/sessions."""

    user_id: str | None = Field(None, description="Optional user id to associate with the session.")


class CreateSessionResponse(BaseModel):
    session_id: str
