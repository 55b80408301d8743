"""Schemas for the agent query endpoint."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PromptProfile(BaseModel):
    """Selects the system prompt configuration for a query."""

    tone: Literal["default", "detailed", "concise"] = "default"
    include_history: bool = Field(True, description="Send prior session turns to the model.")
    additional_context: str | None = Field(None, description="Extra instructions appended to the system prompt.")


class QueryRequest(BaseModel):
    """Request body for POST /agent/query. History is stored server-side by session_id."""

    query: str = Field(..., min_length=1, description="User question for the agent.")
    session_id: str | None = Field(None, description="Session ID; a new session is created when omitted.")
    profile: PromptProfile = Field(default_factory=PromptProfile)


class Source(BaseModel):
    """Citation derived from one tool result entry; number is unique within a response."""

    number: int = Field(..., ge=1)
    title: str
    url: str
    origin: Literal["kb", "web"]


class AgentResponse(BaseModel):
    """Response for POST /agent/query."""

    answer: str = Field(..., description="Final answer from the agent.")
    sources: list[Source] = Field(default_factory=list, description="Citations, numbered from 1 in tool-result order.")
    query: str
    timestamp: datetime
    session_id: str
    tools_used: list[str] = Field(default_factory=list, description="Tools called during the run, in call order.")
    rounds: int = Field(0, description="Number of model calls made during the run.")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "answer": "LibreTexts is an open-access textbook platform [1].",
                    "sources": [{"number": 1, "title": "About LibreTexts", "url": "/insight/about", "origin": "kb"}],
                    "query": "What is LibreTexts?",
                    "timestamp": "2025-01-01T00:00:00Z",
                    "session_id": "session_1735689600000_3f9a1c2b7d4e",
                    "tools_used": ["knowledge_base_search"],
                    "rounds": 2,
                }
            ]
        }
    }
