"""
API handlers: call the agent service and map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Exception-to-HTTP mapping lives here
so services stay free of FastAPI/HTTP types. Provider error details are logged, never
returned to the caller.
"""

import logging

from fastapi import HTTPException

from kb_assistant.agent.prompts import ERROR_MESSAGES
from kb_assistant.core.errors import ModelProviderError, SessionStoreError
from kb_assistant.schemas.query import AgentResponse, QueryRequest
from kb_assistant.schemas.session import CreateSessionResponse, Session
from kb_assistant.services.agent_service import AgentService

logger = logging.getLogger(__name__)


async def handle_query(body: QueryRequest, service: AgentService) -> AgentResponse:
    """Run one agent query; 400 on invalid input, 502 on model failure, 500 otherwise."""
    try:
        return await service.query(body.session_id, body.query, body.profile)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ModelProviderError as e:
        logger.error("[api:handle_query] model provider failure: %s", e.message)
        raise HTTPException(status_code=502, detail=ERROR_MESSAGES["general"]) from e
    except Exception as e:
        logger.exception("Agent failed")
        raise HTTPException(status_code=500, detail=ERROR_MESSAGES["general"]) from e


async def handle_create_session(user_id: str | None, service: AgentService) -> CreateSessionResponse:
    try:
        session_id = await service.create_session(user_id)
    except SessionStoreError as e:
        logger.error("[api:handle_create_session] %s", e)
        raise HTTPException(status_code=500, detail="An error occurred while creating the session.") from e
    return CreateSessionResponse(session_id=session_id)


async def handle_get_session(session_id: str, service: AgentService) -> Session:
    try:
        session = await service.store.get_session(session_id)
    except SessionStoreError as e:
        logger.error("[api:handle_get_session] %s", e)
        raise HTTPException(status_code=500, detail="An error occurred while loading the session.") from e
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id!r}")
    return session
