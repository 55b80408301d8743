"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, Depends

from kb_assistant.api.handlers import handle_create_session, handle_get_session, handle_query
from kb_assistant.schemas.query import AgentResponse, QueryRequest
from kb_assistant.schemas.session import CreateSessionRequest, CreateSessionResponse, Session
from kb_assistant.services.agent_service import AgentService, get_agent_service

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Knowledge-base assistant running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Sessions ---

@router.post(
    "/agent/sessions",
    response_model=CreateSessionResponse,
    tags=["sessions"],
    summary="Create an agent session",
)
async def post_session(
    body: CreateSessionRequest | None = None,
    service: AgentService = Depends(get_agent_service),
) -> CreateSessionResponse:
    return await handle_create_session(body.user_id if body else None, service)


@router.get(
    "/agent/sessions/{session_id}",
    response_model=Session,
    tags=["sessions"],
    summary="Get a session transcript and metadata",
    description="404 if the session does not exist.",
)
async def get_session(session_id: str, service: AgentService = Depends(get_agent_service)) -> Session:
    return await handle_get_session(session_id, service)


# --- Query ---

@router.post(
    "/agent/query",
    response_model=AgentResponse,
    tags=["query"],
    summary="Query the knowledge-base agent",
    description="Send a question; receive answer, numbered sources and session_id. 400 on invalid input, 502 when the model provider fails.",
)
async def post_query(body: QueryRequest, service: AgentService = Depends(get_agent_service)) -> AgentResponse:
    logger.info("[api:post_query] IN  query=%r session_id=%s", body.query, body.session_id)
    response = await handle_query(body, service)
    logger.info("[api:post_query] OUT sources=%d answer_len=%d", len(response.sources), len(response.answer))
    return response
