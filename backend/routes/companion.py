"""Companion turn and conversation endpoints."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from config import RECENT_CONVERSATIONS_LIMIT
from conversations import ConversationStore
from core.errors import ConversationNotFound
from core.orchestrator import Orchestrator
from core.streaming import SSE_HEADERS, SSE_MEDIA_TYPE, encode_event
from core.types import Language, UserIdentity
from dependencies import TurnLocks, current_user, get_orchestrator, get_store, get_turn_locks
from models import CompanionRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _error_response(status: int, code: str, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "requestId": request_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        },
    )


def _wants_stream(request: Request, stream: Optional[bool]) -> bool:
    if stream is not None:
        return stream
    return SSE_MEDIA_TYPE in request.headers.get("accept", "")


@router.post("/api/companion")
async def companion_turn(
    req: CompanionRequest,
    request: Request,
    stream: Optional[bool] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    store: ConversationStore = Depends(get_store),
    locks: TurnLocks = Depends(get_turn_locks),
    user: UserIdentity = Depends(current_user),
):
    request_id = _request_id()
    if not req.message.strip():
        return _error_response(400, "invalid_request", "Message is required", request_id)

    conversation_id = req.conversationId
    if conversation_id:
        if not store.exists(conversation_id, user.user_id):
            return _error_response(404, "conversation_not_found", "Conversation not found", request_id)
    elif user.user_id:
        conversation_id = store.reserve(user.user_id, Language(req.language))

    turn = req.to_turn_request(conversation_id, user)
    logger.debug("Companion request %s: conversation=%s language=%s length=%d",
                 request_id, conversation_id, turn.language.value, len(turn.message))

    if _wants_stream(request, stream):
        return StreamingResponse(
            _event_stream(request, orchestrator, store, turn, locks, request_id),
            media_type=SSE_MEDIA_TYPE,
            headers=SSE_HEADERS,
        )

    try:
        async with locks.for_conversation(conversation_id):
            result = await orchestrator.run(turn)
    finally:
        store.release(conversation_id)

    if not result.ok:
        logger.error("Companion turn %s failed: %s", request_id, result.error.code)
        return _error_response(500, result.error.code, result.error.message, request_id)

    logger.info("Companion response %s: agent=%s confidence=%.2f",
                request_id, result.routing.agent_tag.value, result.routing.confidence)
    return {"success": True, **result.to_dict()}


async def _event_stream(request: Request, orchestrator: Orchestrator, store: ConversationStore,
                        turn, locks: TurnLocks, request_id: str):
    """Encode orchestrator events as SSE frames, stopping if the client goes away."""
    async with locks.for_conversation(turn.conversation_id):
        events = orchestrator.stream(turn)
        try:
            async for event in events:
                if await request.is_disconnected():
                    logger.info("Client disconnected from %s, stopping stream", request_id)
                    return
                yield encode_event(event)
        finally:
            await events.aclose()
            store.release(turn.conversation_id)


@router.get("/api/companion")
def companion_conversations(
    conversationId: Optional[str] = None,
    store: ConversationStore = Depends(get_store),
    user: UserIdentity = Depends(current_user),
):
    request_id = _request_id()
    if not user.user_id:
        return _error_response(401, "unauthenticated", "Authentication required", request_id)

    if conversationId:
        try:
            conversation = store.get(conversationId, user.user_id)
        except ConversationNotFound:
            return _error_response(404, "conversation_not_found", "Conversation not found", request_id)
        return {"success": True, "conversation": conversation}

    return {
        "success": True,
        "conversations": store.list_for_user(user.user_id, RECENT_CONVERSATIONS_LIMIT),
    }
