"""
Request dependencies — access to the app-scoped orchestrator and store,
readiness checks, caller identity and per-conversation turn locks.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import HTTPException, Request

from conversations import ConversationStore
from core.orchestrator import Orchestrator
from core.types import UserIdentity


class TurnLocks:
    """One asyncio.Lock per conversation so turns on it run one at a time.

    A lock lives only while some turn holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def for_conversation(self, conversation_id: Optional[str]):
        if not conversation_id:
            yield
            return
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[conversation_id] -= 1
            if not self._users[conversation_id]:
                del self._users[conversation_id]
                del self._locks[conversation_id]

    def __len__(self) -> int:
        return len(self._locks)


def require_ready(request: Request):
    """Dependency that returns 503 while the orchestrator is not built yet."""
    if getattr(request.app.state, "orchestrator", None) is None:
        raise HTTPException(status_code=503, detail="Companion is still initializing")


def get_orchestrator(request: Request) -> Orchestrator:
    """Return the Orchestrator instance from app state."""
    require_ready(request)
    return request.app.state.orchestrator


def get_store(request: Request) -> ConversationStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Conversation store is not available")
    return store


def get_turn_locks(request: Request) -> TurnLocks:
    locks = getattr(request.app.state, "turn_locks", None)
    if locks is None:
        locks = request.app.state.turn_locks = TurnLocks()
    return locks


def current_user(request: Request) -> UserIdentity:
    """Caller identity as forwarded by the authenticating proxy."""
    user_id = (request.headers.get("x-user-id") or "").strip()[:128]
    name = (request.headers.get("x-user-name") or "").strip()[:128]
    return UserIdentity(user_id=user_id or None, name=name or None)
