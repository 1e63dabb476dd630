"""
SQLite conversation store — history provider and persistence sink for turns.

Conversations are owned by a user id. Messages are append-only; each finished
turn adds exactly one user and one assistant message and moves the
conversation's active_agent to the tag that answered.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from core.errors import ConversationNotFound
from core.orchestrator import ConversationBoundary
from core.types import AgentTag, Language, Message
from db import db_connection

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
TITLE_MAX_CHARS = 50
LAST_MESSAGE_PREVIEW_CHARS = 100


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _title_from(message: str) -> str:
    text = " ".join((message or "").split())
    if len(text) <= TITLE_MAX_CHARS:
        return text or DEFAULT_TITLE
    return text[:TITLE_MAX_CHARS - 3].rstrip() + "..."


def _row_to_message(row) -> Message:
    return Message.from_dict({
        "role": row["role"],
        "content": row["content"],
        "agent": row["agent"],
        "language": row["language"],
        "created_at": row["created_at"],
    })


class ConversationStore(ConversationBoundary):
    """Conversation persistence on top of db.db_connection()."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = path
        self._reserved: dict[str, tuple[Optional[str], Language]] = {}

    # ── Conversations ──

    def create(self, user_id: Optional[str] = None, language: Language = Language.EN) -> dict:
        conv_id = str(uuid.uuid4())
        now = _now()
        with db_connection(self.path) as conn:
            conn.execute(
                "INSERT INTO conversations (id, user_id, title, language, active_agent, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (conv_id, user_id, DEFAULT_TITLE, Language.normalize(language).value,
                 AgentTag.GENERAL.value, now, now),
            )
            conn.commit()
        logger.info("Created conversation %s for user %s", conv_id, user_id or "-")
        return {"id": conv_id, "title": DEFAULT_TITLE, "activeAgent": AgentTag.GENERAL.value,
                "createdAt": now, "updatedAt": now}

    def reserve(self, user_id: Optional[str] = None, language: Language = Language.EN) -> str:
        """Hand out a conversation id whose row is only written by the first append_turn.

        A turn that fails before persisting leaves nothing behind; call release()
        once the turn is over either way.
        """
        conv_id = str(uuid.uuid4())
        self._reserved[conv_id] = (user_id, Language.normalize(language))
        return conv_id

    def release(self, conv_id: Optional[str]) -> None:
        self._reserved.pop(conv_id, None)

    def exists(self, conv_id: str, user_id: Optional[str] = None) -> bool:
        with db_connection(self.path) as conn:
            row = conn.execute("SELECT user_id FROM conversations WHERE id = ?", (conv_id,)).fetchone()
        if row is None:
            return False
        return user_id is None or row["user_id"] in (None, user_id)

    def get(self, conv_id: str, user_id: Optional[str] = None) -> dict:
        """Return one conversation with all of its messages."""
        with db_connection(self.path) as conn:
            conv = conn.execute("SELECT * FROM conversations WHERE id = ?", (conv_id,)).fetchone()
            if conv is None or (user_id is not None and conv["user_id"] not in (None, user_id)):
                raise ConversationNotFound(conv_id)
            rows = conn.execute(
                "SELECT role, content, agent, language, created_at FROM conversation_messages "
                "WHERE conversation_id = ? ORDER BY id ASC",
                (conv_id,),
            ).fetchall()
        return {
            "id": conv["id"],
            "title": conv["title"],
            "language": conv["language"],
            "activeAgent": conv["active_agent"],
            "createdAt": conv["created_at"],
            "updatedAt": conv["updated_at"],
            "messages": [_row_to_message(r).to_dict() for r in rows],
        }

    def list_for_user(self, user_id: str, limit: int = 20) -> list[dict]:
        """Most recently updated conversations for a user, newest first."""
        with db_connection(self.path) as conn:
            rows = conn.execute("""
                SELECT c.id, c.title, c.active_agent, c.updated_at,
                       COUNT(m.id) AS message_count,
                       (SELECT content FROM conversation_messages
                        WHERE conversation_id = c.id ORDER BY id DESC LIMIT 1) AS last_message
                FROM conversations c
                LEFT JOIN conversation_messages m ON c.id = m.conversation_id
                WHERE c.user_id = ?
                GROUP BY c.id
                ORDER BY c.updated_at DESC
                LIMIT ?
            """, (user_id, limit)).fetchall()
        return [{
            "id": r["id"],
            "title": r["title"],
            "activeAgent": r["active_agent"],
            "updatedAt": r["updated_at"],
            "messageCount": r["message_count"],
            "lastMessage": (r["last_message"] or "")[:LAST_MESSAGE_PREVIEW_CHARS] or None,
        } for r in rows]

    # ── Boundary ──

    async def recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        with db_connection(self.path) as conn:
            rows = conn.execute(
                "SELECT role, content, agent, language, created_at FROM conversation_messages "
                "WHERE conversation_id = ? ORDER BY id DESC LIMIT ?",
                (conversation_id, limit),
            ).fetchall()
        return [_row_to_message(r) for r in reversed(rows)]

    async def append_turn(self, conversation_id: str, user_message: Message,
                          assistant_message: Message) -> None:
        agent = assistant_message.agent_tag or AgentTag.GENERAL
        now = _now()
        with db_connection(self.path) as conn:
            conv = conn.execute(
                "SELECT title FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
            if conv is None:
                if conversation_id not in self._reserved:
                    raise ConversationNotFound(conversation_id)
                user_id, language = self._reserved[conversation_id]
                conn.execute(
                    "INSERT INTO conversations (id, user_id, title, language, active_agent, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (conversation_id, user_id, DEFAULT_TITLE, language.value, agent.value, now, now),
                )
                logger.info("Created conversation %s for user %s", conversation_id, user_id or "-")
                conv = {"title": DEFAULT_TITLE}
            try:
                conn.executemany(
                    "INSERT INTO conversation_messages (conversation_id, role, content, agent, language, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (conversation_id, m.role.value, m.content,
                         m.agent_tag.value if m.agent_tag else None,
                         m.language.value, m.timestamp.isoformat())
                        for m in (user_message, assistant_message)
                    ],
                )
                title = conv["title"]
                if not title or title == DEFAULT_TITLE:
                    title = _title_from(user_message.content)
                conn.execute(
                    "UPDATE conversations SET active_agent = ?, title = ?, updated_at = ? WHERE id = ?",
                    (agent.value, title, now, conversation_id),
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        self._reserved.pop(conversation_id, None)
        logger.debug("Persisted turn on %s (agent=%s)", conversation_id, agent.value)
