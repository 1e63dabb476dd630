"""
Database schema — CREATE TABLE statements for the conversation store.

Called once at startup via init_db().
"""

import logging
from pathlib import Path
from typing import Optional, Union

from db import db_connection

logger = logging.getLogger(__name__)


def init_db(path: Optional[Union[str, Path]] = None):
    with db_connection(path) as conn:
        c = conn.cursor()
        c.execute('''CREATE TABLE IF NOT EXISTS conversations (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            title TEXT,
            language TEXT DEFAULT 'en',
            active_agent TEXT DEFAULT 'general',
            created_at TEXT,
            updated_at TEXT
        )''')
        c.execute('''CREATE TABLE IF NOT EXISTS conversation_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            conversation_id TEXT NOT NULL,
            role TEXT NOT NULL,
            content TEXT NOT NULL,
            agent TEXT,
            language TEXT DEFAULT 'en',
            created_at TEXT,
            FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
        )''')
        c.execute('''CREATE INDEX IF NOT EXISTS idx_conversations_user
            ON conversations(user_id, updated_at)''')
        c.execute('''CREATE INDEX IF NOT EXISTS idx_messages_conversation
            ON conversation_messages(conversation_id, id)''')
        conn.commit()
    logger.info("Database initialized")
