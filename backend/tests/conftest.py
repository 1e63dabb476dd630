"""
Test fixtures for the companion test suite.
"""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

# Set up a minimal profile before importing anything that reads config
os.environ["PROFILE_PATH"] = str(BACKEND_DIR.parent / "profile.yaml.example")


def chat_reply(content=None, tool_calls=None) -> dict:
    """An OpenAI-style chat completion body."""
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {"choices": [{"message": message,
                         "finish_reason": "tool_calls" if tool_calls else "stop"}]}


class StubHandler:
    """Capability handler returning canned content, or raising."""

    def __init__(self, tag, content="ok", metadata=None, error=None):
        from core.types import AgentTag
        self.tag = AgentTag(tag)
        self.content = content
        self.metadata = metadata or {}
        self.error = error
        self.calls = []

    async def process(self, message, context):
        from core.types import HandlerResponse
        self.calls.append((message, context))
        if self.error is not None:
            raise self.error
        return HandlerResponse(content=self.content, metadata=self.metadata)


class StubRouter:
    """Router returning one fixed decision."""

    def __init__(self, tag="general", confidence=0.9, reasoning="stub"):
        from core.types import AgentTag, RoutingDecision
        self.decision = RoutingDecision(AgentTag.normalize(tag), confidence, reasoning,
                                        requested_tag=tag)
        self.calls = []

    async def classify(self, message, context=None):
        self.calls.append((message, context))
        return self.decision


class MemoryBoundary:
    """In-memory conversation boundary recording every call."""

    def __init__(self, messages=None, fail_append=False):
        self.messages = list(messages or [])
        self.fail_append = fail_append
        self.requested_limits = []
        self.appended = []
        self.active_agent = None

    async def recent_messages(self, conversation_id, limit):
        self.requested_limits.append(limit)
        return self.messages[-limit:]

    async def append_turn(self, conversation_id, user_message, assistant_message):
        if self.fail_append:
            raise RuntimeError("disk full")
        self.appended.append((conversation_id, user_message, assistant_message))
        self.active_agent = assistant_message.agent_tag


@pytest.fixture
def temp_db(tmp_path):
    """A fresh, initialized SQLite database path."""
    from schema import init_db
    db_path = tmp_path / "companion.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def store(temp_db):
    from conversations import ConversationStore
    return ConversationStore(temp_db)


@pytest.fixture
def fake_inference():
    """Inference router stand-in; set call_llm.return_value / side_effect per test."""
    inference = AsyncMock()
    inference.call_llm = AsyncMock(return_value=chat_reply("Hello!"))
    return inference


@pytest.fixture
def make_registry():
    """Build a HandlerRegistry with one stub handler per tag, overridable per tag."""
    from agents.registry import HandlerRegistry
    from core.types import AgentTag

    def _make(tags=None, **overrides):
        handlers = []
        for tag in tags or [t.value for t in AgentTag]:
            handlers.append(overrides.get(tag) or StubHandler(tag, content=f"{tag} answer"))
        return HandlerRegistry(handlers)

    return _make


@pytest.fixture
def make_orchestrator(make_registry):
    """Build an Orchestrator from a router, optional handlers and settings."""
    from core.orchestrator import Orchestrator, OrchestratorSettings

    def _make(router=None, registry=None, boundary=None, **settings):
        settings.setdefault("chunk_delay", 0)
        return Orchestrator(
            router=router or StubRouter(),
            registry=registry or make_registry(),
            boundary=boundary,
            settings=OrchestratorSettings(**settings),
        )

    return _make
