"""
Turn data contracts shared by the router, handlers, orchestrator and encoder.

Everything here is immutable once built: a turn reads its AgentContext,
produces one RoutingDecision and one HandlerResponse, and the orchestrator
hands the finished pieces to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class AgentTag(str, Enum):
    GENERAL = "general"
    LEARNING = "learning"
    TASK = "task"
    CODE = "code"
    ROADMAP = "roadmap"

    @classmethod
    def normalize(cls, value: Any) -> "AgentTag":
        """Map any raw tag onto the closed vocabulary; unknown values become GENERAL."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.GENERAL


class Language(str, Enum):
    EN = "en"
    BN = "bn"

    @classmethod
    def normalize(cls, value: Any) -> "Language":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.EN


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TurnState(Enum):
    START = "start"
    ROUTED = "routed"
    PROCESSED = "processed"
    ACTIONS_EXTRACTED = "actions_extracted"
    DONE = "done"
    ERROR = "error"


class EventType(str, Enum):
    STATUS = "status"
    AGENT_START = "agent_start"
    CONTENT_DELTA = "content_delta"
    TOOL_CALL = "tool_call"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _frozen(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    agent_tag: Optional[AgentTag] = None
    language: Language = Language.EN
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "agent": self.agent_tag.value if self.agent_tag else None,
            "language": self.language.value,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_chat(self) -> dict:
        """OpenAI-style {role, content} pair for model calls."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, d: dict) -> "Message":
        ts = d.get("timestamp") or d.get("created_at")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
        agent = d.get("agent") or d.get("agent_tag")
        return cls(
            role=Role(d["role"]),
            content=d.get("content") or "",
            agent_tag=AgentTag.normalize(agent) if agent else None,
            language=Language.normalize(d.get("language", "en")),
            timestamp=ts or _utcnow(),
        )


def conversation_window(messages, limit: int) -> tuple[Message, ...]:
    """Return the last `limit` messages as an immutable window."""
    if limit <= 0:
        return ()
    return tuple(list(messages)[-limit:])


@dataclass(frozen=True)
class DomainSummaries:
    tasks: Mapping = field(default_factory=dict)
    roadmaps: Mapping = field(default_factory=dict)
    quests: Mapping = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "DomainSummaries":
        d = d or {}
        return cls(
            tasks=_frozen(d.get("tasks") if isinstance(d.get("tasks"), dict) else {}),
            roadmaps=_frozen(d.get("roadmaps") if isinstance(d.get("roadmaps"), dict) else {}),
            quests=_frozen(d.get("quests") if isinstance(d.get("quests"), dict) else {}),
        )


@dataclass(frozen=True)
class UserIdentity:
    user_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class AgentContext:
    """Read-only bundle built once per turn and passed to exactly one router and one handler call."""

    history: tuple[Message, ...] = ()
    language: Language = Language.EN
    user: UserIdentity = field(default_factory=UserIdentity)
    domain_summaries: DomainSummaries = field(default_factory=DomainSummaries)
    extra_fields: Mapping = field(default_factory=dict)


@dataclass(frozen=True)
class RoutingDecision:
    agent_tag: AgentTag
    confidence: float
    reasoning: str = ""
    requested_tag: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "agent": self.agent_tag.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


FALLBACK_DECISION = RoutingDecision(AgentTag.GENERAL, 0.0, "fallback")


@dataclass(frozen=True)
class HandlerResponse:
    content: str
    metadata: Mapping = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def tool_results(self) -> list:
        results = self.metadata.get("tool_results") if self.metadata else None
        return list(results) if isinstance(results, (list, tuple)) else []


@dataclass(frozen=True)
class Action:
    kind: str
    params: Mapping = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"action": self.kind, **dict(self.params)}

    @classmethod
    def from_dict(cls, d: dict) -> "Action":
        params = {k: v for k, v in d.items() if k != "action"}
        return cls(kind=str(d["action"]), params=_frozen(params))


@dataclass(frozen=True)
class StreamEvent:
    type: EventType
    payload: dict

    @property
    def terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS


@dataclass(frozen=True)
class TurnRequest:
    """Validated input to one orchestrator run."""

    message: str
    language: Language = Language.EN
    conversation_id: Optional[str] = None
    history: Optional[tuple[Message, ...]] = None
    user: UserIdentity = field(default_factory=UserIdentity)
    context: Mapping = field(default_factory=dict)


@dataclass(frozen=True)
class TurnError:
    code: str
    message: str
    cause: Optional[BaseException] = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class TurnResult:
    """Outcome of a buffered turn. Exactly one of `response` or `error` is set."""

    routing: Optional[RoutingDecision] = None
    response: Optional[HandlerResponse] = None
    actions: tuple[Action, ...] = ()
    conversation_id: Optional[str] = None
    error: Optional[TurnError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {"error": self.error.to_dict()}
        body = {
            "response": {
                "content": self.response.content,
                "agent": self.routing.agent_tag.value,
                "timestamp": self.response.timestamp.isoformat(),
            },
            "routing": self.routing.to_dict(),
            "conversationId": self.conversation_id,
        }
        if self.actions:
            body["actions"] = [a.to_dict() for a in self.actions]
        return body


@dataclass(frozen=True)
class Transition:
    """One step of the turn state machine, as observed by a delivery protocol."""

    state: TurnState
    routing: Optional[RoutingDecision] = None
    response: Optional[HandlerResponse] = None
    actions: tuple[Action, ...] = ()
    conversation_id: Optional[str] = None
    error: Optional[TurnError] = None
