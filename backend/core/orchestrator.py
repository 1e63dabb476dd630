"""
Orchestrator — the per-turn state machine behind both delivery protocols.

    START -> ROUTED -> PROCESSED -> ACTIONS_EXTRACTED -> DONE

with ERROR reachable from every non-terminal state.

turn() is an async generator of Transitions. run() drains it into one
buffered TurnResult; stream() maps the same transitions onto SSE events.
Because both read the same generator, the streamed deltas always
concatenate to the buffered content.

Persistence happens in the ACTIONS_EXTRACTED -> DONE step, after every
content delta has been handed to the consumer. A consumer that stops
iterating early (client disconnect) therefore never persists the turn.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import AsyncIterator, Optional

from agents.prompts import get_message
from core.actions import extract_actions
from core.errors import INTERNAL_ERROR, HandlerFailure, PersistenceFailure
from core.metrics import AgentMetrics
from core.streaming import (
    agent_start_event,
    chunk_text,
    content_delta_event,
    done_event,
    error_event,
    status_event,
    tool_call_event,
)
from core.types import (
    FALLBACK_DECISION,
    AgentContext,
    AgentTag,
    DomainSummaries,
    Message,
    Role,
    RoutingDecision,
    StreamEvent,
    Transition,
    TurnError,
    TurnRequest,
    TurnResult,
    TurnState,
    conversation_window,
)

logger = logging.getLogger(__name__)


# ── Settings ──

@dataclass(frozen=True)
class OrchestratorSettings:
    confidence_threshold: float = 0.5
    chunk_size: int = 100
    chunk_delay: float = 0.02
    history_window: int = 10

    def __post_init__(self):
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.chunk_delay < 0:
            raise ValueError(f"chunk_delay must be >= 0, got {self.chunk_delay}")
        if self.history_window < 1:
            raise ValueError(f"history_window must be >= 1, got {self.history_window}")

    @classmethod
    def from_config(cls) -> "OrchestratorSettings":
        from config import CONFIDENCE_THRESHOLD, HISTORY_WINDOW, STREAM_CHUNK_DELAY, STREAM_CHUNK_SIZE
        return cls(
            confidence_threshold=CONFIDENCE_THRESHOLD,
            chunk_size=STREAM_CHUNK_SIZE,
            chunk_delay=STREAM_CHUNK_DELAY,
            history_window=HISTORY_WINDOW,
        )


# ── Conversation Boundary ──

class ConversationBoundary(ABC):
    """History provider and persistence sink for conversations."""

    @abstractmethod
    async def recent_messages(self, conversation_id: str, limit: int) -> list[Message]:
        """Return at most `limit` most recent messages, oldest first."""

    @abstractmethod
    async def append_turn(self, conversation_id: str, user_message: Message,
                          assistant_message: Message) -> None:
        """Append both messages and move the active-agent pointer, atomically."""


# ── Orchestrator ──

class Orchestrator:
    """Routes one message, runs one handler, extracts actions, and records the turn."""

    def __init__(self, router, registry, boundary: Optional[ConversationBoundary] = None,
                 settings: Optional[OrchestratorSettings] = None,
                 metrics: Optional[AgentMetrics] = None):
        self.router = router
        self.registry = registry
        self.boundary = boundary
        self.settings = settings or OrchestratorSettings()
        self.metrics = metrics or AgentMetrics()

    # ── Turn Assembly ──

    async def _load_history(self, request: TurnRequest) -> tuple[Message, ...]:
        limit = self.settings.history_window
        if request.history is not None:
            return conversation_window(request.history, limit)
        if self.boundary is None or not request.conversation_id:
            return ()
        try:
            messages = await self.boundary.recent_messages(request.conversation_id, limit)
        except Exception as e:
            logger.warning("Could not load history for %s, continuing without it: %s",
                           request.conversation_id, e)
            return ()
        return conversation_window(messages, limit)

    def _build_context(self, request: TurnRequest, history: tuple[Message, ...]) -> AgentContext:
        raw = dict(request.context or {})
        summaries = DomainSummaries.from_dict(raw)
        extra = {k: v for k, v in raw.items() if k not in ("tasks", "roadmaps", "quests")}
        return AgentContext(
            history=history,
            language=request.language,
            user=request.user,
            domain_summaries=summaries,
            extra_fields=extra,
        )

    async def _classify(self, message: str, context: AgentContext) -> RoutingDecision:
        try:
            decision = await self.router.classify(message, context)
        except Exception as e:
            logger.warning("Router raised, using fallback decision: %s", e)
            return FALLBACK_DECISION
        return self._gate(decision)

    def _gate(self, decision: RoutingDecision) -> RoutingDecision:
        """Apply the confidence threshold and the closed tag vocabulary."""
        tag = AgentTag.normalize(decision.agent_tag)
        if tag is not AgentTag.GENERAL and decision.confidence < self.settings.confidence_threshold:
            logger.info("Confidence %.2f below threshold %.2f, %s forced to general",
                        decision.confidence, self.settings.confidence_threshold, tag.value)
            return replace(decision, agent_tag=AgentTag.GENERAL,
                           requested_tag=decision.requested_tag or tag.value)
        if tag is not decision.agent_tag:
            return replace(decision, agent_tag=tag)
        return decision

    def _error(self, code: str, language, cause: BaseException = None, **variables) -> TurnError:
        return TurnError(code=code, message=get_message(f"errors.{code}", language, **variables),
                         cause=cause)

    async def turn(self, request: TurnRequest) -> AsyncIterator[Transition]:
        """Drive one turn through the state machine, yielding each transition."""
        started = time.monotonic()
        cid = request.conversation_id
        yield Transition(TurnState.START, conversation_id=cid)

        history = await self._load_history(request)
        context = self._build_context(request, history)

        decision = await self._classify(request.message, context)
        tag, handler = self.registry.resolve(decision.agent_tag)
        if tag is not decision.agent_tag:
            logger.warning("No handler registered for %s, dispatching to general", decision.agent_tag.value)
            decision = replace(decision, agent_tag=tag, requested_tag=decision.agent_tag.value)
        yield Transition(TurnState.ROUTED, routing=decision, conversation_id=cid)

        try:
            response = await handler.process(request.message, context)
        except Exception as e:
            failure = HandlerFailure(tag, e)
            logger.error("%s", failure, exc_info=True)
            error = self._error(failure.code, request.language, cause=failure, agent=tag.value)
            self._record(decision, request, started, error)
            yield Transition(TurnState.ERROR, routing=decision, conversation_id=cid, error=error)
            return
        yield Transition(TurnState.PROCESSED, routing=decision, response=response, conversation_id=cid)

        try:
            actions = tuple(extract_actions(response))
        except Exception as e:
            logger.debug("Action extraction failed, treating as no actions: %s", e)
            actions = ()
        yield Transition(TurnState.ACTIONS_EXTRACTED, routing=decision, response=response,
                         actions=actions, conversation_id=cid)

        if self.boundary is not None and cid:
            user_msg = Message(role=Role.USER, content=request.message, language=request.language)
            assistant_msg = Message(role=Role.ASSISTANT, content=response.content,
                                    agent_tag=decision.agent_tag, language=request.language,
                                    timestamp=response.timestamp)
            try:
                await self.boundary.append_turn(cid, user_msg, assistant_msg)
            except Exception as e:
                failure = PersistenceFailure(cid, e)
                logger.error("%s", failure)
                error = self._error(failure.code, request.language, cause=failure)
                self._record(decision, request, started, error)
                yield Transition(TurnState.ERROR, routing=decision, conversation_id=cid, error=error)
                return

        self._record(decision, request, started)
        yield Transition(TurnState.DONE, routing=decision, response=response,
                         actions=actions, conversation_id=cid)

    def _record(self, decision: RoutingDecision, request: TurnRequest, started: float,
                error: Optional[TurnError] = None):
        self.metrics.record_turn(
            decision.agent_tag.value, request.language.value, time.monotonic() - started,
            confidence=decision.confidence, error=error.code if error else None,
        )

    # ── Delivery: buffered ──

    async def run(self, request: TurnRequest) -> TurnResult:
        """Run a turn to completion and return one buffered result."""
        last = None
        async for transition in self.turn(request):
            last = transition
        if last is None or last.state not in (TurnState.DONE, TurnState.ERROR):
            error = self._error(INTERNAL_ERROR, request.language)
            return TurnResult(conversation_id=request.conversation_id, error=error)
        if last.state is TurnState.ERROR:
            return TurnResult(routing=last.routing, conversation_id=last.conversation_id, error=last.error)
        return TurnResult(routing=last.routing, response=last.response, actions=last.actions,
                          conversation_id=last.conversation_id)

    # ── Delivery: streaming ──

    async def stream(self, request: TurnRequest) -> AsyncIterator[StreamEvent]:
        """Run a turn as a sequence of events ending in exactly one done or error."""
        turn = self.turn(request)
        try:
            async for transition in turn:
                state = transition.state
                if state is TurnState.START:
                    yield status_event("routing")
                elif state is TurnState.ROUTED:
                    r = transition.routing
                    yield agent_start_event(r.agent_tag.value, r.confidence, r.reasoning)
                elif state is TurnState.PROCESSED:
                    chunks = chunk_text(transition.response.content, self.settings.chunk_size)
                    for index, chunk in enumerate(chunks):
                        if index and self.settings.chunk_delay:
                            await asyncio.sleep(self.settings.chunk_delay)
                        yield content_delta_event(chunk, index)
                elif state is TurnState.ACTIONS_EXTRACTED:
                    for action in transition.actions:
                        yield tool_call_event(action.to_dict())
                elif state is TurnState.DONE:
                    actions = [a.to_dict() for a in transition.actions]
                    yield done_event(transition.routing.agent_tag.value,
                                     transition.conversation_id, actions)
                    return
                elif state is TurnState.ERROR:
                    yield error_event(transition.error.message, transition.error.code)
                    return
        finally:
            await turn.aclose()
