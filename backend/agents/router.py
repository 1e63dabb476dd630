"""
RouterAgent — intent classifier in front of the capability handlers.

Asks the router model for a {agent, confidence, reasoning} JSON object and
turns it into a RoutingDecision. Never raises: any failure becomes the
general/0.0 fallback decision.
"""

import json
import logging
import re

from agents.prompts import ROUTER_PROMPT, language_instruction
from config import ROUTER_MAX_INPUT_CHARS, TEMPERATURE, TOKEN_LIMITS
from core.types import FALLBACK_DECISION, AgentContext, AgentTag, Language, RoutingDecision
from inference.base import first_message

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def _clamp(value) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return 0.0
    if conf != conf:  # NaN
        return 0.0
    return min(1.0, max(0.0, conf))


def parse_routing_reply(content: str) -> RoutingDecision:
    """Parse a router model reply. Raises ValueError when no decision can be read."""
    content = _THINK_RE.sub("", content or "").strip()
    if not content:
        raise ValueError("empty router reply")
    match = _JSON_OBJECT_RE.search(content)
    if not match:
        raise ValueError("no JSON object in router reply")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("router reply is not an object")

    raw_tag = parsed.get("agent")
    tag = AgentTag.normalize(raw_tag)
    reasoning = parsed.get("reasoning")
    decision = RoutingDecision(
        agent_tag=tag,
        confidence=_clamp(parsed.get("confidence")),
        reasoning=reasoning if isinstance(reasoning, str) else "",
        requested_tag=raw_tag if isinstance(raw_tag, str) else None,
    )
    if isinstance(raw_tag, str) and raw_tag.strip().lower() != tag.value:
        logger.warning("Router returned unknown tag %r, normalized to %s", raw_tag, tag.value)
    return decision


class RouterAgent:
    """Classifies one message into the closed tag vocabulary."""

    model_key = "router"

    def __init__(self, inference):
        self._inference = inference
        self.max_tokens = TOKEN_LIMITS.get("router", 1024)
        self.temperature = TEMPERATURE.get("router", 0.3)

    async def classify(self, message: str, context: AgentContext = None) -> RoutingDecision:
        # Classification always runs with the English instruction.
        messages = [
            {"role": "system", "content": ROUTER_PROMPT + language_instruction(Language.EN)},
            {"role": "user", "content": str(message or "")[:ROUTER_MAX_INPUT_CHARS]},
        ]
        try:
            result = await self._inference.call_llm(
                self.model_key, messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            reply = first_message(result)
            decision = parse_routing_reply(reply.get("content") or "")
        except Exception as e:
            logger.warning("Routing degraded to fallback: %s", e)
            return FALLBACK_DECISION
        logger.info("Routed to %s (confidence=%.2f): %s",
                    decision.agent_tag.value, decision.confidence, decision.reasoning)
        return decision
