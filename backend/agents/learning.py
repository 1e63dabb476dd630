"""
LearningAgent — concept explanations and CS study help.
"""

import re
from typing import Optional

from agents.base import AgentDefinition, BaseAgent, register_agent_class
from agents.prompts import LEARNING_PROMPT
from config import TEMPERATURE, TOKEN_LIMITS
from core.types import AgentContext, AgentTag

_TOPIC_RE = re.compile(
    r"(javascript|python|java|react|node|algorithm|data structure|array|loop|"
    r"function|class|oop|database|sql|api|git|html|css|recursion)",
    re.IGNORECASE,
)


def extract_topic(message: str) -> Optional[str]:
    match = _TOPIC_RE.search(message or "")
    return match.group(0).lower() if match else None


@register_agent_class
class LearningAgent(BaseAgent):
    AGENT_TAG = AgentTag.LEARNING
    SYSTEM_PROMPT = LEARNING_PROMPT

    def __init__(self, inference):
        definition = AgentDefinition(
            tag=AgentTag.LEARNING,
            model_key="learning",
            max_tokens=TOKEN_LIMITS.get("learning", 4096),
            temperature=TEMPERATURE.get("learning", 0.9),
        )
        super().__init__(definition, inference)

    def metadata(self, message: str, context: AgentContext) -> dict:
        return {"topic": extract_topic(message)}
