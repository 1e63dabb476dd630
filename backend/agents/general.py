"""
GeneralAgent — greetings, small talk, motivation and anything the router
could not place confidently. Also the fallback for degraded routing.
"""

import re

from agents.base import AgentDefinition, BaseAgent, register_agent_class
from agents.prompts import GENERAL_PROMPT
from agents.tools import get_available_routes, navigate_to, open_quest, open_roadmap
from config import TEMPERATURE, TOKEN_LIMITS
from core.types import AgentContext, AgentTag

_GREETING_RE = re.compile(r"^(hi|hello|hey|হ্যালো|নমস্কার|আসসালামু)")


def response_type(message: str) -> str:
    """Coarse category of a general message: greeting, gratitude, help, support or general."""
    lower = (message or "").lower()
    if _GREETING_RE.match(lower):
        return "greeting"
    if "thank" in lower or "ধন্যবাদ" in lower:
        return "gratitude"
    if "help" in lower or "confused" in lower or "সাহায্য" in lower:
        return "help"
    if "tired" in lower or "stressed" in lower or "difficult" in lower:
        return "support"
    return "general"


@register_agent_class
class GeneralAgent(BaseAgent):
    AGENT_TAG = AgentTag.GENERAL
    SYSTEM_PROMPT = GENERAL_PROMPT
    TOOLS = (navigate_to, get_available_routes, open_roadmap, open_quest)

    def __init__(self, inference):
        definition = AgentDefinition(
            tag=AgentTag.GENERAL,
            model_key="general",
            max_tokens=TOKEN_LIMITS.get("general", 1024),
            temperature=TEMPERATURE.get("general", 0.9),
            can_use_tools=True,
        )
        super().__init__(definition, inference)

    def build_system_prompt(self, context: AgentContext) -> str:
        prompt = super().build_system_prompt(context)
        if context.user.name:
            prompt += f"\n\nThe user's name is {context.user.name}. Address them by name occasionally."
        return prompt

    def metadata(self, message: str, context: AgentContext) -> dict:
        return {"type": response_type(message)}
