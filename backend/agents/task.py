"""
TaskAgent — planning, prioritizing and deadline reminders over the user's tasks.

The task summary arrives in the context; this handler never writes tasks.
"""

from agents.base import AgentDefinition, BaseAgent, register_agent_class
from agents.prompts import TASK_PROMPT
from agents.tools import get_available_routes, navigate_to
from config import TEMPERATURE, TOKEN_LIMITS
from core.types import AgentTag


@register_agent_class
class TaskAgent(BaseAgent):
    AGENT_TAG = AgentTag.TASK
    SYSTEM_PROMPT = TASK_PROMPT
    TOOLS = (navigate_to, get_available_routes)

    def __init__(self, inference):
        definition = AgentDefinition(
            tag=AgentTag.TASK,
            model_key="task",
            max_tokens=TOKEN_LIMITS.get("task", 2048),
            temperature=TEMPERATURE.get("task", 0.7),
            can_use_tools=True,
        )
        super().__init__(definition, inference)
