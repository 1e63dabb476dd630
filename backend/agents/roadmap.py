"""
RoadmapAgent — learning-path progress, next topics and career guidance.

Can show a roadmap inline (render_roadmap) or open the roadmaps page.
"""

from agents.base import AgentDefinition, BaseAgent, register_agent_class
from agents.prompts import ROADMAP_PROMPT
from agents.tools import navigate_to, open_roadmap, render_roadmap
from config import TEMPERATURE, TOKEN_LIMITS
from core.types import AgentContext, AgentTag


@register_agent_class
class RoadmapAgent(BaseAgent):
    AGENT_TAG = AgentTag.ROADMAP
    SYSTEM_PROMPT = ROADMAP_PROMPT
    TOOLS = (render_roadmap, open_roadmap, navigate_to)

    def __init__(self, inference):
        definition = AgentDefinition(
            tag=AgentTag.ROADMAP,
            model_key="roadmap",
            max_tokens=TOKEN_LIMITS.get("roadmap", 2048),
            temperature=TEMPERATURE.get("roadmap", 0.7),
            can_use_tools=True,
        )
        super().__init__(definition, inference)

    def metadata(self, message: str, context: AgentContext) -> dict:
        current = context.domain_summaries.roadmaps.get("currentRoadmap")
        if isinstance(current, dict) and current.get("title"):
            return {"roadmap": current["title"]}
        return {}
