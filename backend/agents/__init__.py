"""
Agent System — import all handlers to trigger auto-registration.

Each handler decorated with @register_agent_class registers itself in
BaseAgent._registry on import. Importing this package ensures all five
capability handlers are available for BaseAgent.create_all().
"""

import logging

from agents.base import BaseAgent
from agents.registry import HandlerRegistry
from agents.router import RouterAgent

from agents.general import GeneralAgent  # noqa: F401
from agents.learning import LearningAgent  # noqa: F401
from agents.task import TaskAgent  # noqa: F401
from agents.code import CodeAgent  # noqa: F401
from agents.roadmap import RoadmapAgent  # noqa: F401

logger = logging.getLogger(__name__)


def build_registry(inference) -> HandlerRegistry:
    """Instantiate every registered handler against one inference router."""
    handlers = BaseAgent.create_all(inference)
    logger.info("Registered handlers: %s", ", ".join(t.value for t in handlers))
    return HandlerRegistry(handlers.values())


__all__ = ["BaseAgent", "HandlerRegistry", "RouterAgent", "build_registry"]
