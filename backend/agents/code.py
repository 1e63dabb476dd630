"""
CodeAgent — debugging, review and code examples.
"""

import re
from typing import Optional

from agents.base import AgentDefinition, BaseAgent, register_agent_class
from agents.prompts import CODE_PROMPT
from agents.tools import navigate_to
from config import TEMPERATURE, TOKEN_LIMITS
from core.types import AgentContext, AgentTag

# Checked in order; the first match wins.
_CODE_LANGUAGES = (
    ("javascript", re.compile(r"javascript|\bjs\b|node|react|vue|angular", re.I)),
    ("python", re.compile(r"python|\bpy\b|django|flask", re.I)),
    ("java", re.compile(r"\bjava\b|spring|android", re.I)),
    ("cpp", re.compile(r"c\+\+|\bcpp\b", re.I)),
    ("c", re.compile(r"\bc\b|gcc", re.I)),
    ("typescript", re.compile(r"typescript|\bts\b", re.I)),
    ("sql", re.compile(r"sql|mysql|postgres|database query", re.I)),
    ("html", re.compile(r"html|webpage", re.I)),
    ("css", re.compile(r"\bcss\b|stylesheet", re.I)),
)

_QUERY_TYPES = (
    ("debug", ("debug", "error", "bug", "fix")),
    ("review", ("review", "improve", "optimize")),
    ("explain", ("explain", "what does", "how does")),
    ("generate", ("write", "create", "example")),
)


def detect_code_language(message: str) -> Optional[str]:
    for name, pattern in _CODE_LANGUAGES:
        if pattern.search(message or ""):
            return name
    return None


def classify_code_query(message: str) -> str:
    lower = (message or "").lower()
    for query_type, words in _QUERY_TYPES:
        if any(w in lower for w in words):
            return query_type
    return "general"


@register_agent_class
class CodeAgent(BaseAgent):
    AGENT_TAG = AgentTag.CODE
    SYSTEM_PROMPT = CODE_PROMPT
    TOOLS = (navigate_to,)

    def __init__(self, inference):
        definition = AgentDefinition(
            tag=AgentTag.CODE,
            model_key="code",
            max_tokens=TOKEN_LIMITS.get("code", 4096),
            temperature=TEMPERATURE.get("code", 0.3),
            can_use_tools=True,
        )
        super().__init__(definition, inference)

    def metadata(self, message: str, context: AgentContext) -> dict:
        return {
            "code_language": detect_code_language(message),
            "type": classify_code_query(message),
        }
