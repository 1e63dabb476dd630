"""
Base handler abstraction for the companion's capability handlers.

Provides CapabilityHandler (the interface the orchestrator dispatches to),
AgentDefinition, and BaseAgent, the model-backed scaffolding that all five
handlers inherit from.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from agents.prompts import build_context_summary, language_instruction
from agents.tools import build_tool_schemas, execute_tool
from core.types import AgentContext, AgentTag, HandlerResponse, Role
from inference.base import first_message

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 3


class CapabilityHandler(ABC):
    """One of the five capability variants.

    Handlers must tolerate an empty history, answer in context.language, and
    must not keep a reference to the context after process() returns.
    Exceptions propagate; the orchestrator turns them into a terminal error.
    """

    tag: AgentTag

    @abstractmethod
    async def process(self, message: str, context: AgentContext) -> HandlerResponse:
        ...


@dataclass(frozen=True)
class AgentDefinition:
    tag: AgentTag
    model_key: str
    max_tokens: int = 2048
    temperature: float = 0.7
    can_use_tools: bool = False


class BaseAgent(CapabilityHandler):
    """Model-backed capability handler.

    ## Handler Protocol

    Every subclass must:
    1. Define AGENT_TAG (an AgentTag) and SYSTEM_PROMPT class attributes.
    2. Implement __init__(self, inference) that builds an AgentDefinition
       and calls super().__init__(definition, inference).
    3. Optionally set TOOLS and override build_system_prompt() / metadata().
    4. Decorate the class with @register_agent_class.
    """

    AGENT_TAG: AgentTag = None
    SYSTEM_PROMPT = ""
    TOOLS: tuple = ()

    # Class-level registry: tag -> handler class
    _registry: dict[AgentTag, type] = {}

    @classmethod
    def create_all(cls, inference) -> dict[AgentTag, "BaseAgent"]:
        """Instantiate all registered handler classes, keyed by tag."""
        return {tag: hcls(inference) for tag, hcls in cls._registry.items()}

    def __init__(self, definition: AgentDefinition, inference):
        self.definition = definition
        self.tag = definition.tag
        self.model_key = definition.model_key
        self._inference = inference
        self._tool_schemas = build_tool_schemas(list(self.TOOLS)) if definition.can_use_tools else []

    # ── Prompt Building ──

    def build_system_prompt(self, context: AgentContext) -> str:
        summary = build_context_summary(context)
        if not summary:
            return self.SYSTEM_PROMPT
        return f"{self.SYSTEM_PROMPT}\n\n## User Context\n{summary}"

    @staticmethod
    def format_history(history) -> list[dict]:
        """Convert history Messages to chat messages, dropping empty entries."""
        formatted = []
        for msg in history or ():
            content = getattr(msg, "content", None)
            if not isinstance(content, str) or not content.strip():
                continue
            role = msg.role.value if isinstance(msg.role, Role) else str(msg.role)
            if role not in ("user", "assistant", "system"):
                role = "user"
            formatted.append({"role": role, "content": content})
        return formatted

    def build_messages(self, message: str, context: AgentContext) -> list[dict]:
        system = self.build_system_prompt(context) + language_instruction(context.language)
        return [
            {"role": "system", "content": system},
            *self.format_history(context.history),
            {"role": "user", "content": message if isinstance(message, str) else str(message or "")},
        ]

    # ── LLM Delegation ──

    async def call_llm(self, messages: list[dict], tools: list[dict] = None,
                       tool_choice: str = None) -> dict:
        """Delegate a chat completion to the inference router with this handler's model."""
        return await self._inference.call_llm(
            self.model_key, messages,
            tools=tools,
            max_tokens=self.definition.max_tokens,
            temperature=self.definition.temperature,
            tool_choice=tool_choice,
        )

    @staticmethod
    def extract_content(message: Any) -> str:
        """Pull text out of an OpenAI-style message whatever shape the content has."""
        if message is None:
            return ""
        if isinstance(message, str):
            return message
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part if isinstance(part, str) else (part.get("text") or "")
                for part in content if isinstance(part, (str, dict))
            )
        if isinstance(content, dict) and isinstance(content.get("text"), str):
            return content["text"]
        return ""

    # ── Tool Round ──

    async def run_with_tools(self, messages: list[dict], context: AgentContext) -> tuple[str, list[dict]]:
        """Call the model, running any requested local tools, until it answers in text.

        Returns the final text and the tool execution records.
        """
        messages = list(messages)
        tool_results = []
        for _round in range(MAX_TOOL_ROUNDS):
            result = await self.call_llm(messages, tools=self._tool_schemas or None)
            msg = first_message(result)
            if not msg.get("tool_calls"):
                return self.extract_content(msg), tool_results

            messages.append(msg)
            for tc in msg["tool_calls"]:
                record = self._run_tool_call(tc, context)
                tool_results.append(record)
                messages.append({
                    "role": "tool",
                    "tool_call_id": record["tool_call_id"],
                    "content": record.get("result") or record.get("error", ""),
                })

        logger.warning("%s handler hit the tool-call limit", self.tag.value)
        result = await self.call_llm(messages)
        msg = first_message(result)
        return self.extract_content(msg), tool_results

    def _run_tool_call(self, tool_call: dict, context: AgentContext) -> dict:
        fn = tool_call.get("function") or {}
        name = fn.get("name", "")
        record = {"tool_call_id": tool_call.get("id", ""), "tool_name": name}
        try:
            args = json.loads(fn.get("arguments") or "{}")
        except json.JSONDecodeError as e:
            return {**record, "success": False, "error": f"JSON parse error: {e}"}
        output = execute_tool(name, args if isinstance(args, dict) else {}, context)
        if output.startswith("Error"):
            return {**record, "success": False, "error": output}
        logger.info("%s handler ran tool %s", self.tag.value, name)
        return {**record, "success": True, "result": output}

    # ── Response ──

    def metadata(self, message: str, context: AgentContext) -> dict:
        """Handler-specific metadata merged into the response."""
        return {}

    def format_response(self, content: Any, metadata: Optional[dict] = None) -> HandlerResponse:
        text = content if isinstance(content, str) else str(content or "")
        return HandlerResponse(content=text, metadata={"agent": self.tag.value, **(metadata or {})})

    async def process(self, message: str, context: AgentContext) -> HandlerResponse:
        messages = self.build_messages(message, context)
        content, tool_results = await self.run_with_tools(messages, context)
        meta = self.metadata(message, context)
        if tool_results:
            meta["tool_results"] = tool_results
        return self.format_response(content, meta)


def register_agent_class(cls):
    """Decorator to register a handler class for auto-registration.

    Usage:
        @register_agent_class
        class MyAgent(BaseAgent):
            AGENT_TAG = AgentTag.GENERAL
            ...
    """
    tag = getattr(cls, "AGENT_TAG", None)
    if not isinstance(tag, AgentTag):
        raise ValueError(f"Handler class {cls.__name__} must define an AgentTag AGENT_TAG")
    BaseAgent._registry[tag] = cls
    return cls
