"""
Abstract base class for inference backend adapters.

The router model and every capability handler reach a model through one of
these adapters. Replies are OpenAI chat-completion dicts; first_message()
pulls the assistant message out of one.
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


def first_message(result) -> dict:
    """Return choices[0].message of a completion, or {} when the reply has none."""
    if not isinstance(result, dict):
        return {}
    choices = result.get("choices") or [{}]
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message")
    return message if isinstance(message, dict) else {}


class InferenceBackend(ABC):
    """One chat-completion server.

    Subclasses own the HTTP details; callers only see discover_models() and
    call_llm(). Errors from the server propagate so the orchestrator can
    decide what a failed turn looks like.
    """

    def __init__(self, base_url: str, default_timeout: float = 60, api_key: str = ""):
        self.base_url = base_url.rstrip("/")
        self.default_timeout = default_timeout
        self.api_key = api_key
        self._model_states: dict[str, str] = {}  # model_id -> state

    @abstractmethod
    async def discover_models(self) -> dict[str, dict]:
        """Models the server reports, keyed by model id. Raises ConnectionError if unreachable."""
        ...

    @abstractmethod
    async def call_llm(
        self,
        model_id: str,
        messages: list[dict],
        tools: list[dict] = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        tool_choice: str = None,
        timeout: float = None,
    ) -> dict:
        """Non-streaming chat completion.

        Args:
            model_id: Model identifier as known by the server.
            messages: OpenAI-format message list.
            tools: Optional function-calling schemas from agents.tools.
            tool_choice: 'auto', 'none', or a tool name; only sent with tools.
            timeout: Per-request timeout override.
        """
        ...

    def get_model_state(self, model_id: str) -> str:
        """'available' once discover_models() has seen the model, else 'unknown'."""
        return self._model_states.get(model_id, "unknown")
