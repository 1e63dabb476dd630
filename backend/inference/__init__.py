"""
Inference package — model access for the router and the capability handlers.

One adapter type (OpenAI-compatible HTTP) and a router that resolves the
model keys router, general, learning, task, code and roadmap to a backend
and model id from profile.yaml.

Usage:
    from inference import InferenceRouter
    router = InferenceRouter()
    router.initialize()
    result = await router.call_llm("learning", messages=[...])
"""

from inference.base import InferenceBackend, first_message
from inference.openai_compat import OpenAICompatBackend
from inference.router import InferenceRouter, ModelRoute

__all__ = [
    "InferenceBackend",
    "InferenceRouter",
    "ModelRoute",
    "OpenAICompatBackend",
    "first_message",
]
