"""
InferenceRouter — maps the companion's model keys onto backend adapters.

Each of the six model keys (router, general, learning, task, code, roadmap)
is resolved once, at initialize(), to a ModelRoute: which backend serves it,
under what model id, and with which default token limit and temperature.
call_llm() takes a model key where InferenceBackend.call_llm() takes a
model id; unknown strings are sent to the default backend as raw model ids.

Usage:
    router = InferenceRouter()
    router.initialize()
    result = await router.call_llm("router", messages=[...])
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from inference.base import InferenceBackend
from inference.openai_compat import OpenAICompatBackend
from profiles import MODEL_KEYS, Profile, get_profile

logger = logging.getLogger(__name__)

# Backend type string in profile.yaml -> adapter class
_BACKEND_CLASSES: dict[str, type[InferenceBackend]] = {
    "openai": OpenAICompatBackend,
}


@dataclass(frozen=True)
class ModelRoute:
    backend: str
    model_id: str
    max_tokens: int = 2048
    temperature: float = 0.7


class InferenceRouter:
    """Owns the backend adapters and the model-key routing table."""

    def __init__(self, profile: Optional[Profile] = None):
        self._profile = profile
        self._backends: dict[str, InferenceBackend] = {}
        self._routes: dict[str, ModelRoute] = {}
        self._default_backend: Optional[str] = None
        self._initialized = False

    @property
    def profile(self) -> Profile:
        return self._profile or get_profile()

    def initialize(self):
        """(Re)build adapters and routes from the profile."""
        cfg = self.profile.inference
        self._backends = self._build_backends(cfg)

        if "default" in self._backends:
            self._default_backend = "default"
        else:
            self._default_backend = next(iter(self._backends), None)
            if self._default_backend is None:
                logger.warning("No inference backends enabled; every model call will fail")

        self._routes = {}
        for key in MODEL_KEYS:
            route = self._build_route(key)
            if route is not None:
                self._routes[key] = route
                logger.info("Model key '%s' -> %s on '%s'", key, route.model_id, route.backend)

        missing = [k for k in MODEL_KEYS if k not in self._routes]
        if missing:
            logger.warning("No model configured for: %s", ", ".join(missing))
        self._initialized = True

    def _build_backends(self, cfg) -> dict[str, InferenceBackend]:
        backends = {}
        for b in cfg.backends:
            if not b.enabled:
                logger.info("Skipping disabled backend: %s", b.name)
                continue
            adapter_cls = _BACKEND_CLASSES.get(b.type.lower())
            if adapter_cls is None:
                logger.error("Unknown backend type '%s' for backend '%s'. Supported types: %s",
                             b.type, b.name, ", ".join(_BACKEND_CLASSES))
                continue
            backends[b.name] = adapter_cls(
                base_url=b.endpoint,
                default_timeout=cfg.timeout_seconds,
                api_key=b.api_key,
            )
            logger.info("Registered backend '%s' (%s) at %s", b.name, b.type, b.endpoint)
        return backends

    def _build_route(self, key: str) -> Optional[ModelRoute]:
        model_cfg = self.profile.get_model(key)
        if model_cfg is None or not model_cfg.model_id:
            return None
        backend = model_cfg.backend or "default"
        if backend not in self._backends:
            if self._default_backend is None:
                logger.error("Backend '%s' for model key '%s' not found and no default", backend, key)
                return None
            logger.warning("Backend '%s' for model key '%s' not found; using '%s'",
                           backend, key, self._default_backend)
            backend = self._default_backend
        return ModelRoute(backend, model_cfg.model_id, model_cfg.max_tokens, model_cfg.temperature)

    def _ensure_initialized(self):
        if not self._initialized:
            self.initialize()

    def _resolve(self, model_key_or_id: str) -> tuple[InferenceBackend, ModelRoute]:
        self._ensure_initialized()
        route = self._routes.get(model_key_or_id)
        if route is not None:
            return self._backends[route.backend], route
        if model_key_or_id in MODEL_KEYS:
            raise ValueError(f"No model configured for key '{model_key_or_id}'")
        if self._default_backend is None:
            raise ValueError(f"Cannot resolve model '{model_key_or_id}': no default backend")
        return self._backends[self._default_backend], ModelRoute(self._default_backend, model_key_or_id)

    @property
    def backends(self) -> dict[str, InferenceBackend]:
        self._ensure_initialized()
        return dict(self._backends)

    @property
    def model_map(self) -> dict[str, tuple[str, str]]:
        """Model key -> (backend_name, model_id)."""
        self._ensure_initialized()
        return {key: (r.backend, r.model_id) for key, r in self._routes.items()}

    async def discover_models(self) -> dict[str, dict]:
        """Ask every backend for its models concurrently; unreachable backends are skipped."""
        self._ensure_initialized()
        names = list(self._backends)
        results = await asyncio.gather(
            *(self._backends[n].discover_models() for n in names), return_exceptions=True,
        )
        found = {}
        for name, models in zip(names, results):
            if isinstance(models, Exception):
                logger.error("Failed to discover models on '%s': %s", name, models)
                continue
            for mid, meta in models.items():
                found[mid] = {**meta, "_backend": name}
        return found

    async def call_llm(
        self,
        model_key_or_id: str,
        messages: list[dict],
        tools: list[dict] = None,
        max_tokens: int = None,
        temperature: float = None,
        tool_choice: str = None,
        timeout: float = None,
    ) -> dict:
        """Chat completion for a model key. Unset limits come from the key's profile entry."""
        backend, route = self._resolve(model_key_or_id)
        return await backend.call_llm(
            model_id=route.model_id,
            messages=messages,
            tools=tools,
            max_tokens=route.max_tokens if max_tokens is None else max_tokens,
            temperature=route.temperature if temperature is None else temperature,
            tool_choice=tool_choice,
            timeout=timeout,
        )
