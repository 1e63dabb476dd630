"""
OpenAI-compatible inference backend adapter.

Talks to any server exposing /v1/chat/completions and /v1/models: hosted
OpenAI-style APIs, LM Studio, vLLM and similar. A transport can be injected
so tests never open a socket.
"""

import logging

import httpx

from inference.base import InferenceBackend

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
DISCOVERY_TIMEOUT = 10.0


class OpenAICompatBackend(InferenceBackend):

    def __init__(self, base_url: str = "http://localhost:1234",
                 default_timeout: float = 60, api_key: str = "",
                 transport: httpx.AsyncBaseTransport = None):
        super().__init__(base_url, default_timeout, api_key)
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, CONNECT_TIMEOUT)),
            headers=headers,
            transport=self._transport,
        )

    async def discover_models(self) -> dict[str, dict]:
        try:
            async with self._client(DISCOVERY_TIMEOUT) as client:
                resp = await client.get("/v1/models")
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ConnectionError(f"Cannot reach inference backend at {self.base_url}: {e}") from e

        models = {}
        for m in data.get("data", []):
            if not isinstance(m, dict) or not m.get("id"):
                continue
            models[m["id"]] = m
            self._model_states[m["id"]] = "available"
        logger.info("Backend %s lists %d models", self.base_url, len(models))
        return models

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
        payload = {
            "model": model_id,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            payload["tools"] = tools
            if tool_choice:
                payload["tool_choice"] = tool_choice

        async with self._client(timeout or self.default_timeout) as client:
            resp = await client.post("/v1/chat/completions", json=payload)
            resp.raise_for_status()
            result = resp.json()

        usage = result.get("usage") or {}
        if usage:
            logger.debug("%s used %s prompt + %s completion tokens", model_id,
                         usage.get("prompt_tokens"), usage.get("completion_tokens"))
        choices = result.get("choices") or []
        if choices and isinstance(choices[0], dict) and choices[0].get("finish_reason") == "length":
            logger.warning("%s reply was cut off at max_tokens=%d", model_id, max_tokens)
        return result
