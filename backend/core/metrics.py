"""
Agent performance metrics — in-process counters for finished turns.

Tracks turn and error counts, per-agent and per-language usage, and bounded
samples of response times and routing confidence for the health endpoint.
"""

import logging
import threading
import time
from collections import deque
from typing import Optional

from core.types import AgentTag, Language

logger = logging.getLogger(__name__)

MAX_RESPONSE_TIME_SAMPLES = 100
MAX_CONFIDENCE_SAMPLES = 100
MAX_ERROR_SAMPLES = 50


class AgentMetrics:
    """Thread-safe rolling metrics for the orchestrator."""

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        with self._lock:
            self.total_turns = 0
            self.total_errors = 0
            self.agent_usage = {tag.value: 0 for tag in AgentTag}
            self.language_usage = {lang.value: 0 for lang in Language}
            self.response_times: deque[float] = deque(maxlen=MAX_RESPONSE_TIME_SAMPLES)
            self.confidences: deque[float] = deque(maxlen=MAX_CONFIDENCE_SAMPLES)
            self.errors: deque[dict] = deque(maxlen=MAX_ERROR_SAMPLES)
            self.started_at = time.time()

    def record_turn(self, agent: Optional[str], language: str, elapsed: float,
                    confidence: Optional[float] = None, error: Optional[str] = None):
        with self._lock:
            self.total_turns += 1
            if agent in self.agent_usage:
                self.agent_usage[agent] += 1
            if language in self.language_usage:
                self.language_usage[language] += 1
            self.response_times.append(elapsed)
            if confidence is not None:
                self.confidences.append(confidence)
            if error:
                self.total_errors += 1
                self.errors.append({"agent": agent, "error": error, "timestamp": time.time()})

    def summary(self) -> dict:
        with self._lock:
            times = list(self.response_times)
            confs = list(self.confidences)
            return {
                "total_turns": self.total_turns,
                "total_errors": self.total_errors,
                "error_rate": round(self.total_errors / self.total_turns, 4) if self.total_turns else 0.0,
                "agent_usage": dict(self.agent_usage),
                "language_usage": dict(self.language_usage),
                "avg_response_seconds": round(sum(times) / len(times), 3) if times else None,
                "max_response_seconds": round(max(times), 3) if times else None,
                "avg_confidence": round(sum(confs) / len(confs), 3) if confs else None,
                "recent_errors": list(self.errors)[-5:],
                "uptime_seconds": round(time.time() - self.started_at, 1),
            }
