"""
Configuration — centralized settings for the companion backend.
User-configurable values come from profile.yaml via get_profile(),
with COMPANION_* environment variables taking precedence.
Internal constants remain as code constants.
"""

import os
from pathlib import Path as _Path

from profiles import MODEL_KEYS, get_profile

_profile = get_profile()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else float(default)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else int(default)


# ── Model IDs from profile ──
MODELS = {}
for _key in MODEL_KEYS:
    _mcfg = _profile.get_model(_key)
    if _mcfg and _mcfg.model_id:
        MODELS[_key] = _mcfg.model_id

# ── Token Limits per model key ──
TOKEN_LIMITS = {key: _profile.get_model(key).max_tokens for key in MODEL_KEYS}
TOKEN_LIMITS["default"] = 2048

# ── Temperature defaults ──
TEMPERATURE = {key: _profile.get_model(key).temperature for key in MODEL_KEYS}
TEMPERATURE["default"] = 0.7

# ── Orchestration ──
CONFIDENCE_THRESHOLD = _env_float(
    "COMPANION_CONFIDENCE_THRESHOLD", _profile.orchestration.confidence_threshold)
STREAM_CHUNK_SIZE = _env_int(
    "COMPANION_STREAM_CHUNK_SIZE", _profile.orchestration.stream_chunk_size)
STREAM_CHUNK_DELAY = _env_int(
    "COMPANION_STREAM_CHUNK_DELAY_MS", _profile.orchestration.stream_chunk_delay_ms) / 1000.0
HISTORY_WINDOW = _env_int(
    "COMPANION_HISTORY_WINDOW", _profile.orchestration.history_window)

# ── Router ──
ROUTER_MAX_INPUT_CHARS = 2000

# ── HTTP input limits ──
MAX_MESSAGE_LENGTH = 10_000
RECENT_CONVERSATIONS_LIMIT = 20

# ── Persistent State ──
_default_db = _Path(__file__).parent / "companion.db"
DB_PATH = _Path(os.environ.get("COMPANION_DB_PATH") or _profile.storage.db_path or _default_db)

# ── Web ──
CORS_ORIGINS = _profile.web.cors_origins
