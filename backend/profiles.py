"""
Profile System — loads profile.yaml and provides validated configuration.

The profile is the single source of truth for deployment settings:
system name, inference backends, model assignments per capability,
orchestration tunables, storage location, and CORS origins.

Usage:
    from profiles import get_profile
    profile = get_profile()
    print(profile.orchestration.confidence_threshold)
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# ── Profile Path Resolution ──
_PROJECT_ROOT = Path(__file__).parent.parent
_DEFAULT_PROFILE_PATH = _PROJECT_ROOT / "profile.yaml"

MODEL_KEYS = ("router", "general", "learning", "task", "code", "roadmap")


# ── Dataclasses ──

@dataclass
class SystemConfig:
    name: str = "Inherit Companion"
    description: str = ""


@dataclass
class WebConfig:
    cors_origins: list[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])


@dataclass
class InferenceBackendConfig:
    name: str = "default"
    type: str = "openai"
    endpoint: str = "http://localhost:1234"
    api_key: str = ""  # loaded from COMPANION_INFERENCE_API_KEY
    enabled: bool = True


@dataclass
class ModelConfig:
    model_id: str = ""
    backend: str = "default"
    max_tokens: int = 4096
    temperature: float = 0.7


@dataclass
class ModelsConfig:
    router: ModelConfig = field(default_factory=lambda: ModelConfig(
        max_tokens=1024, temperature=0.3))
    general: ModelConfig = field(default_factory=lambda: ModelConfig(temperature=0.9))
    learning: ModelConfig = field(default_factory=lambda: ModelConfig(temperature=0.9))
    task: ModelConfig = field(default_factory=ModelConfig)
    code: ModelConfig = field(default_factory=ModelConfig)
    roadmap: ModelConfig = field(default_factory=ModelConfig)


@dataclass
class InferenceConfig:
    backends: list[InferenceBackendConfig] = field(default_factory=lambda: [InferenceBackendConfig()])
    models: ModelsConfig = field(default_factory=ModelsConfig)
    timeout_seconds: float = 60.0


@dataclass
class OrchestrationConfig:
    confidence_threshold: float = 0.5
    stream_chunk_size: int = 100
    stream_chunk_delay_ms: int = 20
    history_window: int = 10


@dataclass
class StorageConfig:
    db_path: str = ""  # empty -> backend/companion.db


@dataclass
class Profile:
    system: SystemConfig = field(default_factory=SystemConfig)
    web: WebConfig = field(default_factory=WebConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def get_backend(self, name: str = "default") -> Optional[InferenceBackendConfig]:
        """Get an inference backend config by name."""
        for b in self.inference.backends:
            if b.name == name:
                return b
        return None

    def get_model(self, key: str) -> Optional[ModelConfig]:
        """Get the ModelConfig assigned to a model key."""
        return getattr(self.inference.models, key, None)


# ── Parsing ──

def _parse_dict(data: dict, cls, **overrides):
    """Create a dataclass instance from a dict, ignoring unknown keys."""
    field_names = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in field_names}
    filtered.update(overrides)
    return cls(**filtered)


def _load_profile_from_dict(raw: dict) -> Profile:
    """Parse a raw YAML dict into a Profile dataclass."""
    profile = Profile()

    if "system" in raw and isinstance(raw["system"], dict):
        profile.system = _parse_dict(raw["system"], SystemConfig)

    if "web" in raw and isinstance(raw["web"], dict):
        profile.web = _parse_dict(raw["web"], WebConfig)

    # Inference
    if "inference" in raw and isinstance(raw["inference"], dict):
        inf_raw = raw["inference"]
        backends = []
        for b in inf_raw.get("backends", []):
            if isinstance(b, dict):
                b_data = b.copy()
                b_data.setdefault("api_key", os.environ.get("COMPANION_INFERENCE_API_KEY", ""))
                backends.append(_parse_dict(b_data, InferenceBackendConfig))
        if not backends:
            backends = [InferenceBackendConfig()]

        models = ModelsConfig()
        models_raw = inf_raw.get("models", {})
        if isinstance(models_raw, dict):
            for key in MODEL_KEYS:
                model_raw = models_raw.get(key)
                if isinstance(model_raw, dict):
                    default = getattr(models, key)
                    setattr(models, key, _parse_dict(
                        model_raw, ModelConfig,
                        max_tokens=model_raw.get("max_tokens", default.max_tokens),
                        temperature=model_raw.get("temperature", default.temperature),
                    ))

        profile.inference = InferenceConfig(
            backends=backends,
            models=models,
            timeout_seconds=inf_raw.get("timeout_seconds", 60.0),
        )

    if "orchestration" in raw and isinstance(raw["orchestration"], dict):
        profile.orchestration = _parse_dict(raw["orchestration"], OrchestrationConfig)

    if "storage" in raw and isinstance(raw["storage"], dict):
        profile.storage = _parse_dict(raw["storage"], StorageConfig)

    return profile


def _profile_path() -> Path:
    env_path = os.environ.get("PROFILE_PATH")
    return Path(env_path) if env_path else _DEFAULT_PROFILE_PATH


def _load_profile() -> Profile:
    """Load profile from YAML file. Falls back to defaults if missing."""
    profile_path = _profile_path()

    if not profile_path.exists():
        logger.info("No profile.yaml found at %s — using defaults", profile_path)
        return Profile()

    try:
        raw = yaml.safe_load(profile_path.read_text()) or {}
        if not isinstance(raw, dict):
            logger.warning("profile.yaml is not a valid YAML mapping — using defaults")
            return Profile()
        profile = _load_profile_from_dict(raw)
        logger.info("Profile loaded: system=%s, threshold=%s, chunk_size=%s",
                    profile.system.name,
                    profile.orchestration.confidence_threshold,
                    profile.orchestration.stream_chunk_size)
        return profile
    except (OSError, yaml.YAMLError, TypeError) as e:
        logger.error("Failed to load profile.yaml: %s — using defaults", e)
        return Profile()


# ── Singleton ──

_profile: Optional[Profile] = None


def get_profile() -> Profile:
    """Return the validated profile singleton. Loads on first call."""
    global _profile
    if _profile is None:
        _profile = _load_profile()
    return _profile


def reload_profile() -> Profile:
    """Force reload of the profile from disk."""
    global _profile
    _profile = _load_profile()
    return _profile
