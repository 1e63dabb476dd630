"""Health endpoints."""

from fastapi import APIRouter, Request

from config import MODELS
from profiles import get_profile

router = APIRouter()


@router.get("/health")
def health(request: Request):
    ready = getattr(request.app.state, "orchestrator", None) is not None
    return {"status": "ok", "ready": ready}


@router.get("/api/companion/health")
def companion_health(request: Request):
    """Readiness, registered handlers, orchestration settings and turn metrics."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return {"status": "initializing", "ready": False, "handlers": [], "metrics": None}
    settings = orchestrator.settings
    return {
        "status": "healthy",
        "ready": True,
        "system": get_profile().system.name,
        "handlers": [tag.value for tag in orchestrator.registry.tags()],
        "models": dict(MODELS),
        "settings": {
            "confidenceThreshold": settings.confidence_threshold,
            "chunkSize": settings.chunk_size,
            "chunkDelay": settings.chunk_delay,
            "historyWindow": settings.history_window,
        },
        "metrics": orchestrator.metrics.summary(),
    }
