"""
Inherit Companion — multi-agent chat companion for CS students.
FastAPI backend: routes each message to one capability handler and answers
as buffered JSON or a server-sent event stream.
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from agents import RouterAgent, build_registry
from conversations import ConversationStore
from core.metrics import AgentMetrics
from core.orchestrator import Orchestrator, OrchestratorSettings
from dependencies import TurnLocks
from inference import InferenceRouter
from profiles import get_profile
from routes import register_routes
from schema import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    init_db(config.DB_PATH)
    inference = InferenceRouter()
    inference.initialize()
    available = await inference.discover_models()
    configured = {model_id for _backend, model_id in inference.model_map.values()}
    for model_id in sorted(configured - set(available)):
        logger.warning("Model %s is configured but not listed by any backend", model_id)
    settings = OrchestratorSettings.from_config()
    app.state.store = ConversationStore(config.DB_PATH)
    app.state.turn_locks = TurnLocks()
    app.state.orchestrator = Orchestrator(
        router=RouterAgent(inference),
        registry=build_registry(inference),
        boundary=app.state.store,
        settings=settings,
        metrics=AgentMetrics(),
    )
    logger.info("Companion ready: threshold=%.2f chunk_size=%d history_window=%d db=%s",
                settings.confidence_threshold, settings.chunk_size,
                settings.history_window, config.DB_PATH)
    yield
    app.state.orchestrator = None


app = FastAPI(
    title=get_profile().system.name,
    description="Multi-agent learning companion API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_routes(app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
