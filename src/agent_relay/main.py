from __future__ import annotations

import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .chat import build_dispatcher
from .config import Settings, get_settings
from .router import ProviderRouter

# Configure logging for the entire agent_relay package
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# Set our package to INFO level
logging.getLogger("agent_relay").setLevel(logging.INFO)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    provider_router: ProviderRouter | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    provider_router = provider_router or ProviderRouter(settings)

    app = FastAPI(
        title="Agent Relay",
        description="Routes chat messages to completion models, a local coding agent and hosted agents",
        version="0.1.0",
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.provider_router = provider_router
    app.state.dispatcher = build_dispatcher(settings, provider_router)
    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Agent relay starting up")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Agent relay shutting down")
        await provider_router.close()

    return app


app = create_app()
