"""
Integration Hub — application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.registry import AdapterRegistry
from api.integration_routes import router as integration_router
from api.middleware import register_middleware
from api.oauth_routes import router as oauth_router
from auth.routes import router as auth_router
from config.settings import config
from connectors.registry import ConnectorRegistry
from database.session import create_tables

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "asyncio", "aiosqlite"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Integration Hub",
        version="1.0.0",
        description="OAuth connections and provider data for dashboard widgets.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(auth_router, prefix="/api/v1/auth")
    app.include_router(oauth_router, prefix="/api/v1/oauth")
    app.include_router(integration_router, prefix="/api/v1")

    @app.on_event("startup")
    async def on_startup():
        if config.auto_create_tables:
            logger.info("Creating missing tables…")
            await create_tables()

        ConnectorRegistry().log_configuration()

        logger.info("Discovering adapters…")
        actions = AdapterRegistry().list_actions()
        logger.info("Adapter actions: %s", actions)

        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
