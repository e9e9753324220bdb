"""
Drive Link: application entry point.
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_exception_handlers, register_middleware
from config.settings import config
from connectors.encryption import is_encryption_enabled
from connectors.registry import ConnectorRegistry
from connectors.routes import router as drive_router

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Drive Link",
        version="1.0.0",
        description="Linked Google Drive accounts: OAuth, token lifecycle and storage stats.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    app.include_router(drive_router, prefix="/api/v1/drive")

    @app.on_event("startup")
    async def on_startup():
        from database.session import create_tables

        ConnectorRegistry().discover()
        is_encryption_enabled()
        await create_tables()
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
