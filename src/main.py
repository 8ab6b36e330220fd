"""Application composition root -- wires all layers into a runnable FastAPI app.

- Reads configuration from environment variables (AppSettings)
- Creates the async DB engine + session factory (STORE_BACKEND=sql)
  or an in-memory record store (STORE_BACKEND=memory, development only)
- Hands the record store to create_app, which mounts every router

Entry point: uvicorn --factory src.main:build_app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from src.gateway.app import create_app
from src.infra.db import create_db_engine, create_session_factory
from src.infra.store import InMemoryRecordStore, SqlRecordStore
from src.shared.settings import AppSettings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine

    from src.ports.record_store import RecordStorePort

logger = logging.getLogger(__name__)


def build_app(settings: AppSettings | None = None) -> FastAPI:
    """Build the application: instantiate adapters, wire dependencies, mount routers.

    This function is the single composition root. No other module reads
    the environment or instantiates store adapters.
    """
    settings = settings or AppSettings.from_env()
    logging.getLogger("src").setLevel(settings.log_level)

    db_engine: AsyncEngine | None = None
    store: RecordStorePort
    if settings.store_backend == "memory":
        logger.warning("Using the in-memory record store; data is lost on restart")
        store = InMemoryRecordStore()
    else:
        db_engine = create_db_engine(settings.database_url)
        store = SqlRecordStore(session_factory=create_session_factory(db_engine))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if db_engine is not None:
            await db_engine.dispose()
            logger.info("Database engine disposed")

    application = create_app(
        store=store,
        jwt_secret=settings.jwt_secret,
        cors_origins=list(settings.cors_origins),
        webhook_secret=settings.webhook_secret,
        lifespan=lifespan,
    )

    logger.info(
        "Traceability Hub app assembled: %d routes mounted (store=%s)",
        len(application.routes),
        settings.store_backend,
    )
    return application
