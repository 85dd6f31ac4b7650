"""
FastAPI application entry point for the portfolio API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from portfolio_api.config import Settings, get_settings
from portfolio_api.dependencies import close_document_store, get_document_store
from portfolio_api.routes import build_resource_router, router
from portfolio_api.schemas import RESOURCES
from portfolio_api.store import DocumentStore

logger = logging.getLogger(__name__)


def create_app(
    store: DocumentStore | None = None, settings: Settings | None = None
) -> FastAPI:
    """
    Build the application. ``store`` and ``settings`` replace the
    environment-driven defaults, which is how tests plug in fakes.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active_store = store if store is not None else get_document_store()
        try:
            await run_in_threadpool(active_store.ping)
        except Exception:
            logger.exception(
                "Could not connect to %s", active_store.__class__.__name__
            )
            raise
        logger.info("Connected to %s", active_store.__class__.__name__)
        try:
            yield
        finally:
            if store is None:
                close_document_store()

    app = FastAPI(title="Portfolio API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if store is not None:
        app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(router)
    for resource in RESOURCES:
        app.include_router(build_resource_router(resource), prefix=settings.api_prefix)
    return app


app = create_app()
