"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from portfolio_api.config import get_settings
from portfolio_api.store import (
    DocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
    SqlDocumentStore,
)

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so every request shares one client.
    """
    global _document_store
    if _document_store is not None:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif not (settings.mongodb_uri or settings.database_url):
        logger.warning(
            "Neither MONGODB_URI nor DATABASE_URL is set; falling back to an "
            "in-memory store, data will be lost on restart"
        )
        _document_store = InMemoryDocumentStore()
    elif settings.mongodb_uri:
        _document_store = MongoDocumentStore(
            settings.mongodb_uri, settings.mongodb_database
        )
    else:
        _document_store = SqlDocumentStore(settings.database_url)
    logger.info("Using %s", _document_store.__class__.__name__)
    return _document_store


def close_document_store() -> None:
    global _document_store
    if _document_store is None:
        return
    _document_store.close()
    _document_store = None
