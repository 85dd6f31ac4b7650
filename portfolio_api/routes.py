"""
HTTP routes for the portfolio API.

Each resource gets the same create/list/get/update/delete handlers, built by
``build_resource_router`` from its ``ResourceSpec``. Storage errors never
escape a handler: they are logged and returned as a 500 envelope.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from portfolio_api.config import Settings, get_settings
from portfolio_api.dependencies import get_document_store
from portfolio_api.envelope import failure, ok
from portfolio_api.schemas import (
    NO_CHANGES_MESSAGE,
    Envelope,
    HealthResponse,
    ResourceSpec,
)
from portfolio_api.store import (
    ID_FIELD,
    DocumentNotFoundError,
    DocumentStore,
    InvalidIdentifierError,
    parse_object_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ENVELOPE_RESPONSES: dict[int | str, dict[str, Any]] = {
    404: {"model": Envelope},
    500: {"model": Envelope},
}


@router.get("/", response_model=HealthResponse)
def health():
    return HealthResponse(
        message="Server is running smoothly",
        timestamp=datetime.now(timezone.utc),
    )


def _storage_failure(resource: ResourceSpec, action: str, exc: Exception) -> JSONResponse:
    logger.exception("Failed to %s %s: %s", action, resource.name, exc)
    return failure(str(exc), 500)


def _identifier_failure(
    resource: ResourceSpec,
    action: str,
    document_id: str,
    exc: InvalidIdentifierError,
    settings: Settings,
) -> JSONResponse:
    if settings.strict_identifiers:
        logger.info("Rejected %s %s with id %r", action, resource.name, document_id)
        return failure(f"Invalid identifier: {document_id}", 400)
    return _storage_failure(resource, action, exc)


def build_resource_router(resource: ResourceSpec) -> APIRouter:
    resource_router = APIRouter(
        prefix=f"/{resource.name}",
        tags=[resource.name],
        responses=ENVELOPE_RESPONSES,
    )

    @resource_router.post("", status_code=201, response_model=Envelope)
    def create_document(
        payload: Any = Body(None),
        store: DocumentStore = Depends(get_document_store),
    ):
        try:
            document = payload if payload is not None else {}
            result = store.collection(resource.name).insert(document)
            return ok(
                data=result.as_dict(),
                message=resource.created_message,
                status_code=201,
            )
        except Exception as exc:
            return _storage_failure(resource, "create", exc)

    @resource_router.get("", response_model=Envelope)
    def list_documents(store: DocumentStore = Depends(get_document_store)):
        try:
            documents = store.collection(resource.name).find_all()
            return ok(data=documents)
        except Exception as exc:
            return _storage_failure(resource, "list", exc)

    if resource.allow_get_by_id:

        @resource_router.get("/{document_id}", response_model=Envelope)
        def get_document(
            document_id: str,
            store: DocumentStore = Depends(get_document_store),
            settings: Settings = Depends(get_settings),
        ):
            try:
                oid = parse_object_id(document_id)
                document = store.collection(resource.name).find_by_id(oid)
                if document is None and settings.strict_identifiers:
                    raise DocumentNotFoundError(document_id)
                return ok(data=document)
            except InvalidIdentifierError as exc:
                return _identifier_failure(resource, "get", document_id, exc, settings)
            except DocumentNotFoundError:
                return failure(resource.not_found_message, 404)
            except Exception as exc:
                return _storage_failure(resource, "get", exc)

    @resource_router.put("/{document_id}", response_model=Envelope)
    def update_document(
        document_id: str,
        payload: Any = Body(None),
        store: DocumentStore = Depends(get_document_store),
        settings: Settings = Depends(get_settings),
    ):
        try:
            oid = parse_object_id(document_id)
            fields = payload if payload is not None else {}
            if resource.strip_identifier and isinstance(fields, dict):
                fields = {k: v for k, v in fields.items() if k != ID_FIELD}
            modified = store.collection(resource.name).update_by_id(oid, fields)
            if modified == 0:
                return failure(NO_CHANGES_MESSAGE, 404)
            return ok(message=resource.updated_message)
        except InvalidIdentifierError as exc:
            return _identifier_failure(resource, "update", document_id, exc, settings)
        except Exception as exc:
            return _storage_failure(resource, "update", exc)

    @resource_router.delete("/{document_id}", response_model=Envelope)
    def delete_document(
        document_id: str,
        store: DocumentStore = Depends(get_document_store),
        settings: Settings = Depends(get_settings),
    ):
        try:
            oid = parse_object_id(document_id)
            deleted = store.collection(resource.name).delete_by_id(oid)
            if deleted == 0:
                return failure(resource.not_found_message, 404)
            return ok(message=resource.deleted_message)
        except InvalidIdentifierError as exc:
            return _identifier_failure(resource, "delete", document_id, exc, settings)
        except Exception as exc:
            return _storage_failure(resource, "delete", exc)

    return resource_router
