"""
JSON envelope helpers shared by every resource handler.
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

_OMIT = object()

ENCODERS = {ObjectId: str}


def envelope(
    status_code: int,
    *,
    success: bool,
    message: str | None = None,
    data: Any = _OMIT,
) -> JSONResponse:
    content: dict[str, Any] = {"success": success}
    if message is not None:
        content["message"] = message
    if data is not _OMIT:
        content["data"] = jsonable_encoder(data, custom_encoder=ENCODERS)
    return JSONResponse(status_code=status_code, content=content)


def ok(
    *, data: Any = _OMIT, message: str | None = None, status_code: int = 200
) -> JSONResponse:
    return envelope(status_code, success=True, message=message, data=data)


def failure(message: str, status_code: int) -> JSONResponse:
    return envelope(status_code, success=False, message=message)
