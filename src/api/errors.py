"""JSON error envelope shared by every endpoint.

All failures leave the API as ``{"success": false, "message": ...}`` with
optional ``error`` and ``code`` fields, whether they started as an
:class:`APIError`, an ``HTTPException`` or a request-validation error.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from src.database import serialize_document

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred. Please try again."


class APIError(Exception):
    """An error with an HTTP status that is safe to show the client."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        code: str | None = None,
        error: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.error = error
        self.extra = extra or {}

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.error:
            body["error"] = self.error
        if self.code:
            body["code"] = self.code
        body.update(self.extra)
        return body


def error_body(message: str, **fields: Any) -> dict[str, Any]:
    return {"success": False, "message": message, **{k: v for k, v in fields.items() if v is not None}}


def ok(data: Any = None, **fields: Any) -> dict[str, Any]:
    """Success envelope; ObjectIds anywhere in *data* become strings."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = serialize_document(data)
    body.update(serialize_document(fields))
    return body


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[%s] %s (%s)", _request_id(request), exc.message, exc.error)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        body = {"success": False, **detail}
    else:
        body = error_body(str(detail))
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content=error_body("Validation failed", errors=errors))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[%s] Unhandled error on %s %s", _request_id(request), request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(GENERIC_ERROR_MESSAGE))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


def validated(model_cls: type[BaseModel], data: dict[str, Any]) -> BaseModel:
    """Build *model_cls* from *data*, turning validation failures into a 400."""
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        raise APIError(400, "Validation failed", code="VALIDATION_ERROR", extra={"errors": errors}) from exc
