"""JSON error bodies that always carry the request id."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pawsafety.api.request_id import get_request_id
from pawsafety.infra.documents import DocumentNotFound

logger = logging.getLogger(__name__)


def _error_body(request: Request, detail: Any, **extra: Any) -> dict:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return {"detail": detail, **extra, "request_id": request_id}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=422, content=_error_body(request, "validation_error", errors=errors))

    @app.exception_handler(DocumentNotFound)
    async def vanished_document(request: Request, exc: DocumentNotFound) -> JSONResponse:
        # A row deleted between a service's read and its update.
        logger.info("document vanished mid-request", extra={"collection": exc.collection, "doc_id": exc.doc_id})
        return JSONResponse(status_code=404, content=_error_body(request, "not_found"))
