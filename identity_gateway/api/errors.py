"""Translate domain errors into the fixed HTTP error shape."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import IdentityGatewayError, PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)


def error_response(exc: IdentityGatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _handle_gateway_error(request: Request, exc: IdentityGatewayError) -> JSONResponse:
    if isinstance(exc, PersistenceFailure):
        logger.error("persistence failure on %s %s", request.method, request.url.path)
    return error_response(exc)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()})
    logger.info("rejected invalid payload on %s: fields=%s", request.url.path, fields)
    return error_response(ValidationError())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IdentityGatewayError, _handle_gateway_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
