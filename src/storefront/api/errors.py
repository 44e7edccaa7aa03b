"""HTTP mapping of the storefront error taxonomy.

ValidationError -> 422, ObjectNotFoundError -> 404, InvalidOperationError
(including ConflictError) -> 409. Stock errors also carry ``available`` and
``requested`` so clients can retry with a corrected quantity.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def error_body(exc) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        body = {"errors": messages}
    else:
        body = {"errors": {"_entity": [str(messages or exc)]}}
    for detail in ("available", "requested"):
        if hasattr(exc, detail):
            body[detail] = getattr(exc, detail)
    return body


async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Request rejected", path=request.url.path, errors=str(exc))
    return JSONResponse(status_code=422, content=error_body(exc))


async def not_found_handler(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content=error_body(exc))


async def conflict_handler(request: Request, exc: InvalidOperationError):
    logger.info("Request conflicts with current state", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content=error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(InvalidOperationError, conflict_handler)
