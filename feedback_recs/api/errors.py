"""Error responses for the HTTP surface.

Every error leaves the API as ``{"error": <reason phrase>, "message": ...}``.
Request validation failures add a ``details`` list, and server errors add
the underlying exception text only when DEBUG is on.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from feedback_recs.config import is_debug
from feedback_recs.lib.exceptions import BaseServiceError, InternalError

logger = logging.getLogger(__name__)


@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """Report unexpected failures inside the block as InternalError(message).

    Client errors (4xx) pass through unchanged.
    """
    try:
        yield
    except BaseServiceError as e:
        if e.STATUS_CODE < 500:
            raise
        logger.error('%s: %s', message, e.message, exc_info=True)
        raise InternalError(message, details={"reason": e.message}) from e
    except Exception as e:
        logger.error('%s: %s', message, e, exc_info=True)
        raise InternalError(message, details={"reason": str(e)}) from e


async def service_error_handler(request: Request, exc: BaseServiceError) -> JSONResponse:
    content = {"error": exc.ERROR_NAME, "message": exc.message}
    if exc.STATUS_CODE >= 500 and is_debug() and exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.STATUS_CODE, content=content)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert Pydantic 422 validation errors to 400 with the error body shape."""
    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        message = error["msg"]
        # Custom validators surface as "Value error, <message>"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": field or "body", "message": message})

    message = details[0]["message"] if len(details) == 1 else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"error": "Bad Request", "message": message, "details": details},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error('Unhandled error on %s %s: %s', request.method, request.url.path, exc, exc_info=True)
    content = {"error": "Internal Server Error", "message": "An unexpected error occurred"}
    if is_debug():
        content["details"] = {"reason": str(exc)}
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
