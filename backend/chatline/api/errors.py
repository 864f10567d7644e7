# chatline/api/errors.py

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

from chatline.core.errors import ChatError
from chatline.utils.logger import logger


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Turn a ChatError into `{"error": ...}` with the error's status code."""
    extra = {
        "error_type": type(exc).__name__,
        "error_message": exc.message,
        "path": request.url.path,
    }
    if exc.status_code >= 500:
        extra["error_id"] = uuid4().hex
        logger.error("Request failed", extra=extra)
    else:
        logger.warning("Request rejected", extra=extra)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
