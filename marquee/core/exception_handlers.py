import logging
from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from marquee.core.exceptions import MarqueeError, TransientStoreError

logger = logging.getLogger(__name__)

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


async def marquee_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, MarqueeError) else MarqueeError(str(exc))
    headers = None
    if isinstance(error, TransientStoreError):
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "Internal server error"},
    )


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    MarqueeError: marquee_error_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
