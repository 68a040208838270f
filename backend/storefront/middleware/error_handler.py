"""
Error rendering for the API.

Expected application errors (StorefrontError) are mapped to their HTTP
status by exception handlers. Anything else is caught by a pure ASGI
middleware (not BaseHTTPMiddleware, which breaks async generator
dependencies like get_db_session()) and rendered as a JSON 500.
"""
import json

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from storefront.core.exceptions import StorefrontError
from storefront.core.logging import get_logger

logger = get_logger(__name__)


def _error_body(detail: str, error_type: str, request_id: str | None) -> dict:
    body = {"detail": detail, "type": error_type}
    if request_id:
        body["request_id"] = request_id
    return body


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        error=exc.message,
        order_id=exc.order_id,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, type(exc).__name__, request_id),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map the application error taxonomy onto HTTP responses."""
    app.add_exception_handler(StorefrontError, storefront_error_handler)


class ErrorHandlerMiddleware:
    """
    Last-resort handler turning unhandled exceptions into JSON 500s.

    HTTPException passes through unchanged for FastAPI to render.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except HTTPException:
            raise
        except Exception as e:
            path = scope.get("path", "unknown")
            if response_started:
                # Headers already sent, can't change the response
                logger.exception("Unhandled exception after response started", error=str(e), path=path)
                raise

            logger.exception("Unhandled exception", error=str(e), path=path)

            request_id = scope.get("state", {}).get("request_id")
            body = json.dumps(
                _error_body("Internal server error", type(e).__name__, request_id)
            ).encode("utf-8")

            await send({
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
