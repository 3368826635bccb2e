from __future__ import annotations

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tubely.core.logging import get_logger

logger = get_logger(component="body_limit")


class BodyLimitExceeded(Exception):
    """Raised from the wrapped ``receive`` once more than the limit has arrived."""


class MaxBodySizeMiddleware:
    """Reject request bodies larger than ``max_bytes`` with 413.

    A declared ``Content-Length`` over the limit is refused before anything is
    read. Bodies without one (chunked transfer) are counted as they arrive and
    cut off at the first message that crosses the limit, so form parsing never
    sees the excess and no endpoint runs.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > self.max_bytes:
            logger.info("request_body_too_large", path=scope.get("path"), content_length=declared, limit=self.max_bytes)
            await self._reject(scope, receive, send)
            return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    exceeded = True
                    raise BodyLimitExceeded()
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            # Once the limit is crossed the app's own error response is replaced by the 413.
            if exceeded and not response_started:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not exceeded or response_started:
                raise

        if exceeded and not response_started:
            logger.info("request_body_too_large", path=scope.get("path"), received_bytes=received, limit=self.max_bytes)
            await self._reject(scope, receive, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(
            status_code=413,
            content={"error": "upload_too_large", "detail": f"Request body exceeds {self.max_bytes} bytes"},
        )
        await response(scope, receive, send)


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers") or []:
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


__all__ = ["BodyLimitExceeded", "MaxBodySizeMiddleware"]
