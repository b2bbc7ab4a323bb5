"""HTTP webhook endpoint for Telegram updates.

The source is always answered with 200 once the secret checks out, whatever
happens while handling the update, so Telegram does not retry-storm us.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

UpdateHandler = Callable[[Dict[str, Any]], Awaitable[None]]
Hook = Callable[[], Awaitable[None]]


def create_app(handle_update: UpdateHandler, secret: str = "", path: str = "/api/telegram",
               on_startup: Optional[Hook] = None, on_shutdown: Optional[Hook] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if on_startup is not None:
            await on_startup()
        try:
            yield
        finally:
            if on_shutdown is not None:
                await on_shutdown()

    app = FastAPI(title="Support relay webhook", version="v1", lifespan=lifespan)

    @app.api_route(path, methods=["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"])
    async def health() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.post(path)
    async def telegram_update(request: Request):
        if secret and request.headers.get(SECRET_HEADER) != secret:
            return PlainTextResponse("unauthorized", status_code=401)

        try:
            payload = json.loads(await request.body() or b"{}")
        except ValueError:
            logger.warning("Webhook body is not valid JSON")
            return JSONResponse({"ok": True})
        if not isinstance(payload, dict):
            logger.warning("Webhook body is not a JSON object")
            return JSONResponse({"ok": True})

        try:
            await handle_update(payload)
        except Exception:
            logger.exception("Webhook error")
        return JSONResponse({"ok": True})

    return app
