"""
HTTP surface of the stream proxy.

Routes:
- POST /api/chat         buffered completion, upstream JSON verbatim
- POST /api/chat-stream  upstream SSE relayed as text/event-stream
- GET  /health
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from dat1_chat.config import Configuration
from dat1_chat.exceptions import ChatError
from dat1_chat.logging_utils import ChatErrorHandler
from dat1_chat.models import ChatRequest
from dat1_chat.proxy import StreamProxy

logger = structlog.get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def create_app(
    configuration: Configuration | None = None,
    proxy: StreamProxy | None = None,
) -> FastAPI:
    """Build the proxy application.

    A supplied ``proxy`` is used as-is and left open on shutdown; otherwise
    one is created from ``configuration`` and closed with the app.
    """
    configuration = configuration or Configuration()
    owns_proxy = proxy is None
    proxy = proxy or StreamProxy(configuration)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_proxy:
            await proxy.close()

    app = FastAPI(title="dat1 Chat Proxy", version="0.1.0", lifespan=lifespan)
    app.state.proxy = proxy

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        status, body = ChatErrorHandler.to_payload(
            exc, operation=request.url.path
        )
        return JSONResponse(status_code=status, content=body)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.post("/api/chat")
    async def chat(req: ChatRequest) -> JSONResponse:
        data = await proxy.complete(req)
        return JSONResponse(content=data)

    @app.post("/api/chat-stream")
    async def chat_stream(req: ChatRequest) -> StreamingResponse:
        upstream = await proxy.open_stream(req)
        logger.info("Relaying upstream stream", messages=len(req.messages))
        return StreamingResponse(
            upstream.aiter_bytes(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
            background=BackgroundTask(upstream.aclose),
        )

    return app
