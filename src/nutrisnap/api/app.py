"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from nutrisnap.api.meals import router as meals_router
from nutrisnap.app_logging import configure_logging
from nutrisnap.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(meals_router)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": _format_server_error(container, exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.websocket("/ws")
    async def meal_updates(websocket: WebSocket) -> None:
        """Push meal_updated frames to connected clients."""
        channel = websocket.app.state.container.notification_channel
        await websocket.accept()
        channel.subscribe(websocket)
        logger.info("Push client connected (%s open)", channel.subscriber_count)
        try:
            while True:
                # Clients never send anything meaningful; reading detects closes.
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            channel.unsubscribe(websocket)
            logger.info("Push client disconnected (%s open)", channel.subscriber_count)

    return app


def _format_server_error(container: AppContainer, exc: Exception) -> str:
    """Return a client-facing error message with local debug info."""
    fallback = "Internal server error"
    if container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback
