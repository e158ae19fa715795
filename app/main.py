"""
Application entry point.

Run with: uvicorn app.main:app
"""

import asyncio
import logging
from contextlib import asynccontextmanager

import socketio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from app.channels.socketio_channel import (
    SocketIOTransport,
    create_socketio_server,
    register_chat_events,
)
from app.config import get_settings
from app.core.app_state import AppState
from app.db import create_tables
from app.routers.sessions_router import sessions_router

logger = logging.getLogger(__name__)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Backstop for errors that escaped every handler; the process keeps running
    logger.error(
        "Uncaught error in event loop: %s",
        context.get("message"),
        exc_info=context.get("exception"),
    )


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    sio = create_socketio_server(settings)
    chat = AppState(SocketIOTransport(sio))
    register_chat_events(sio, chat.lifecycle)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not testing:
            create_tables()
        asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
        logger.info("%s started (%s)", settings.app_name, settings.environment)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.sio = sio
    app.state.chat = chat

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sessions_router)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Something went wrong on the server"},
        )

    @app.get("/", response_class=PlainTextResponse, tags=["Health"])
    def root() -> str:
        return "Session server is running"

    @app.get("/health", tags=["Health"])
    def health_check() -> dict:
        return {"status": "ok"}

    return app


def create_asgi_app(testing: bool = False) -> socketio.ASGIApp:
    """FastAPI app with the Socket.IO server mounted in front of it."""
    fastapi_app = create_app(testing=testing)
    return socketio.ASGIApp(
        fastapi_app.state.sio,
        other_asgi_app=fastapi_app,
        socketio_path=get_settings().socketio_path,
    )


app = create_asgi_app()


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)
