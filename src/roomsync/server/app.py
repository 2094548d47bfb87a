"""
App factory for the room broker.

Creates a pre-configured FastAPI application with:
- CORS middleware
- Health check endpoint
- Session type and room listings
- The room WebSocket endpoint
- Logging filter to suppress noisy healthcheck logs
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ..behaviors import register_builtin_types
from ..config import Settings, get_settings
from .registry import RoomRegistry
from .router import RoomRouter
from .session_types import SessionTypeRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class HealthcheckLogFilter(logging.Filter):
    """Filter out noisy healthcheck logs."""

    FILTERED_PATHS = ("/health",)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for path in self.FILTERED_PATHS:
            if f'"{path}' in message or f" {path} " in message:
                return False
        return True


def _setup_logging_filter():
    """Add filter to uvicorn access logger to suppress healthcheck logs."""
    uvicorn_access = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, HealthcheckLogFilter) for f in uvicorn_access.filters):
        uvicorn_access.addFilter(HealthcheckLogFilter())


def configure_logging(level: str = "INFO") -> None:
    """Set root logging level and format, and hide healthcheck access logs."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    _setup_logging_filter()


def create_app(
    settings: Optional[Settings] = None,
    session_types: Optional[SessionTypeRegistry] = None,
) -> FastAPI:
    """
    Create the room broker app.

    Args:
        settings: Server settings (default: loaded from env / roomsync.yaml)
        session_types: Session type registry (default: built-in types)

    Returns:
        Configured FastAPI application. The registries are reachable as
        ``app.state.session_types`` and ``app.state.registry``.
    """
    settings = settings or get_settings()
    if session_types is None:
        session_types = register_builtin_types(SessionTypeRegistry())

    registry = RoomRegistry(session_types)
    router = RoomRouter(registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        _setup_logging_filter()
        logger.info(
            f"Room broker ready on {settings.ws_path} "
            f"({len(session_types)} session type(s) registered)"
        )

        yield

        # Shutdown
        logger.info(f"Room broker shutdown ({len(registry)} active room(s))")

    app = FastAPI(
        title="roomsync",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_types = session_types
    app.state.registry = registry
    app.state.router = router

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/api/session-types")
    async def list_session_types():
        return session_types.list_types()

    @app.get("/api/rooms")
    async def list_rooms():
        return registry.describe()

    @app.websocket(settings.ws_path)
    async def websocket_endpoint(websocket: WebSocket):
        await router.handle_connection(websocket)

    return app
