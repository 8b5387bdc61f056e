import asyncio
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from register_edge.api.lan.routes_catalog import router as catalog_router
from register_edge.api.lan.routes_orders import router as orders_router
from register_edge.api.lan.routes_sync import router as sync_router

logger = structlog.get_logger(__name__)


def create_local_api_app(server: "LocalApiServer") -> FastAPI:
    """The LAN-facing app other registers poll. Kept apart from the terminal app."""
    app = FastAPI(title="register-edge local api", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.container = server.container
    app.state.server = server

    app.include_router(sync_router)
    app.include_router(orders_router)
    app.include_router(catalog_router)

    @app.middleware("http")
    async def guard(request: Request, call_next):
        if not server.is_running:
            return JSONResponse({"error": "Local API server is not running"}, status_code=503)
        try:
            return await call_next(request)
        except Exception:
            logger.exception("local_api_request_failed", method=request.method, path=request.url.path)
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    return app


class LocalApiServer:
    """Serves this register's dataset on the LAN while in server mode."""

    def __init__(self, container, host: str = "0.0.0.0"):
        self.container = container
        self.host = host
        self.app = create_local_api_app(self)
        self._running = False
        self._uvicorn: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def port(self) -> int:
        return self.container.local_api_config.current.port

    async def start(self, serve: bool = True) -> None:
        """Mark the server running; with ``serve`` also bind the port through uvicorn."""
        if self._running:
            logger.info("local_api_server_already_running")
            return
        self._running = True
        if serve:
            config = uvicorn.Config(self.app, host=self.host, port=self.port, log_config=None, lifespan="off")
            self._uvicorn = uvicorn.Server(config)
            self._task = asyncio.create_task(self._uvicorn.serve(), name="local-api-server")
        logger.info("local_api_server_started", host=self.host, port=self.port, serving=serve)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._uvicorn is not None and self._task is not None:
            self._uvicorn.should_exit = True
            try:
                await asyncio.wait_for(self._task, timeout=10)
            except asyncio.TimeoutError:
                self._task.cancel()
        self._uvicorn = None
        self._task = None
        logger.info("local_api_server_stopped")
