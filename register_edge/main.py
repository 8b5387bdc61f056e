from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from register_edge.api.v1.routes_basket import router as basket_router
from register_edge.api.v1.routes_checkout import router as checkout_router
from register_edge.api.v1.routes_local_api import router as local_api_router
from register_edge.api.v1.routes_sync import router as sync_router
from register_edge.core.config import Settings, get_settings
from register_edge.core.container import Container, build_container
from register_edge.core.errors import BusinessError, NotFoundError

logger = structlog.get_logger(__name__)


async def start_background(container: Container) -> None:
    config = container.local_api_config
    container.background.start()
    if config.is_server:
        await container.server.start()
    elif config.is_client:
        container.poller.start()


async def stop_background(container: Container) -> None:
    await container.poller.stop()
    await container.server.stop()
    await container.background.stop()


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[Container] = None,
    run_background: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = container is None
        app.state.container = container or await build_container(settings or get_settings())
        if run_background:
            await start_background(app.state.container)
        logger.info("register_started", mode=app.state.container.local_api_config.current.mode.value)
        try:
            yield
        finally:
            await stop_background(app.state.container)
            if owned:
                await app.state.container.aclose()
            logger.info("register_stopped")

    app = FastAPI(title="register-edge", lifespan=lifespan)
    if container is not None:
        app.state.container = container

    app.include_router(basket_router)
    app.include_router(checkout_router)
    app.include_router(sync_router)
    app.include_router(local_api_router)

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(BusinessError)
    async def business_error(request: Request, exc: BusinessError):
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
