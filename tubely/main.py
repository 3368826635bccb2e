from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tubely.api.middleware import MaxBodySizeMiddleware
from tubely.api.v1 import get_api_router
from tubely.core.config import get_settings
from tubely.core.db import create_engine, create_session_factory
from tubely.core.logging import configure_logging, get_logger, level_from_name
from tubely.core.storage import get_publisher
from tubely.services.errors import TubelyError

logger = get_logger(component="api")


async def handle_tubely_error(request: Request, exc: TubelyError) -> JSONResponse:
    """Render a pipeline error as a single JSON payload and log its cause."""
    cause = exc.__cause__
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error=exc.code,
            cause=repr(cause) if cause else None,
            exc_info=cause or exc,
        )
    else:
        logger.info("request_rejected", path=request.url.path, error=exc.code, cause=repr(cause) if cause else None)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    publisher = get_publisher(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.publisher = publisher
        app.state.engine = engine
        app.state.session_factory = session_factory
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_middleware(MaxBodySizeMiddleware, max_bytes=settings.max_video_upload_bytes)
    app.add_exception_handler(TubelyError, handle_tubely_error)
    app.include_router(get_api_router())
    if settings.storage_backend == "local":
        app.mount("/assets", StaticFiles(directory=str(settings.assets_root), check_dir=False), name="assets")
    return app


__all__ = ["create_app", "handle_tubely_error"]
