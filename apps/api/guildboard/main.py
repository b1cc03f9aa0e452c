import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import APP_NAME
from .db import Base, engine
from .deps import get_cache
from .errors import BadRequestError, NotFoundError, StorageError, WorkbookReadError, error_status
from .routes import health, metrics, season, users


logger = logging.getLogger("uvicorn.error")


def create_app() -> FastAPI:
    app = FastAPI(title=APP_NAME)
    Base.metadata.create_all(bind=engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BadRequestError)
    @app.exception_handler(WorkbookReadError)
    @app.exception_handler(NotFoundError)
    async def _expected_error(request: Request, exc: Exception) -> JSONResponse:
        status = error_status(exc, 400)
        logger.info("%s %s -> %s: %s", request.method, request.url.path, status, exc)
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.on_event("startup")
    async def _startup_cache() -> None:
        app.dependency_overrides.get(get_cache, get_cache)().init()

    @app.on_event("shutdown")
    async def _shutdown_cache() -> None:
        app.dependency_overrides.get(get_cache, get_cache)().dispose()

    app.include_router(health.router)
    app.include_router(season.router)
    app.include_router(metrics.router)
    app.include_router(users.router)

    return app


app = create_app()
