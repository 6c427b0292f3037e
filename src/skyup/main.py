"""Main entry point for the SkyUp backend service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skyup import __version__
from skyup.api import auth_router, router
from skyup.config import settings
from skyup.db import dispose_db, init_db
from skyup.errors import SkyupError
from skyup.middleware import configure_middleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s %s started (database backend: %s)", settings.service_name, __version__, settings.db_backend)
    yield
    dispose_db()


def _error_payload(code: str, message: str, details=None) -> dict:
    payload = {"ok": False, "code": code, "message": message}
    if details is not None:
        payload["details"] = details
    return payload


def create_app() -> FastAPI:
    app = FastAPI(
        title="SkyUp Backend",
        description="Job applications, contact messages, resume relay and invoice receipts",
        version=__version__,
        lifespan=lifespan,
    )

    configure_middleware(app)
    app.include_router(auth_router)
    app.include_router(router)

    @app.exception_handler(SkyupError)
    async def skyup_exception_handler(_request: Request, exc: SkyupError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_payload(
                "VALIDATION_ERROR",
                "Request validation failed",
                {"errors": jsonable_encoder(exc.errors())},
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(f"HTTP_{exc.status_code}", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    return app


app = create_app()


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    configure_logging()
    uvicorn.run(
        "skyup.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
