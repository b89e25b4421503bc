"""
FastAPI application entry point for the ConectaBio API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from conectabio.config import get_settings
from conectabio.errors import ConectaBioError
from conectabio.routes import router

logger = logging.getLogger(__name__)


async def handle_app_error(request: Request, exc: ConectaBioError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title="ConectaBio API", version="0.1.0")
    app.add_exception_handler(ConectaBioError, handle_app_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("conectabio.app:app", host="0.0.0.0", port=8000, log_level="info")
