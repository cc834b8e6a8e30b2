"""FastAPI application factory.

Assembles CORS, the domain error handler, and all API routers.
This module is the authoritative app object — noticeboard/main.py re-exports it.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from noticeboard.api.routes.admin import router as admin_router
from noticeboard.api.routes.directory import router as directory_router
from noticeboard.api.routes.health import router as health_router
from noticeboard.api.routes.notices import router as notices_router
from noticeboard.core.exceptions import NoticeboardError
from noticeboard.core.logging import setup_logging
from noticeboard.core.settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS — restrict origins in production via a reverse proxy
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NoticeboardError)
async def handle_domain_error(request: Request, exc: NoticeboardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


app.include_router(health_router)
# Admin routes carry static paths under /notices and must precede /notices/{id}.
app.include_router(admin_router)
app.include_router(notices_router)
app.include_router(directory_router)
