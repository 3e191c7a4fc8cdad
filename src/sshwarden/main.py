"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sshwarden.api.router import api_router
from sshwarden.config import APP_VERSION, settings
from sshwarden.core.errors import SSHWardenError
from sshwarden.logging_config import configure_logging
from sshwarden.schemas.response import APIResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_file)
    logger.info("Managing SSH directory %s", settings.ssh_dir)
    yield


app = FastAPI(
    title="sshwarden",
    description="SSH key, config, permission and backup management",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.exception_handler(SSHWardenError)
async def sshwarden_error_handler(request: Request, exc: SSHWardenError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=APIResponse.fail(str(exc)).model_dump())


@app.get("/health")
async def health_check():
    return {"status": "ok"}
