from __future__ import annotations

import os
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from src.domain.errors import DuplicateEmailError, ProfileNotFoundError


def add_default_middlewares(app: FastAPI) -> None:
    # Development: the Vite dev server and the legacy CRA port
    # Production: wildcard until real domains are configured
    env = os.getenv("ENV", "development")

    if env in ("development", "staging"):
        allowed_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    else:
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"[HTTP] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )
        return response


def add_exception_handlers(app: FastAPI) -> None:
    """Report every error as ``{"error": "..."}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(ProfileNotFoundError)
    async def not_found(request: Request, exc: ProfileNotFoundError):
        return JSONResponse(status_code=404, content={"error": "User not found"})

    @app.exception_handler(DuplicateEmailError)
    async def duplicate_email(request: Request, exc: DuplicateEmailError):
        return JSONResponse(status_code=400, content={"error": "Email already exists"})

    @app.exception_handler(RuntimeError)
    async def storage_failure(request: Request, exc: RuntimeError):
        logger.exception(f"[HTTP] {request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
