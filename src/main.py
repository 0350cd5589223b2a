from __future__ import annotations

from fastapi import FastAPI

from src.application.dtos.common_dto import HealthResponse, RootResponse
from src.application.services.qr_codec import QrCodec
from src.infrastructure.api.middlewares import add_default_middlewares, add_exception_handlers
from src.infrastructure.api.routes.profile_routes import router as profile_router
from src.infrastructure.api.routes.qr_routes import router as qr_router
from src.infrastructure.database.repositories.profile_repository import ProfileRepository
from src.logging_config import setup_logging


def create_app(profile_repo: ProfileRepository | None = None) -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="ProfileKit Backend",
        version="0.1.0",
        description="""
        ## ProfileKit Backend API

        FastAPI backend for user-profile management: CRUD with paginated search
        over an in-memory store or PostgreSQL, plus QR code export and import
        of profiles.

        ### Features
        - **Profiles**: Create, read, update, delete and search user profiles
        - **Pagination**: 1-based pages with total counts and next/previous flags
        - **QR Codes**: Download a profile as a PNG QR code, or decode an uploaded one

        ### Error Responses
        Errors are returned as `{"error": "message"}`:
        - **400 Bad Request**: Missing full name or email, duplicate email, unreadable QR code
        - **404 Not Found**: Profile does not exist
        - **422 Unprocessable Entity**: Malformed request
        - **500 Internal Server Error**: Unexpected server error
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.profile_repo = profile_repo or ProfileRepository()
    app.state.qr_codec = QrCodec()
    add_default_middlewares(app)
    add_exception_handlers(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the ProfileKit API",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "profilekit-backend", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(profile_router)
    app.include_router(qr_router)
    return app


app = create_app()
