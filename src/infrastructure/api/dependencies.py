from __future__ import annotations

from fastapi import Request

from src.application.services.qr_codec import QrCodec
from src.infrastructure.database.repositories.profile_repository import ProfileRepository


def get_profile_repo(request: Request) -> ProfileRepository:
    return request.app.state.profile_repo


def get_qr_codec(request: Request) -> QrCodec:
    return request.app.state.qr_codec
