from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from src.application.dtos.common_dto import ErrorResponse
from src.application.dtos.profile_dto import ProfileFormData
from src.application.services.qr_codec import QrCodec
from src.application.use_cases.generate_qr import GenerateProfileQrUseCase
from src.application.use_cases.scan_qr import ScanUploadedImageUseCase
from src.infrastructure.api.dependencies import get_profile_repo, get_qr_codec
from src.infrastructure.database.repositories.profile_repository import ProfileRepository

router = APIRouter(
    prefix="/api",
    tags=["QR Codes"],
    responses={422: {"description": "Validation Error - Invalid request format"}},
)


@router.get(
    "/users/{profile_id}/qr",
    summary="Download Profile QR Code",
    description="""
    Render the profile as a 256x256 PNG QR code.

    The payload is `{"type": "user-profile", "version": "1.0", "data": {...}}`
    and the response is sent as an attachment named after the profile,
    e.g. `qr-code-ada-lovelace.png`.
    """,
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "PNG image of the QR code"},
        400: {"model": ErrorResponse, "description": "Profile too large to fit in a QR code"},
        404: {"model": ErrorResponse, "description": "Not Found - Profile does not exist"},
    },
)
async def download_profile_qr(
    profile_id: str,
    profiles: ProfileRepository = Depends(get_profile_repo),
    codec: QrCodec = Depends(get_qr_codec),
):
    """Generate and download the QR code for a profile."""
    try:
        image = GenerateProfileQrUseCase(profiles=profiles, codec=codec).execute(profile_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    disposition = f"attachment; filename*=UTF-8''{quote(image.filename)}"
    return Response(content=image.png, media_type="image/png", headers={"Content-Disposition": disposition})


@router.post(
    "/qr/decode",
    response_model=ProfileFormData,
    summary="Decode Profile QR Code",
    description="""
    Decode an uploaded image containing a profile QR code.

    Returns the profile form data on success. Images without a code,
    payloads of another type and payloads missing `fullName` or `email`
    are rejected with 400.
    """,
    responses={400: {"model": ErrorResponse, "description": "No valid profile QR code in the image"}},
)
async def decode_profile_qr(
    file: UploadFile = File(..., description="Image file containing a QR code"),
    codec: QrCodec = Depends(get_qr_codec),
):
    """Decode an uploaded QR image into profile form data."""
    result = ScanUploadedImageUseCase(codec=codec).execute(file.file.read())
    if not result.ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result.data
