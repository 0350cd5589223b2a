from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.common_dto import ErrorResponse
from src.application.dtos.profile_dto import (
    DeleteProfileResponse,
    PaginatedProfiles,
    PaginationInfo,
    Profile,
    ProfileFormData,
)
from src.domain.entities.page import PageDescriptor
from src.domain.errors import ProfileNotFoundError
from src.infrastructure.api.dependencies import get_profile_repo
from src.infrastructure.database.repositories.profile_repository import ProfileRepository

router = APIRouter(
    prefix="/api/users",
    tags=["User Profiles"],
    responses={
        422: {"description": "Validation Error - Invalid request format"},
        500: {"model": ErrorResponse, "description": "Internal Server Error"},
    },
)


def _profile_fields(form: ProfileFormData) -> dict:
    """Validate the required fields and map the form onto repository arguments."""
    if not form.has_required_fields():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Full name and email are required")
    try:
        date_of_birth = form.parsed_date_of_birth()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date of birth") from exc
    return {
        "full_name": form.full_name,
        "email": form.email,
        "phone_number": form.phone_number or None,
        "bio": form.bio or None,
        "avatar_url": form.avatar_url or None,
        "date_of_birth": date_of_birth,
        "location": form.location or None,
    }


@router.get(
    "",
    response_model=PaginatedProfiles,
    summary="List Profiles",
    description="""
    Retrieve one page of profiles, newest first.

    **Features:**
    - 1-based `page` with a configurable `limit`
    - Optional case-insensitive `search` over full name, email and location
    - A page past the end returns an empty `data` list, not an error
    """,
    response_description="Profiles on the requested page with pagination metadata",
)
async def list_profiles(
    profiles: ProfileRepository = Depends(get_profile_repo),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(20, ge=1, le=1000, description="Profiles per page (1-1000)"),
    search: str = Query("", description="Filter by full name, email or location"),
):
    """Get a page of profiles."""
    items, total = profiles.list_page(page=page, limit=limit, search=search)
    return PaginatedProfiles(
        data=[Profile.from_entity(p) for p in items],
        pagination=PaginationInfo.from_descriptor(PageDescriptor.build(page, total, limit)),
    )


@router.get(
    "/{profile_id}",
    response_model=Profile,
    summary="Get Profile",
    responses={404: {"model": ErrorResponse, "description": "Not Found - Profile does not exist"}},
)
async def get_profile(profile_id: str, profiles: ProfileRepository = Depends(get_profile_repo)):
    """Get a single profile by id."""
    entity = profiles.get(profile_id)
    if entity is None:
        raise ProfileNotFoundError(profile_id)
    return Profile.from_entity(entity)


@router.post(
    "",
    response_model=Profile,
    status_code=status.HTTP_201_CREATED,
    summary="Create Profile",
    description="""
    Create a profile. `fullName` and `email` are required; the email must be
    unique across all profiles.
    """,
    responses={400: {"model": ErrorResponse, "description": "Missing required fields or duplicate email"}},
)
async def create_profile(form: ProfileFormData, profiles: ProfileRepository = Depends(get_profile_repo)):
    """Create a new profile."""
    entity = profiles.create(**_profile_fields(form))
    return Profile.from_entity(entity)


@router.put(
    "/{profile_id}",
    response_model=Profile,
    summary="Update Profile",
    responses={
        400: {"model": ErrorResponse, "description": "Missing required fields or duplicate email"},
        404: {"model": ErrorResponse, "description": "Not Found - Profile does not exist"},
    },
)
async def update_profile(
    profile_id: str,
    form: ProfileFormData,
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Replace the editable fields of a profile."""
    entity = profiles.update(profile_id, **_profile_fields(form))
    return Profile.from_entity(entity)


@router.delete(
    "/{profile_id}",
    response_model=DeleteProfileResponse,
    summary="Delete Profile",
    responses={404: {"model": ErrorResponse, "description": "Not Found - Profile does not exist"}},
)
async def delete_profile(profile_id: str, profiles: ProfileRepository = Depends(get_profile_repo)):
    """Delete a profile."""
    profiles.delete(profile_id)
    return DeleteProfileResponse(message="User deleted successfully")
