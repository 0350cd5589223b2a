from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.domain.entities.page import PageDescriptor
from src.domain.entities.profile import ProfileEntity


class ProfileFormData(BaseModel):
    """Editable profile fields, as submitted by the form or decoded from a QR code."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field("", alias="fullName", description="Full name (required)", example="Ada Lovelace")
    email: str = Field("", description="Email address (required, unique)", example="ada@example.com")
    phone_number: str | None = Field("", alias="phoneNumber", description="Phone number", example="+44 20 7946 0958")
    bio: str | None = Field("", description="Short biography")
    avatar_url: str | None = Field("", alias="avatarUrl", description="Avatar image URL")
    date_of_birth: str | None = Field("", alias="dateOfBirth", description="Date of birth (YYYY-MM-DD)", example="1815-12-10")
    location: str | None = Field("", description="Free-text location", example="London")

    def has_required_fields(self) -> bool:
        return bool(self.full_name and self.email)

    def parsed_date_of_birth(self) -> date | None:
        """Return the date part of ``date_of_birth``; empty means no date."""
        if not self.date_of_birth:
            return None
        return date.fromisoformat(self.date_of_birth[:10])


class Profile(BaseModel):
    """A profile as returned by the REST API."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique identifier of the profile", example="0b6c7c9e-3f43-4f7e-9a53-1d2f8c2c7a10")
    full_name: str = Field(..., alias="fullName", description="Full name", example="Ada Lovelace")
    email: str = Field(..., description="Email address", example="ada@example.com")
    phone_number: str | None = Field(None, alias="phoneNumber", description="Phone number")
    bio: str | None = Field(None, description="Short biography")
    avatar_url: str | None = Field(None, alias="avatarUrl", description="Avatar image URL")
    date_of_birth: date | None = Field(None, alias="dateOfBirth", description="Date of birth")
    location: str | None = Field(None, description="Free-text location")
    created_at: datetime | None = Field(None, alias="createdAt", description="Creation timestamp")
    updated_at: datetime | None = Field(None, alias="updatedAt", description="Last modification timestamp")

    @classmethod
    def empty(cls) -> Profile:
        """Placeholder returned by the client when a call fails."""
        return cls(id="", fullName="", email="")

    @classmethod
    def from_entity(cls, entity: ProfileEntity) -> Profile:
        return cls(
            id=entity.id,
            fullName=entity.full_name,
            email=entity.email,
            phoneNumber=entity.phone_number,
            bio=entity.bio,
            avatarUrl=entity.avatar_url,
            dateOfBirth=entity.date_of_birth,
            location=entity.location,
            createdAt=entity.created_at,
            updatedAt=entity.updated_at,
        )


class PaginationInfo(BaseModel):
    """Pagination metadata attached to list responses."""

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage", ge=1, example=1)
    total_pages: int = Field(..., alias="totalPages", ge=1, example=3)
    total_users: int = Field(..., alias="totalUsers", ge=0, example=42)
    limit: int = Field(..., ge=1, example=20)
    has_next_page: bool = Field(..., alias="hasNextPage")
    has_prev_page: bool = Field(..., alias="hasPrevPage")

    @classmethod
    def from_descriptor(cls, page: PageDescriptor) -> PaginationInfo:
        return cls(
            currentPage=page.current_page,
            totalPages=page.total_pages,
            totalUsers=page.total_count,
            limit=page.limit,
            hasNextPage=page.has_next,
            hasPrevPage=page.has_previous,
        )

    def to_descriptor(self) -> PageDescriptor:
        # recomputed so a server that sends inconsistent flags cannot break the invariants
        return PageDescriptor.build(self.current_page, self.total_users, self.limit)


class PaginatedProfiles(BaseModel):
    """Response model for ``GET /api/users``."""

    data: list[Profile] = Field(..., description="Profiles on the requested page")
    pagination: PaginationInfo = Field(..., description="Pagination metadata")

    @classmethod
    def empty(cls, limit: int = 20) -> PaginatedProfiles:
        return cls(data=[], pagination=PaginationInfo.from_descriptor(PageDescriptor.build(1, 0, limit)))


class DeleteProfileResponse(BaseModel):
    """Response model for profile deletion."""

    message: str = Field("User deleted successfully", description="Confirmation message")
