"""Async client for the profile REST API.

Every operation returns an :class:`ApiResponse`; transport errors, non-2xx
statuses, invalid JSON and payloads that fail validation all come back as
``success=False`` with a placeholder ``data`` of the expected shape.
"""
from __future__ import annotations

import os
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from src.application.dtos.common_dto import ApiResponse
from src.application.dtos.profile_dto import (
    DeleteProfileResponse,
    PaginatedProfiles,
    Profile,
    ProfileFormData,
)
from src.infrastructure.cache.cache_store import CacheStore
from src.infrastructure.cache.cached_operation import CachedOperation

DEFAULT_BASE_URL = "http://localhost:3001/api"
DEFAULT_PAGE_SIZE = 20
UNPAGINATED_LIMIT = 1000
CACHE_NAMESPACE = "users"

PageResponse = ApiResponse[PaginatedProfiles]
ProfileListResponse = ApiResponse[list[Profile]]
ProfileResponse = ApiResponse[Profile]
OptionalProfileResponse = ApiResponse[Profile | None]
DeleteResponse = ApiResponse[bool]

_SUCCESS_MESSAGE = "Operation completed successfully"


class ProfileApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        cache: CacheStore | None = None,
        cache_ttl: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = (base_url or os.getenv("PROFILEKIT_API_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.cache = cache
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout, headers={"Content-Type": "application/json"}
        )

        self._list_page = self._list_page_uncached
        self._list_all = self._list_all_uncached
        self._get_one = self._get_one_uncached
        if cache is not None:
            self._list_page = CachedOperation(
                self._list_page_uncached, f"{CACHE_NAMESPACE}/page", cache, PageResponse, cache_ttl
            )
            self._list_all = CachedOperation(
                self._list_all_uncached, f"{CACHE_NAMESPACE}/all", cache, ProfileListResponse, cache_ttl
            )
            self._get_one = CachedOperation(
                self._get_one_uncached, f"{CACHE_NAMESPACE}/one", cache, OptionalProfileResponse, cache_ttl
            )

        logger.info(f"[API] Initialized target={self.base_url} cache={'on' if cache else 'off'}")

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ProfileApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- transport ----------------------------------------------------------

    async def _fetch(
        self,
        method: str,
        path: str,
        response_type: type[ApiResponse],
        placeholder: Any,
        **kwargs: Any,
    ) -> tuple[ApiResponse, int | None]:
        """Issue one request; returns the uniform result and the HTTP status (None if unsent)."""
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"[API] {method} {path} failed: {exc!r}")
            message = str(exc) or "An unexpected error occurred"
            return response_type(data=placeholder, success=False, message=message), None

        try:
            body = response.json()
        except ValueError:
            body = None
            if response.is_success:
                logger.error(f"[API] {method} {path} returned invalid JSON")
                return (
                    response_type(data=placeholder, success=False, message="Invalid JSON in server response"),
                    response.status_code,
                )

        if not response.is_success:
            message = f"HTTP error! status: {response.status_code}"
            if isinstance(body, dict):
                message = body.get("error") or body.get("detail") or message
            logger.warning(f"[API] {method} {path} -> {response.status_code}: {message}")
            return response_type(data=placeholder, success=False, message=str(message)), response.status_code

        try:
            result = response_type.model_validate(
                {"data": body, "success": True, "message": _SUCCESS_MESSAGE}
            )
        except ValidationError as exc:
            logger.error(f"[API] {method} {path} returned a malformed payload: {exc}")
            return (
                response_type(data=placeholder, success=False, message="Malformed server response"),
                response.status_code,
            )
        return result, response.status_code

    def _invalidate(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_pattern(CACHE_NAMESPACE)

    # -- reads --------------------------------------------------------------

    async def _list_page_uncached(self, page: int, limit: int, search: str) -> PageResponse:
        params = {"page": str(page), "limit": str(limit), "search": search}
        # the server rejects limit < 1; the placeholder still needs a valid page size
        placeholder = PaginatedProfiles.empty(max(1, limit))
        result, _ = await self._fetch("GET", "/users", PageResponse, placeholder, params=params)
        return result

    async def _list_all_uncached(self) -> ProfileListResponse:
        page, _ = await self._fetch(
            "GET",
            "/users",
            PageResponse,
            PaginatedProfiles.empty(UNPAGINATED_LIMIT),
            params={"limit": str(UNPAGINATED_LIMIT)},
        )
        return ProfileListResponse(data=page.data.data, success=page.success, message=page.message)

    async def _get_one_uncached(self, profile_id: str) -> OptionalProfileResponse:
        result, status = await self._fetch(
            "GET", f"/users/{profile_id}", OptionalProfileResponse, Profile.empty()
        )
        if status == 404:
            return OptionalProfileResponse(data=None, success=False, message="User not found")
        return result

    async def list_profiles(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, search: str = "") -> PageResponse:
        """Fetch one page of profiles, optionally filtered by ``search``."""
        return await self._list_page(page, limit, search.strip())

    async def search_profiles(self, query: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> PageResponse:
        return await self.list_profiles(page, limit, query)

    async def list_all_profiles(self) -> ProfileListResponse:
        """Fetch every profile in one request (capped at 1000)."""
        return await self._list_all()

    async def get_profile(self, profile_id: str) -> OptionalProfileResponse:
        return await self._get_one(profile_id)

    # -- mutations ----------------------------------------------------------

    async def create_profile(self, form: ProfileFormData) -> ProfileResponse:
        result, _ = await self._fetch(
            "POST", "/users", ProfileResponse, Profile.empty(), json=form.model_dump(by_alias=True)
        )
        if result.success:
            self._invalidate()
        return result

    async def update_profile(self, profile_id: str, form: ProfileFormData) -> ProfileResponse:
        result, _ = await self._fetch(
            "PUT", f"/users/{profile_id}", ProfileResponse, Profile.empty(), json=form.model_dump(by_alias=True)
        )
        if result.success:
            self._invalidate()
        return result

    async def delete_profile(self, profile_id: str) -> DeleteResponse:
        result, _ = await self._fetch(
            "DELETE",
            f"/users/{profile_id}",
            ApiResponse[DeleteProfileResponse],
            DeleteProfileResponse(message=""),
        )
        if result.success:
            self._invalidate()
        return DeleteResponse(data=result.success, success=result.success, message=result.message)
