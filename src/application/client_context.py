"""Composition root for the client side.

Each call to :func:`create_client_context` builds its own cache, API client
and list coordinator; nothing is shared through module globals.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.application.services.profile_list_coordinator import ProfileListCoordinator
from src.application.services.qr_codec import QrCodec
from src.infrastructure.cache.cache_store import CacheStore
from src.infrastructure.cache.persistent_storage import FileStorage, KeyValueStorage
from src.infrastructure.http.profile_api_client import ProfileApiClient


@dataclass
class ClientContext:
    cache: CacheStore
    api: ProfileApiClient
    coordinator: ProfileListCoordinator
    codec: QrCodec

    async def aclose(self) -> None:
        self.coordinator.close()
        await self.api.aclose()

    async def __aenter__(self) -> ClientContext:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_client_context(
    base_url: str | None = None,
    *,
    storage: KeyValueStorage | None = None,
    http_client: httpx.AsyncClient | None = None,
    cache_ttl: float | None = None,
    debounce_seconds: float | None = None,
) -> ClientContext:
    cache = CacheStore(storage if storage is not None else FileStorage())
    api = ProfileApiClient(base_url, cache=cache, cache_ttl=cache_ttl, http_client=http_client)
    coordinator_kwargs = {} if debounce_seconds is None else {"debounce_seconds": debounce_seconds}
    coordinator = ProfileListCoordinator(api, **coordinator_kwargs)
    return ClientContext(cache=cache, api=api, coordinator=coordinator, codec=QrCodec())
