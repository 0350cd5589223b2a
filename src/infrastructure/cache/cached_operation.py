from __future__ import annotations

from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger
from pydantic import ValidationError

from src.application.dtos.common_dto import ApiResponse
from src.infrastructure.cache.cache_store import CacheStore

R = TypeVar("R", bound=ApiResponse)


class CachedOperation(Generic[R]):
    """Serve an async API operation from ``cache`` while its result is fresh.

    The cache holds the JSON form of the response and ``response_type``
    turns it back into a model on a hit. Only responses with
    ``success=True`` are stored, and only if the cache was not invalidated
    while the operation ran; arguments and results pass through as-is.
    """

    def __init__(
        self,
        operation: Callable[..., Awaitable[R]],
        endpoint: str,
        cache: CacheStore,
        response_type: type[R],
        ttl: float | None = None,
    ) -> None:
        self.operation = operation
        self.endpoint = endpoint
        self.cache = cache
        self.response_type = response_type
        self.ttl = ttl

    @staticmethod
    def params_for(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any] | None:
        params: dict[str, Any] = {}
        if args:
            params["args"] = list(args)
        if kwargs:
            params["kwargs"] = kwargs
        return params or None

    async def __call__(self, *args: Any, **kwargs: Any) -> R:
        params = self.params_for(args, kwargs)
        cached = self.cache.get(self.endpoint, params)
        if cached is not None:
            try:
                response = self.response_type.model_validate(cached)
            except ValidationError as exc:
                logger.warning(f"[Cache] Discarding unreadable entry for {self.endpoint}: {exc}")
                self.cache.invalidate(self.endpoint, params)
            else:
                logger.debug(f"[Cache] Hit for {self.endpoint} {params}")
                return response

        generation = self.cache.generation
        result = await self.operation(*args, **kwargs)
        if result.success and generation != self.cache.generation:
            # an invalidation landed while this read was in flight
            logger.debug(f"[Cache] Not storing {self.endpoint} {params}: invalidated during fetch")
        elif result.success:
            self.cache.set(
                self.endpoint,
                result.model_dump(mode="json", by_alias=True),
                params,
                self.ttl,
            )
        return result
