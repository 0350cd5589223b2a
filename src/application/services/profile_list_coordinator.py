"""Client-side controller tying search text and page number to list fetches."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Callable, Literal

from loguru import logger

from src.application.dtos.common_dto import ApiResponse
from src.application.dtos.profile_dto import Profile, ProfileFormData
from src.domain.entities.page import PageDescriptor
from src.infrastructure.http.profile_api_client import ProfileApiClient

PAGE_SIZE = 20
DEBOUNCE_SECONDS = 0.3


@dataclass(frozen=True)
class Notification:
    type: Literal["success", "error", "info"]
    message: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class ProfileListCoordinator:
    """Keeps the visible profile page consistent with search and navigation.

    Search input is debounced; once quiet, the page resets to 1 and a fetch
    is dispatched. Each fetch takes a sequence number at dispatch and its
    response is applied only if no newer fetch was dispatched since, so a
    slow stale response can never overwrite a newer page.

    A delete that empties a page other than the first leaves the coordinator
    on that (now empty) page; ``page.has_previous`` lets the UI step back.
    """

    def __init__(
        self,
        api: ProfileApiClient,
        *,
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        on_change: Callable[[ProfileListCoordinator], None] | None = None,
    ) -> None:
        self.api = api
        self.page_size = page_size
        self.debounce_seconds = debounce_seconds
        self.on_change = on_change

        self.current_page = 1
        self.search_text = ""
        self.debounced_search = ""
        self.profiles: list[Profile] = []
        self.page = PageDescriptor.build(1, 0, page_size)
        self.loading = False
        self.notifications: list[Notification] = []

        self._sequence = 0
        self._debounce: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    # -- helpers ------------------------------------------------------------

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def notify(self, type_: Literal["success", "error", "info"], message: str) -> Notification:
        notification = Notification(type=type_, message=message)
        self.notifications.append(notification)
        self._changed()
        return notification

    def dismiss(self, notification_id: str) -> None:
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        self._changed()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- fetching -----------------------------------------------------------

    async def _load(self, page: int, search: str) -> bool:
        """Fetch ``page`` for ``search``; returns True if the result was applied."""
        self._sequence += 1
        sequence = self._sequence
        self.current_page = page
        self.loading = True
        self._changed()
        logger.debug(f"[Coordinator] Fetch #{sequence} page={page} search='{search}'")

        try:
            response = await self.api.list_profiles(page, self.page_size, search)
        finally:
            if sequence == self._sequence:
                self.loading = False

        if sequence != self._sequence:
            logger.debug(f"[Coordinator] Dropping stale fetch #{sequence} (latest #{self._sequence})")
            return False

        if response.success:
            # replaced together, never field by field
            self.profiles, self.page = list(response.data.data), response.data.pagination.to_descriptor()
        else:
            logger.warning(f"[Coordinator] Fetch #{sequence} failed: {response.message}")
            self.notify("error", "Failed to load users")
        self._changed()
        return response.success

    async def go_to_page(self, page: int) -> bool:
        if page < 1:
            raise ValueError("page must be >= 1")
        return await self._load(page, self.debounced_search)

    async def refresh(self) -> bool:
        return await self._load(self.current_page, self.debounced_search)

    # -- search -------------------------------------------------------------

    def set_search_text(self, text: str) -> None:
        """Record a keystroke; the fetch fires once input has been quiet for the debounce interval."""
        self.search_text = text
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._spawn(self._debounced_search(text))

    async def _debounced_search(self, text: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # past the quiet period: the fetch below is no longer cancellable
        self._debounce = None
        if text == self.debounced_search:
            return
        self.debounced_search = text
        await self._load(1, text)

    async def wait_idle(self) -> None:
        """Wait for the pending debounce timer and any background fetch it started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    # -- mutations ----------------------------------------------------------

    async def _after_mutation(self, response: ApiResponse, success_message: str) -> None:
        if response.success:
            self.notify("success", success_message)
            # the client already invalidated its cache, so this refetch sees the change
            await self.refresh()
        else:
            self.notify("error", response.message)

    async def create_profile(self, form: ProfileFormData) -> ApiResponse:
        response = await self.api.create_profile(form)
        await self._after_mutation(response, "User created successfully!")
        return response

    async def update_profile(self, profile_id: str, form: ProfileFormData) -> ApiResponse:
        response = await self.api.update_profile(profile_id, form)
        await self._after_mutation(response, "User updated successfully!")
        return response

    async def delete_profile(self, profile_id: str) -> ApiResponse:
        response = await self.api.delete_profile(profile_id)
        await self._after_mutation(response, "User deleted successfully!")
        return response
