from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class ProfileEntity:
    id: str  # server generated, stable
    full_name: str
    email: str  # unique across profiles
    phone_number: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    date_of_birth: date | None = None
    location: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def matches(self, search: str) -> bool:
        """Case-insensitive substring match over name, email and location."""
        needle = search.strip().lower()
        if not needle:
            return True
        haystack = (self.full_name, self.email, self.location or "")
        return any(needle in value.lower() for value in haystack)
