from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, date, datetime

from src.domain.entities.profile import ProfileEntity
from src.domain.errors import DuplicateEmailError, ProfileNotFoundError
from src.infrastructure.database.postgres_client import (
    PostgresClient,
    get_postgres_client,
    is_unique_violation,
)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        full_name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone_number TEXT,
        bio TEXT,
        avatar_url TEXT,
        date_of_birth DATE,
        location TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
"""

_SEARCH_CLAUSE = (
    "WHERE full_name ILIKE %s ESCAPE '\\' OR email ILIKE %s ESCAPE '\\' "
    "OR COALESCE(location, '') ILIKE %s ESCAPE '\\'"
)


def like_pattern(search: str) -> str:
    """Substring ILIKE pattern matching ``search`` literally."""
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ProfileRepository:
    """Profile persistence: PostgreSQL when ``USE_LOCAL_DB=1``, otherwise in memory."""

    def __init__(self, pg_client: PostgresClient | None = None) -> None:
        self.pg_client = pg_client or get_postgres_client()
        self._mem: dict[str, ProfileEntity] = {}
        if self.pg_client is not None:
            self.pg_client.execute(SCHEMA)

    def _row_to_entity(self, row: dict) -> ProfileEntity:
        """Convert database row to ProfileEntity."""
        return ProfileEntity(
            id=str(row["id"]),
            full_name=row["full_name"],
            email=row["email"],
            phone_number=row.get("phone_number"),
            bio=row.get("bio"),
            avatar_url=row.get("avatar_url"),
            date_of_birth=row.get("date_of_birth"),
            location=row.get("location"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def _email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        wanted = email.lower()
        return any(p.email.lower() == wanted and p.id != exclude_id for p in self._mem.values())

    def list_page(self, page: int = 1, limit: int = 20, search: str = "") -> tuple[list[ProfileEntity], int]:
        """Return one page of profiles (newest first) and the total number of matches."""
        offset = (max(1, page) - 1) * limit
        search = search.strip()

        # PostgreSQL mode
        if self.pg_client is not None:
            try:
                clause, params = "", ()
                if search:
                    like = like_pattern(search)
                    clause, params = _SEARCH_CLAUSE, (like, like, like)
                count = self.pg_client.fetch_one(f"SELECT COUNT(*) AS total FROM users {clause}", params)
                rows = self.pg_client.fetch_all(
                    f"SELECT * FROM users {clause} ORDER BY created_at DESC LIMIT %s OFFSET %s",
                    params + (limit, offset),
                )
                return [self._row_to_entity(r) for r in rows], int(count["total"]) if count else 0
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL list profiles failed: {exc}") from exc

        # In-memory mode; insertion order is creation order
        matches = [p for p in reversed(self._mem.values()) if p.matches(search)]
        return matches[offset : offset + limit], len(matches)

    def get(self, profile_id: str) -> ProfileEntity | None:
        if self.pg_client is not None:
            try:
                row = self.pg_client.fetch_one("SELECT * FROM users WHERE id::text = %s", (profile_id,))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL get profile failed: {exc}") from exc
            return self._row_to_entity(row) if row else None
        return self._mem.get(profile_id)

    def create(
        self,
        full_name: str,
        email: str,
        phone_number: str | None = None,
        bio: str | None = None,
        avatar_url: str | None = None,
        date_of_birth: date | None = None,
        location: str | None = None,
    ) -> ProfileEntity:
        if self.pg_client is not None:
            try:
                row = self.pg_client.fetch_one(
                    """
                    INSERT INTO users (
                        full_name, email, phone_number, bio, avatar_url, date_of_birth, location
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING *
                    """,
                    (full_name, email, phone_number, bio, avatar_url, date_of_birth, location),
                )
            except Exception as exc:
                if is_unique_violation(exc):
                    raise DuplicateEmailError(email) from exc
                raise RuntimeError(f"PostgreSQL insert profile failed: {exc}") from exc
            return self._row_to_entity(row)

        if self._email_taken(email):
            raise DuplicateEmailError(email)
        now = datetime.now(UTC)
        entity = ProfileEntity(
            id=str(uuid.uuid4()),
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            bio=bio,
            avatar_url=avatar_url,
            date_of_birth=date_of_birth,
            location=location,
            created_at=now,
            updated_at=now,
        )
        self._mem[entity.id] = entity
        return entity

    def update(
        self,
        profile_id: str,
        full_name: str,
        email: str,
        phone_number: str | None = None,
        bio: str | None = None,
        avatar_url: str | None = None,
        date_of_birth: date | None = None,
        location: str | None = None,
    ) -> ProfileEntity:
        if self.pg_client is not None:
            try:
                row = self.pg_client.fetch_one(
                    """
                    UPDATE users SET
                        full_name = %s, email = %s, phone_number = %s, bio = %s,
                        avatar_url = %s, date_of_birth = %s, location = %s,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE id::text = %s
                    RETURNING *
                    """,
                    (full_name, email, phone_number, bio, avatar_url, date_of_birth, location, profile_id),
                )
            except Exception as exc:
                if is_unique_violation(exc):
                    raise DuplicateEmailError(email) from exc
                raise RuntimeError(f"PostgreSQL update profile failed: {exc}") from exc
            if row is None:
                raise ProfileNotFoundError(profile_id)
            return self._row_to_entity(row)

        current = self._mem.get(profile_id)
        if current is None:
            raise ProfileNotFoundError(profile_id)
        if self._email_taken(email, exclude_id=profile_id):
            raise DuplicateEmailError(email)
        updated = replace(
            current,
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            bio=bio,
            avatar_url=avatar_url,
            date_of_birth=date_of_birth,
            location=location,
            updated_at=datetime.now(UTC),
        )
        self._mem[profile_id] = updated
        return updated

    def delete(self, profile_id: str) -> None:
        if self.pg_client is not None:
            try:
                affected = self.pg_client.execute("DELETE FROM users WHERE id::text = %s", (profile_id,))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL delete profile failed: {exc}") from exc
            if not affected:
                raise ProfileNotFoundError(profile_id)
            return

        if self._mem.pop(profile_id, None) is None:
            raise ProfileNotFoundError(profile_id)
