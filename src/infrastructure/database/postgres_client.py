"""PostgreSQL access for the profile store.

Enabled with ``USE_LOCAL_DB=1``; otherwise the repository keeps profiles in
memory. Connections come from a small psycopg2 pool.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Generator

from loguru import logger

try:
    import psycopg2
    from psycopg2 import pool
    from psycopg2.extras import RealDictCursor
except ImportError:  # pragma: no cover
    psycopg2 = None  # type: ignore
    pool = None  # type: ignore
    RealDictCursor = None  # type: ignore

UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: BaseException) -> bool:
    return getattr(exc, "pgcode", None) == UNIQUE_VIOLATION


class PostgresClient:
    """Pooled PostgreSQL client returning rows as dictionaries."""

    def __init__(self, dsn: str | None = None) -> None:
        self.enabled = dsn is not None or os.getenv("USE_LOCAL_DB", "0") == "1"
        self._pool: Any = None

        if not self.enabled:
            return
        if psycopg2 is None:
            raise RuntimeError("USE_LOCAL_DB=1 requires psycopg2 to be installed")
        try:
            if dsn is not None:
                self._pool = pool.SimpleConnectionPool(minconn=1, maxconn=10, dsn=dsn)
            else:
                self._pool = pool.SimpleConnectionPool(
                    minconn=1,
                    maxconn=10,
                    host=os.getenv("POSTGRES_HOST", "localhost"),
                    port=int(os.getenv("POSTGRES_PORT", "5432")),
                    database=os.getenv("POSTGRES_DB", "profilekit"),
                    user=os.getenv("POSTGRES_USER", "profilekit"),
                    password=os.getenv("POSTGRES_PASSWORD", "profilekit_dev_password"),
                )
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc
        logger.info("[DB] PostgreSQL pool ready")

    @contextmanager
    def cursor(self) -> Generator[Any, None, None]:
        """Yield a dict cursor inside a transaction; commits on success, rolls back on error."""
        if self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")
        conn = self._pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def fetch_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        with self.cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
            return dict(row) if row else None

    def fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.cursor() as cur:
            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]

    def execute(self, query: str, params: tuple = ()) -> int:
        """Run a statement without a result set; returns the affected row count."""
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()
            self._pool = None


_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    """Shared pool for the process, or None when the local database is disabled."""
    global _POSTGRES_CLIENT
    if os.getenv("USE_LOCAL_DB", "0") != "1":
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
