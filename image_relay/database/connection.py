from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg_pool import AsyncConnectionPool

from image_relay.config.settings import Settings

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

_pool: AsyncConnectionPool | None = None


async def init_pool(settings: Settings) -> None:
    """Open the global async connection pool from settings.

    Raises:
        PoolTimeout: if no connection is established within
            ``settings.db_connect_timeout_seconds``.
    """
    global _pool  # noqa: PLW0603
    conninfo = (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )
    pool = AsyncConnectionPool(
        conninfo, min_size=1, max_size=settings.db_pool_max_size, open=False
    )
    try:
        await pool.open(wait=True, timeout=settings.db_connect_timeout_seconds)
    except Exception:
        await pool.close()
        raise
    _pool = pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection() -> AsyncGenerator[psycopg.AsyncConnection[Any], None]:
    """Yield a connection from the pool. Caller manages commit/rollback."""
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    async with _pool.connection() as conn:
        yield conn


async def apply_schema() -> None:
    """Create the health and image tables if they do not exist."""
    async with get_connection() as conn:
        await conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
        await conn.commit()
