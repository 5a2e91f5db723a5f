import os
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from image_relay.config.settings import Settings
from image_relay.database.connection import apply_schema, close_pool, get_connection, init_pool


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "image_relay_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def integration_pool(test_settings: Settings) -> AsyncGenerator[None, None]:
    try:
        await init_pool(test_settings)
        await apply_schema()
    except Exception as e:
        await close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        await close_pool()


@pytest.fixture
def service_name() -> str:
    """A provider name no other test run uses."""
    return f"it-{uuid.uuid4().hex[:12]}"


@pytest.fixture
def category() -> str:
    """An image category no other test run uses."""
    return f"it-{uuid.uuid4().hex[:12]}"


@pytest_asyncio.fixture(loop_scope="session")
async def health_cleanup(
    integration_pool: None, service_name: str
) -> AsyncGenerator[list[str], None]:
    names = [service_name]
    yield names
    async with get_connection() as conn:
        await conn.execute(
            "DELETE FROM upload_service_status WHERE service_name = ANY(%s)", (names,)
        )
        await conn.commit()


@pytest_asyncio.fixture(loop_scope="session")
async def images_cleanup(integration_pool: None, category: str) -> AsyncGenerator[str, None]:
    yield category
    async with get_connection() as conn:
        await conn.execute("DELETE FROM uploaded_images WHERE category = %s", (category,))
        await conn.commit()
