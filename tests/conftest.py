"""Shared fixtures: an in-memory database with the real schema and an import
service whose logo host is an httpx MockTransport."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import aiosqlite
import httpx
import pytest

from directory_app.config import settings
from directory_app.database import create_schema
from directory_app.listings.logos import LogoResolver
from directory_app.listings.repository import (
    ImportHistoryRepository,
    ListingRepository,
    RoleRepository,
)
from directory_app.listings.service import ImportService
from directory_app.listings.storage import LocalObjectStorage
from tests.factories import png_response


@pytest.fixture
async def db() -> AsyncGenerator[aiosqlite.Connection, None]:
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await create_schema(conn)
    yield conn
    await conn.close()


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "storage", "business-photos", "http://testserver")


@pytest.fixture
def logo_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def logo_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Override in a test module to change how the fake logo host answers."""
    return png_response


@pytest.fixture
async def logo_resolver(
    storage: LocalObjectStorage,
    logo_handler: Callable[[httpx.Request], httpx.Response],
    logo_requests: list[httpx.Request],
) -> AsyncGenerator[LogoResolver, None]:
    def handler(request: httpx.Request) -> httpx.Response:
        logo_requests.append(request)
        return logo_handler(request)

    resolver = LogoResolver(
        storage,
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        user_agent=settings.logo_user_agent,
        timeout=5.0,
        pause_seconds=0,
    )
    yield resolver
    await resolver.aclose()


@pytest.fixture
def listings(db: aiosqlite.Connection) -> ListingRepository:
    return ListingRepository(db)


@pytest.fixture
def history(db: aiosqlite.Connection) -> ImportHistoryRepository:
    return ImportHistoryRepository(db)


@pytest.fixture
def service(
    db: aiosqlite.Connection,
    listings: ListingRepository,
    history: ImportHistoryRepository,
    logo_resolver: LogoResolver,
) -> ImportService:
    return ImportService(db, listings, RoleRepository(db), history, logo_resolver)
