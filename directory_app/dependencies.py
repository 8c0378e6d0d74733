from functools import lru_cache
from typing import Annotated

import aiosqlite
import httpx
from fastapi import Depends

from directory_app.auth import optional_credentials, verify_token
from directory_app.config import settings
from directory_app.database import get_db
from directory_app.listings.logos import LogoResolver
from directory_app.listings.repository import (
    ImportHistoryRepository,
    ListingRepository,
    RoleRepository,
)
from directory_app.listings.service import ImportService
from directory_app.listings.storage import LocalObjectStorage, ObjectStorage

DBConn = Annotated[aiosqlite.Connection, Depends(get_db)]
Claims = Annotated[dict, Depends(verify_token)]
BearerToken = Annotated[str | None, Depends(optional_credentials)]


@lru_cache
def get_storage() -> ObjectStorage:
    return LocalObjectStorage(
        settings.storage_dir, settings.storage_bucket, settings.public_base_url
    )


@lru_cache
def get_logo_resolver() -> LogoResolver:
    # Shared so the fetch semaphore throttles across requests
    return LogoResolver(
        get_storage(),
        httpx.AsyncClient(),
        user_agent=settings.logo_user_agent,
        timeout=settings.logo_fetch_timeout,
        pause_seconds=settings.logo_pause_seconds,
        concurrency=settings.logo_fetch_concurrency,
    )


async def close_logo_resolver() -> None:
    if get_logo_resolver.cache_info().currsize:
        await get_logo_resolver().aclose()
        get_logo_resolver.cache_clear()


def get_listing_repo() -> ListingRepository:
    return ListingRepository(get_db())


def get_role_repo() -> RoleRepository:
    return RoleRepository(get_db())


def get_history_repo() -> ImportHistoryRepository:
    return ImportHistoryRepository(get_db())


def get_import_service() -> ImportService:
    return ImportService(
        get_db(),
        get_listing_repo(),
        get_role_repo(),
        get_history_repo(),
        get_logo_resolver(),
    )


ImportServiceDep = Annotated[ImportService, Depends(get_import_service)]
HistoryRepoDep = Annotated[ImportHistoryRepository, Depends(get_history_repo)]


async def require_admin(claims: Claims, service: ImportServiceDep) -> str:
    return await service.require_admin(claims.get("sub"))


AdminUser = Annotated[str, Depends(require_admin)]
