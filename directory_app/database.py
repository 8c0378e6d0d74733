import asyncio
import weakref

import aiosqlite
import structlog

from directory_app.config import settings

logger = structlog.get_logger()

_db: aiosqlite.Connection | None = None
_write_locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS user_roles (
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        PRIMARY KEY (user_id, role)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS business_listings (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        business_name TEXT NOT NULL,
        category TEXT NOT NULL,
        description TEXT,
        phone TEXT,
        email TEXT,
        website TEXT,
        address TEXT,
        image_url TEXT,
        is_published INTEGER NOT NULL DEFAULT 0,
        dedupe_key TEXT UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_business_listings_name
    ON business_listings (business_name COLLATE NOCASE)
    """,
    """
    CREATE TABLE IF NOT EXISTS business_hours (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        listing_id TEXT NOT NULL REFERENCES business_listings(id) ON DELETE CASCADE,
        day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
        open_time TEXT,
        close_time TEXT,
        is_closed INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS business_services (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        listing_id TEXT NOT NULL REFERENCES business_listings(id) ON DELETE CASCADE,
        service_name TEXT NOT NULL,
        description TEXT,
        price REAL,
        price_unit TEXT,
        display_order INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS import_history (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        file_name TEXT NOT NULL,
        total_rows INTEGER NOT NULL,
        successful_rows INTEGER NOT NULL DEFAULT 0,
        failed_rows INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'processing',
        error_log TEXT,
        created_at TEXT NOT NULL,
        completed_at TEXT
    )
    """,
]


async def create_schema(db: aiosqlite.Connection) -> None:
    await db.execute("PRAGMA foreign_keys=ON")
    for ddl in DDL_STATEMENTS:
        await db.execute(ddl)
    await db.execute(
        "INSERT OR IGNORE INTO user_roles (user_id, role) VALUES (?, 'admin')",
        (settings.auth_username,),
    )
    await db.commit()


async def init_database() -> None:
    global _db
    _db = await aiosqlite.connect(settings.db_path)
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode=WAL")
    await create_schema(_db)

    logger.info("database_initialized", path=settings.db_path)


async def close_database() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("database_closed")


def get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _db


async def check_health() -> None:
    db = get_db()
    cursor = await db.execute("SELECT 1")
    await cursor.close()


def write_lock(db: aiosqlite.Connection) -> asyncio.Lock:
    """Lock serializing write-then-commit units on one shared connection.

    Every coroutine shares the connection's transaction, so a commit or
    rollback issued by one caller settles the pending writes of all of them.
    The lock is not reentrant.
    """
    lock = _write_locks.get(db)
    if lock is None:
        lock = _write_locks[db] = asyncio.Lock()
    return lock
