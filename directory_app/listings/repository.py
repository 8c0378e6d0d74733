import json
from datetime import UTC, datetime
from uuid import uuid4

import aiosqlite
import structlog

from directory_app.database import write_lock
from directory_app.listings.models import HoursEntry, ImportStatus, ServiceEntry

logger = structlog.get_logger()

LISTING_COLUMNS = """
    id, user_id, business_name, category, description, phone, email,
    website, address, image_url, is_published, created_at, updated_at
"""

FIND_BY_NAME_SQL = """
    SELECT id, business_name, address
    FROM business_listings
    WHERE business_name = ? COLLATE NOCASE
"""


def _now() -> str:
    return datetime.now(UTC).isoformat()


class ListingRepository:
    """Reads and writes listings; callers commit while holding write_lock."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def find_by_name(self, business_name: str) -> list[dict]:
        cursor = await self._db.execute(FIND_BY_NAME_SQL, (business_name.strip(),))
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def find_by_dedupe_key(self, key: str) -> dict | None:
        cursor = await self._db.execute(
            "SELECT id, business_name, address FROM business_listings WHERE dedupe_key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def get_by_id(self, listing_id: str) -> dict | None:
        cursor = await self._db.execute(
            f"SELECT {LISTING_COLUMNS} FROM business_listings WHERE id = ?",
            (listing_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    async def count(self) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) AS cnt FROM business_listings")
        row = await cursor.fetchone()
        return row["cnt"] if row else 0

    async def insert_listing(self, user_id: str, fields: dict, dedupe_key: str) -> str:
        listing_id = str(uuid4())
        now = _now()
        await self._db.execute(
            """
            INSERT INTO business_listings (
                id, user_id, business_name, category, description, phone, email,
                website, address, image_url, is_published, dedupe_key, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?)
            """,
            (
                listing_id,
                user_id,
                fields["business_name"],
                fields["category"],
                fields.get("description"),
                fields.get("phone"),
                fields.get("email"),
                fields.get("website"),
                fields.get("address"),
                fields.get("image_url"),
                dedupe_key,
                now,
                now,
            ),
        )
        logger.debug("listing_inserted", listing_id=listing_id)
        return listing_id

    async def update_listing(self, listing_id: str, fields: dict) -> None:
        fields = {**fields, "updated_at": _now()}
        assignments = ", ".join(f"{column} = ?" for column in fields)
        await self._db.execute(
            f"UPDATE business_listings SET {assignments} WHERE id = ?",
            (*fields.values(), listing_id),
        )
        logger.debug("listing_updated", listing_id=listing_id, columns=list(fields))

    async def insert_hours(self, listing_id: str, entries: list[HoursEntry]) -> None:
        if not entries:
            return
        await self._db.executemany(
            """
            INSERT INTO business_hours (listing_id, day_of_week, open_time, close_time, is_closed)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (listing_id, e.day_of_week, e.open_time, e.close_time, int(e.is_closed))
                for e in entries
            ],
        )

    async def insert_services(self, listing_id: str, entries: list[ServiceEntry]) -> None:
        if not entries:
            return
        await self._db.executemany(
            """
            INSERT INTO business_services (
                listing_id, service_name, description, price, price_unit, display_order
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (listing_id, e.service_name, e.description, e.price, e.price_unit, e.display_order)
                for e in entries
            ],
        )

    async def get_hours(self, listing_id: str) -> list[dict]:
        cursor = await self._db.execute(
            """
            SELECT day_of_week, open_time, close_time, is_closed
            FROM business_hours
            WHERE listing_id = ?
            ORDER BY day_of_week
            """,
            (listing_id,),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def get_services(self, listing_id: str) -> list[dict]:
        cursor = await self._db.execute(
            """
            SELECT service_name, description, price, price_unit, display_order
            FROM business_services
            WHERE listing_id = ?
            ORDER BY display_order
            """,
            (listing_id,),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]


class RoleRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def has_role(self, user_id: str, role: str) -> bool:
        cursor = await self._db.execute(
            "SELECT 1 FROM user_roles WHERE user_id = ? AND role = ?",
            (user_id, role),
        )
        row = await cursor.fetchone()
        return row is not None

    async def grant(self, user_id: str, role: str) -> None:
        async with write_lock(self._db):
            await self._db.execute(
                "INSERT OR IGNORE INTO user_roles (user_id, role) VALUES (?, ?)",
                (user_id, role),
            )
            await self._db.commit()


class ImportHistoryRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def create(self, user_id: str, file_name: str, total_rows: int) -> str:
        import_id = str(uuid4())
        async with write_lock(self._db):
            await self._db.execute(
                """
                INSERT INTO import_history (id, user_id, file_name, total_rows, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (import_id, user_id, file_name, total_rows, ImportStatus.processing, _now()),
            )
            await self._db.commit()
        logger.info("import_history_created", import_id=import_id, total_rows=total_rows)
        return import_id

    async def get_by_id(self, import_id: str) -> dict | None:
        cursor = await self._db.execute(
            """
            SELECT id, user_id, file_name, total_rows, successful_rows, failed_rows,
                   status, error_log, created_at, completed_at
            FROM import_history
            WHERE id = ?
            """,
            (import_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._decode(dict(row))

    async def list_all(self, limit: int = 50) -> list[dict]:
        cursor = await self._db.execute(
            """
            SELECT id, user_id, file_name, total_rows, successful_rows, failed_rows,
                   status, error_log, created_at, completed_at
            FROM import_history
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._decode(dict(row)) for row in rows]

    async def record_batch(
        self, import_id: str, successful: int, failed: int, errors: list[dict]
    ) -> dict | None:
        async with write_lock(self._db):
            record = await self.get_by_id(import_id)
            if record is None:
                return None
            await self._apply_batch(record, successful, failed, errors)
            await self._db.commit()
        return await self.get_by_id(import_id)

    async def _apply_batch(
        self, record: dict, successful: int, failed: int, errors: list[dict]
    ) -> None:
        import_id = record["id"]

        successful_rows = record["successful_rows"] + successful
        failed_rows = record["failed_rows"] + failed
        error_log = (record["error_log"] or []) + errors

        status = ImportStatus.processing
        completed_at = None
        if successful_rows + failed_rows >= record["total_rows"]:
            status = ImportStatus.completed_with_errors if failed_rows else ImportStatus.completed
            completed_at = _now()

        await self._db.execute(
            """
            UPDATE import_history
            SET successful_rows = ?, failed_rows = ?, status = ?, error_log = ?, completed_at = ?
            WHERE id = ?
            """,
            (
                successful_rows,
                failed_rows,
                status,
                json.dumps(error_log) if error_log else None,
                completed_at,
                import_id,
            ),
        )
        logger.info(
            "import_history_updated",
            import_id=import_id,
            successful_rows=successful_rows,
            failed_rows=failed_rows,
            status=status,
        )

    @staticmethod
    def _decode(row: dict) -> dict:
        row["error_log"] = json.loads(row["error_log"]) if row["error_log"] else None
        return row
