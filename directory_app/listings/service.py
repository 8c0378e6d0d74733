import aiosqlite
import structlog

from directory_app.database import write_lock
from directory_app.exceptions import NotFoundError, UnauthorizedError
from directory_app.listings.children import build_hours, build_services
from directory_app.listings.dedupe import addresses_match, dedupe_key, full_address
from directory_app.listings.logos import LogoResolver
from directory_app.listings.models import (
    ADMIN_ROLE,
    DUPLICATE_SKIPPED_MESSAGE,
    DuplicateHandling,
    DuplicateMatch,
    RowOutcome,
)
from directory_app.listings.repository import (
    ImportHistoryRepository,
    ListingRepository,
    RoleRepository,
)
from directory_app.listings.schemas import (
    BatchResults,
    HoursResponse,
    ImportRow,
    ListingResponse,
    RowError,
    ServiceResponse,
)

logger = structlog.get_logger()


class ImportService:
    def __init__(
        self,
        db: aiosqlite.Connection,
        listings: ListingRepository,
        roles: RoleRepository,
        history: ImportHistoryRepository,
        logos: LogoResolver,
    ) -> None:
        self._db = db
        self._listings = listings
        self._roles = roles
        self._history = history
        self._logos = logos

    async def require_admin(self, user_id: str | None) -> str:
        if not user_id:
            raise UnauthorizedError("Unauthorized")
        if not await self._roles.has_role(user_id, ADMIN_ROLE):
            logger.warning("admin_check_failed", user_id=user_id)
            raise UnauthorizedError("Unauthorized - Admin access required")
        return user_id

    async def process_batch(
        self,
        rows: list[ImportRow],
        *,
        skip_logos: bool,
        duplicate_handling: DuplicateHandling,
        user_id: str | None,
        import_id: str | None = None,
    ) -> BatchResults:
        """Import one batch of rows, isolating failures to the row that caused them.

        Row numbers in the returned errors are 1-based positions within
        this batch.
        """
        await self.require_admin(user_id)
        if import_id is not None and await self._history.get_by_id(import_id) is None:
            raise NotFoundError("Import", import_id)

        logger.info(
            "import_batch_started",
            rows=len(rows),
            skip_logos=skip_logos,
            duplicate_handling=duplicate_handling,
            import_id=import_id,
        )

        results = BatchResults()
        for position, row in enumerate(rows, start=1):
            try:
                outcome = await self._import_row(row, skip_logos, duplicate_handling, user_id)
            except Exception as exc:
                results.failed += 1
                results.errors.append(RowError(row=position, error=str(exc) or type(exc).__name__))
                logger.warning(
                    "import_row_failed",
                    row=position,
                    business_name=row.business_name,
                    error=str(exc),
                )
                continue

            if outcome == RowOutcome.skipped:
                results.failed += 1
                results.errors.append(RowError(row=position, error=DUPLICATE_SKIPPED_MESSAGE))
                logger.info(
                    "import_duplicate_skipped", row=position, business_name=row.business_name
                )
            else:
                results.successful += 1
                logger.info(
                    "import_row_succeeded",
                    row=position,
                    business_name=row.business_name,
                    outcome=outcome,
                )

        if import_id is not None:
            await self._history.record_batch(
                import_id,
                results.successful,
                results.failed,
                [
                    {
                        "row": e.row,
                        "error": e.error,
                        "business_name": rows[e.row - 1].business_name,
                    }
                    for e in results.errors
                ],
            )

        logger.info(
            "import_batch_completed",
            successful=results.successful,
            failed=results.failed,
            import_id=import_id,
        )
        return results

    async def find_duplicate(self, row: ImportRow) -> DuplicateMatch | None:
        address = full_address(row)
        for listing in await self._listings.find_by_name(row.business_name):
            if addresses_match(listing["address"], address):
                return DuplicateMatch(
                    listing_id=listing["id"],
                    business_name=listing["business_name"],
                    address=listing["address"],
                )
        return None

    async def get_listing(self, listing_id: str) -> ListingResponse:
        row = await self._listings.get_by_id(listing_id)
        if row is None:
            raise NotFoundError("Listing", listing_id)
        hours = await self._listings.get_hours(listing_id)
        services = await self._listings.get_services(listing_id)
        return ListingResponse(
            **{**row, "is_published": bool(row["is_published"])},
            hours=[HoursResponse(**{**h, "is_closed": bool(h["is_closed"])}) for h in hours],
            services=[ServiceResponse(**s) for s in services],
        )

    async def _import_row(
        self,
        row: ImportRow,
        skip_logos: bool,
        duplicate_handling: DuplicateHandling,
        user_id: str,
    ) -> RowOutcome:
        # Skipped rows never reach the logo fetch
        async with write_lock(self._db):
            duplicate = await self.find_duplicate(row)
        if duplicate is not None and duplicate_handling == DuplicateHandling.skip:
            return RowOutcome.skipped

        image_url = None
        if row.logo_url and not skip_logos:
            image_url = await self._logos.resolve(row.logo_url, row.business_name)

        async with write_lock(self._db):
            try:
                outcome = await self._write_row(row, image_url, duplicate_handling, user_id)
                await self._db.commit()
            except Exception:
                await self._db.rollback()
                raise
        return outcome

    async def _write_row(
        self,
        row: ImportRow,
        image_url: str | None,
        duplicate_handling: DuplicateHandling,
        user_id: str,
    ) -> RowOutcome:
        """Write one row inside the caller's transaction; the caller commits."""
        duplicate = await self.find_duplicate(row)
        if duplicate is not None:
            if duplicate_handling == DuplicateHandling.skip:
                return RowOutcome.skipped
            await self._update_existing(duplicate.listing_id, row, image_url)
            return RowOutcome.updated

        key = dedupe_key(row.business_name, full_address(row))
        try:
            listing_id = await self._listings.insert_listing(
                user_id, self._listing_fields(row, image_url), key
            )
        except aiosqlite.IntegrityError as exc:
            if "dedupe_key" not in str(exc):
                raise
            # Names differing only in spacing or punctuation share a dedupe key
            if duplicate_handling == DuplicateHandling.skip:
                return RowOutcome.skipped
            existing = await self._listings.find_by_dedupe_key(key)
            if existing is None:
                raise
            await self._update_existing(existing["id"], row, image_url)
            return RowOutcome.updated

        if row.hours_json:
            await self._listings.insert_hours(
                listing_id, build_hours(row.hours_json, row.business_name)
            )
        if row.services_json:
            await self._listings.insert_services(
                listing_id, build_services(row.services_json, row.business_name)
            )
        return RowOutcome.created

    async def _update_existing(
        self, listing_id: str, row: ImportRow, image_url: str | None
    ) -> None:
        fields = self._listing_fields(row, image_url)
        fields.pop("business_name")
        if image_url is None:
            fields.pop("image_url")
        fields["dedupe_key"] = dedupe_key(row.business_name, fields["address"])
        await self._listings.update_listing(listing_id, fields)

    @staticmethod
    def _listing_fields(row: ImportRow, image_url: str | None) -> dict:
        return {
            "business_name": row.business_name,
            "category": row.category,
            "description": row.description or None,
            "phone": row.phone or None,
            "email": row.email or None,
            "website": row.website or None,
            "address": full_address(row),
            "image_url": image_url,
        }
