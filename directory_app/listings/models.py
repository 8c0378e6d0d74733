from dataclasses import dataclass
from enum import StrEnum


class DuplicateHandling(StrEnum):
    skip = "skip"
    update = "update"


class ImportStatus(StrEnum):
    processing = "processing"
    completed = "completed"
    completed_with_errors = "completed_with_errors"


class RowOutcome(StrEnum):
    created = "created"
    updated = "updated"
    skipped = "skipped"


IMPORT_FIELDS = (
    "business_name",
    "category",
    "description",
    "address",
    "city",
    "state",
    "zip",
    "phone",
    "email",
    "website",
    "logo_url",
    "hours_json",
    "services_json",
)

REQUIRED_FIELDS = ("business_name", "category", "address", "city", "state", "zip")

DAY_INDEX = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

DEFAULT_PRICE_UNIT = "per day"
DUPLICATE_SKIPPED_MESSAGE = "Duplicate entry (skipped)"
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class HoursEntry:
    day_of_week: int
    open_time: str | None
    close_time: str | None
    is_closed: bool


@dataclass(frozen=True)
class ServiceEntry:
    service_name: str
    description: str | None
    price: float | None
    price_unit: str
    display_order: int


@dataclass(frozen=True)
class DuplicateMatch:
    listing_id: str
    business_name: str
    address: str | None
