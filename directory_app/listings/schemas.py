import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from directory_app.listings.models import DuplicateHandling


class ImportRow(BaseModel):
    """One prospective listing, exactly as supplied by the import file."""

    model_config = ConfigDict(extra="ignore")

    business_name: str = ""
    category: str = ""
    description: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    logo_url: str = ""
    hours_json: str = ""
    services_json: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_text(cls, value: Any) -> str:
        # JSON input may carry nested objects, numbers or nulls
        if value is None:
            return ""
        if isinstance(value, dict | list):
            return json.dumps(value)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class BatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rows: list[ImportRow]
    skip_logos: bool = Field(default=False, alias="skipLogos")
    duplicate_handling: DuplicateHandling = Field(
        default=DuplicateHandling.skip, alias="duplicateHandling"
    )
    import_id: str | None = Field(default=None, alias="importId")


class RowError(BaseModel):
    row: int
    error: str


class BatchResults(BaseModel):
    successful: int = 0
    failed: int = 0
    errors: list[RowError] = Field(default_factory=list)


class BatchResponse(BaseModel):
    success: bool
    results: BatchResults


class BatchFailure(BaseModel):
    success: bool = False
    error: str


class ImportHistoryCreate(BaseModel):
    file_name: str = Field(min_length=1)
    total_rows: int = Field(ge=0)


class ImportHistoryResponse(BaseModel):
    id: str
    user_id: str
    file_name: str
    total_rows: int
    successful_rows: int
    failed_rows: int
    status: str
    error_log: list[dict] | None
    created_at: str
    completed_at: str | None


class HoursResponse(BaseModel):
    day_of_week: int
    open_time: str | None
    close_time: str | None
    is_closed: bool


class ServiceResponse(BaseModel):
    service_name: str
    description: str | None
    price: float | None
    price_unit: str | None
    display_order: int


class ListingResponse(BaseModel):
    id: str
    user_id: str
    business_name: str
    category: str
    description: str | None
    phone: str | None
    email: str | None
    website: str | None
    address: str | None
    image_url: str | None
    is_published: bool
    created_at: str
    updated_at: str
    hours: list[HoursResponse] = Field(default_factory=list)
    services: list[ServiceResponse] = Field(default_factory=list)
