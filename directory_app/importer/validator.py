import json
import re
from dataclasses import dataclass
from typing import Literal

from directory_app.importer.parsers import parse_delimited, parse_json
from directory_app.listings.children import hours_errors, services_errors
from directory_app.listings.models import REQUIRED_FIELDS
from directory_app.listings.schemas import ImportRow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

InputFormat = Literal["csv", "json"]


@dataclass(frozen=True)
class ValidationResult:
    row: int
    data: ImportRow
    is_valid: bool
    errors: tuple[str, ...]


def _json_errors(raw: str, field: str, structure_check) -> list[str]:
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        return [f"Invalid {field} format"]
    return structure_check(decoded)


def validate_row(row: ImportRow, index: int) -> ValidationResult:
    """Apply every field rule to one row; all failures are reported, not just the first."""
    errors: list[str] = []

    for field in REQUIRED_FIELDS:
        if not getattr(row, field).strip():
            errors.append(f"Missing {field}")

    email = row.email.strip()
    if email and not EMAIL_RE.match(email):
        errors.append("Invalid email format")

    website = row.website.strip()
    if website and not website.startswith("http"):
        errors.append("Website must start with http:// or https://")

    if row.hours_json.strip():
        errors.extend(_json_errors(row.hours_json, "hours_json", hours_errors))
    if row.services_json.strip():
        errors.extend(_json_errors(row.services_json, "services_json", services_errors))

    return ValidationResult(row=index + 1, data=row, is_valid=not errors, errors=tuple(errors))


def validate_rows(rows: list[ImportRow]) -> list[ValidationResult]:
    return [validate_row(row, index) for index, row in enumerate(rows)]


def validate_text(raw: str | bytes, fmt: InputFormat) -> list[ValidationResult]:
    """Parse and validate a whole input; a ParseError leaves no partial result."""
    rows = parse_json(raw) if fmt == "json" else parse_delimited(raw)
    return validate_rows(rows)


def valid_results(results: list[ValidationResult]) -> list[ValidationResult]:
    return [result for result in results if result.is_valid]
