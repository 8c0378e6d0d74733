from directory_app.importer.client import BatchSubmitter, ImportClient
from directory_app.importer.coordinator import ImportCoordinator, ImportOptions
from directory_app.importer.parsers import parse_delimited, parse_json
from directory_app.importer.report import ImportFailure, ImportProgress, ImportReport
from directory_app.importer.template import build_template_csv
from directory_app.importer.validator import (
    ValidationResult,
    validate_row,
    validate_rows,
    validate_text,
)

__all__ = [
    "BatchSubmitter",
    "ImportClient",
    "ImportCoordinator",
    "ImportFailure",
    "ImportOptions",
    "ImportProgress",
    "ImportReport",
    "ValidationResult",
    "build_template_csv",
    "parse_delimited",
    "parse_json",
    "validate_row",
    "validate_rows",
    "validate_text",
]
