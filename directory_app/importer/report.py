import csv
import io
from dataclasses import dataclass, field

from directory_app.listings.schemas import ImportRow

ERROR_LOG_FILENAME = "import_errors.csv"
ERROR_LOG_HEADERS = ("Row", "Error", "Business Name", "Category", "Address")


@dataclass(frozen=True)
class ImportFailure:
    row: int
    error: str
    data: ImportRow | None = None


@dataclass(frozen=True)
class ImportProgress:
    completed_batches: int
    total_batches: int

    @property
    def fraction(self) -> float:
        if not self.total_batches:
            return 1.0
        return self.completed_batches / self.total_batches


@dataclass(frozen=True)
class ImportReport:
    """Cumulative outcome of one import run; every merge returns a new report."""

    successful: int = 0
    failed: int = 0
    errors: tuple[ImportFailure, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.successful + self.failed

    def merge(
        self, successful: int, failed: int, errors: tuple[ImportFailure, ...] | list[ImportFailure]
    ) -> "ImportReport":
        return ImportReport(
            successful=self.successful + successful,
            failed=self.failed + failed,
            errors=self.errors + tuple(errors),
        )

    def to_dict(self) -> dict:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "errors": [
                {
                    "row": e.row,
                    "error": e.error,
                    "data": e.data.model_dump() if e.data is not None else None,
                }
                for e in self.errors
            ],
        }

    def to_error_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(ERROR_LOG_HEADERS)
        for e in self.errors:
            writer.writerow(
                (
                    str(e.row),
                    e.error,
                    e.data.business_name if e.data else "",
                    e.data.category if e.data else "",
                    e.data.address if e.data else "",
                )
            )
        return buffer.getvalue()
