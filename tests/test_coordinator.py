"""Unit tests for batching, submission and report folding."""

import asyncio
import dataclasses

import pytest

from directory_app.exceptions import TransportError
from directory_app.importer.client import BatchSubmitter
from directory_app.importer.coordinator import ImportCoordinator, ImportOptions, partition
from directory_app.importer.report import ImportFailure, ImportProgress, ImportReport
from directory_app.importer.validator import ValidationResult, validate_rows
from directory_app.listings.models import DuplicateHandling
from directory_app.listings.schemas import BatchResults, ImportRow, RowError
from tests.factories import make_row


class RecordingSubmitter(BatchSubmitter):
    """Accepts every row unless told otherwise, and remembers each call."""

    def __init__(self, fail_calls: set[int] | None = None, errors: list[RowError] | None = None):
        self.calls: list[dict] = []
        self._fail_calls = fail_calls or set()
        self._errors = errors or []

    async def submit_batch(
        self,
        rows: list[ImportRow],
        *,
        skip_logos: bool,
        duplicate_handling: DuplicateHandling,
        import_id: str | None = None,
    ) -> BatchResults:
        self.calls.append(
            {
                "rows": rows,
                "skip_logos": skip_logos,
                "duplicate_handling": duplicate_handling,
                "import_id": import_id,
            }
        )
        if len(self.calls) in self._fail_calls:
            raise TransportError("Connection reset by peer")
        errors = [e for e in self._errors if e.row <= len(rows)]
        return BatchResults(
            successful=len(rows) - len(errors), failed=len(errors), errors=errors
        )


def valid_rows(count: int) -> list[ValidationResult]:
    return validate_rows([make_row(business_name=f"Business {i}") for i in range(count)])


NO_DELAY = ImportOptions(inter_batch_delay=0)


class TestPartition:
    def test_last_batch_holds_the_remainder(self) -> None:
        batches = partition(valid_rows(7), 3)

        assert [len(b) for b in batches] == [3, 3, 1]

    def test_empty_input_has_no_batches(self) -> None:
        assert partition([], 50) == []

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            partition(valid_rows(1), 0)


class TestImportCoordinator:
    """Tests for ImportCoordinator.submit."""

    async def test_rows_are_sent_in_sequential_batches(self) -> None:
        """120 rows with the default batch size go out as 50, 50 and 20."""
        submitter = RecordingSubmitter()

        report = await ImportCoordinator(submitter).submit(valid_rows(120), NO_DELAY)

        assert [len(call["rows"]) for call in submitter.calls] == [50, 50, 20]
        assert submitter.calls[0]["rows"][0].business_name == "Business 0"
        assert submitter.calls[2]["rows"][-1].business_name == "Business 119"
        assert report.successful == 120
        assert report.failed == 0
        assert report.total == 120

    async def test_options_are_forwarded(self) -> None:
        submitter = RecordingSubmitter()
        options = ImportOptions(
            skip_logos=True,
            duplicate_handling=DuplicateHandling.update,
            inter_batch_delay=0,
            import_id="imp-1",
        )

        await ImportCoordinator(submitter).submit(valid_rows(2), options)

        assert submitter.calls[0]["skip_logos"] is True
        assert submitter.calls[0]["duplicate_handling"] == DuplicateHandling.update
        assert submitter.calls[0]["import_id"] == "imp-1"

    async def test_failed_batch_marks_every_row_and_run_continues(self) -> None:
        """A transport failure on one batch fails its rows without stopping the run."""
        submitter = RecordingSubmitter(fail_calls={2})
        options = dataclasses.replace(NO_DELAY, batch_size=10)

        report = await ImportCoordinator(submitter).submit(valid_rows(30), options)

        assert len(submitter.calls) == 3
        assert report.successful == 20
        assert report.failed == 10
        assert [e.row for e in report.errors] == list(range(11, 21))
        assert {e.error for e in report.errors} == {"Connection reset by peer"}
        assert report.errors[0].data.business_name == "Business 10"

    async def test_service_row_numbers_are_mapped_back_to_input_rows(self) -> None:
        """Batch-relative error rows point back at the input rows and their data."""
        rows = validate_rows(
            [
                make_row(business_name="Bad", category=""),
                make_row(business_name="Alpha"),
                make_row(business_name="Beta"),
                make_row(business_name="Gamma"),
            ]
        )
        submitter = RecordingSubmitter(
            errors=[RowError(row=2, error="Duplicate entry (skipped)")]
        )
        options = dataclasses.replace(NO_DELAY, batch_size=2)

        report = await ImportCoordinator(submitter).submit(rows, options)

        # Row 1 is invalid and never sent; batches are [2, 3] and [4]
        assert [len(call["rows"]) for call in submitter.calls] == [2, 1]
        assert report.successful == 2
        assert report.failed == 1
        assert report.errors == (
            ImportFailure(row=3, error="Duplicate entry (skipped)", data=rows[2].data),
        )

    async def test_error_row_outside_batch_is_kept_unmapped(self) -> None:
        class Oversized(BatchSubmitter):
            async def submit_batch(self, rows, **kwargs) -> BatchResults:
                return BatchResults(successful=0, failed=1, errors=[RowError(row=9, error="odd")])

        report = await ImportCoordinator(Oversized()).submit(valid_rows(1), NO_DELAY)

        assert report.errors == (ImportFailure(row=9, error="odd", data=None),)

    async def test_progress_is_reported_after_each_batch(self) -> None:
        seen: list[ImportProgress] = []
        options = dataclasses.replace(NO_DELAY, batch_size=2)

        await ImportCoordinator(RecordingSubmitter(), on_progress=seen.append).submit(
            valid_rows(5), options
        )

        assert seen == [ImportProgress(1, 3), ImportProgress(2, 3), ImportProgress(3, 3)]
        assert seen[-1].fraction == 1.0

    async def test_delay_only_between_batches(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The pause is taken between batches, never after the last one."""
        pauses: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            pauses.append(seconds)

        monkeypatch.setattr("directory_app.importer.coordinator.asyncio.sleep", fake_sleep)
        options = ImportOptions(batch_size=2, inter_batch_delay=0.5)

        await ImportCoordinator(RecordingSubmitter()).submit(valid_rows(5), options)

        assert pauses == [0.5, 0.5]

    async def test_invalid_rows_are_never_submitted(self) -> None:
        rows = validate_rows([make_row(), make_row(business_name="")])
        submitter = RecordingSubmitter()

        report = await ImportCoordinator(submitter).submit(rows, NO_DELAY)

        assert len(submitter.calls[0]["rows"]) == 1
        assert report.successful == 1

    async def test_nothing_to_submit(self) -> None:
        submitter = RecordingSubmitter()

        report = await ImportCoordinator(submitter).submit([], NO_DELAY)

        assert submitter.calls == []
        assert report == ImportReport()

    async def test_concurrent_batches_fold_in_batch_order(self) -> None:
        """With several workers, the report still lists errors in input order."""
        first_may_finish = asyncio.Event()

        class OutOfOrder(BatchSubmitter):
            async def submit_batch(self, rows, **kwargs) -> BatchResults:
                if rows[0].business_name == "Business 0":
                    await first_may_finish.wait()
                else:
                    first_may_finish.set()
                return BatchResults(
                    successful=0,
                    failed=len(rows),
                    errors=[RowError(row=i, error="x") for i in range(1, len(rows) + 1)],
                )

        options = ImportOptions(batch_size=2, inter_batch_delay=0, max_concurrent_batches=2)

        report = await ImportCoordinator(OutOfOrder()).submit(valid_rows(4), options)

        assert [e.row for e in report.errors] == [1, 2, 3, 4]

    async def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            await ImportCoordinator(RecordingSubmitter()).submit(
                valid_rows(1), ImportOptions(max_concurrent_batches=0)
            )


class TestImportReport:
    def test_merge_returns_a_new_report(self) -> None:
        first = ImportReport()
        failure = ImportFailure(row=1, error="boom")

        second = first.merge(2, 1, [failure])

        assert first == ImportReport()
        assert second == ImportReport(successful=2, failed=1, errors=(failure,))

    def test_error_csv_quotes_every_cell(self) -> None:
        report = ImportReport(
            failed=2,
            errors=(
                ImportFailure(row=3, error='Bad "value"', data=make_row(business_name="Acme, Inc")),
                ImportFailure(row=9, error="lost"),
            ),
        )

        lines = report.to_error_csv().splitlines()

        assert lines[0] == '"Row","Error","Business Name","Category","Address"'
        assert lines[1] == '"3","Bad ""value""","Acme, Inc","RV Rental","123 Main Street"'
        assert lines[2] == '"9","lost","","",""'

    def test_to_dict(self) -> None:
        report = ImportReport(successful=1, failed=1, errors=(ImportFailure(row=2, error="x"),))

        assert report.to_dict() == {
            "successful": 1,
            "failed": 1,
            "errors": [{"row": 2, "error": "x", "data": None}],
        }
