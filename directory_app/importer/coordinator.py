import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import reduce

import structlog

from directory_app.exceptions import AppError
from directory_app.importer.client import BatchSubmitter
from directory_app.importer.report import ImportFailure, ImportProgress, ImportReport
from directory_app.importer.validator import ValidationResult
from directory_app.listings.models import DuplicateHandling

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 50
DEFAULT_INTER_BATCH_DELAY = 0.5


@dataclass(frozen=True)
class ImportOptions:
    batch_size: int = DEFAULT_BATCH_SIZE
    skip_logos: bool = False
    duplicate_handling: DuplicateHandling = DuplicateHandling.skip
    inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY
    max_concurrent_batches: int = 1
    import_id: str | None = None


@dataclass(frozen=True)
class BatchOutcome:
    successful: int
    failed: int
    failures: tuple[ImportFailure, ...]


def partition(rows: Sequence[ValidationResult], size: int) -> list[list[ValidationResult]]:
    if size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(rows[start : start + size]) for start in range(0, len(rows), size)]


class ImportCoordinator:
    """Feeds validated rows to the import service batch by batch.

    Batches are pulled in order by a fixed number of workers (one by
    default, which makes the run strictly sequential). Each worker waits
    `inter_batch_delay` before taking the next batch. Failed batches are
    recorded row by row and never retried.
    """

    def __init__(
        self,
        submitter: BatchSubmitter,
        on_progress: Callable[[ImportProgress], None] | None = None,
    ) -> None:
        self._submitter = submitter
        self._on_progress = on_progress

    async def submit(
        self,
        valid_rows: Sequence[ValidationResult],
        options: ImportOptions | None = None,
    ) -> ImportReport:
        options = options or ImportOptions()
        if options.max_concurrent_batches < 1:
            raise ValueError("max_concurrent_batches must be at least 1")

        rows = [result for result in valid_rows if result.is_valid]
        if len(rows) != len(valid_rows):
            logger.warning("invalid_rows_dropped", dropped=len(valid_rows) - len(rows))

        batches = partition(rows, options.batch_size)
        logger.info(
            "import_run_started",
            rows=len(rows),
            batches=len(batches),
            batch_size=options.batch_size,
            duplicate_handling=options.duplicate_handling,
        )

        queue: asyncio.Queue[tuple[int, list[ValidationResult]]] = asyncio.Queue()
        for item in enumerate(batches):
            queue.put_nowait(item)

        outcomes: list[BatchOutcome | None] = [None] * len(batches)
        completed = 0

        async def worker() -> None:
            nonlocal completed
            while not queue.empty():
                index, batch = queue.get_nowait()
                outcomes[index] = await self._submit_batch(index, batch, options)
                completed += 1
                self._report_progress(ImportProgress(completed, len(batches)))
                if not queue.empty() and options.inter_batch_delay > 0:
                    await asyncio.sleep(options.inter_batch_delay)

        worker_count = min(options.max_concurrent_batches, len(batches))
        await asyncio.gather(*(worker() for _ in range(worker_count)))

        report = reduce(
            lambda acc, outcome: acc.merge(outcome.successful, outcome.failed, outcome.failures),
            outcomes,
            ImportReport(),
        )
        logger.info(
            "import_run_completed",
            successful=report.successful,
            failed=report.failed,
        )
        return report

    async def _submit_batch(
        self, index: int, batch: list[ValidationResult], options: ImportOptions
    ) -> BatchOutcome:
        try:
            results = await self._submitter.submit_batch(
                [result.data for result in batch],
                skip_logos=options.skip_logos,
                duplicate_handling=options.duplicate_handling,
                import_id=options.import_id,
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, AppError) else str(exc) or type(exc).__name__
            logger.warning("batch_failed", batch=index + 1, rows=len(batch), error=message)
            return BatchOutcome(
                successful=0,
                failed=len(batch),
                failures=tuple(
                    ImportFailure(row=result.row, error=message, data=result.data)
                    for result in batch
                ),
            )

        failures: list[ImportFailure] = []
        for error in results.errors:
            # Service rows are 1-based within the batch
            source = batch[error.row - 1] if 1 <= error.row <= len(batch) else None
            failures.append(
                ImportFailure(
                    row=source.row if source else error.row,
                    error=error.error,
                    data=source.data if source else None,
                )
            )
        logger.info(
            "batch_completed",
            batch=index + 1,
            successful=results.successful,
            failed=results.failed,
        )
        return BatchOutcome(results.successful, results.failed, tuple(failures))

    def _report_progress(self, progress: ImportProgress) -> None:
        if self._on_progress is not None:
            self._on_progress(progress)
