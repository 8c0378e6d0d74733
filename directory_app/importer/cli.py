"""Command-line driver for a bulk listing import.

    python -m directory_app.importer listings.csv --username admin --password ...
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from directory_app.exceptions import ParseError, TransportError
from directory_app.importer.client import ImportClient
from directory_app.importer.coordinator import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_INTER_BATCH_DELAY,
    ImportCoordinator,
    ImportOptions,
)
from directory_app.importer.report import ImportProgress
from directory_app.importer.template import TEMPLATE_FILENAME, build_template_csv
from directory_app.importer.validator import valid_results, validate_text
from directory_app.listings.models import DuplicateHandling
from directory_app.logging_config import setup_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="directory-import", description="Bulk import business listings"
    )
    parser.add_argument("input", nargs="?", help="CSV or JSON file to import")
    parser.add_argument(
        "--format", choices=["csv", "json"], help="Input format (default: by extension)"
    )
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--token", help="Bearer token of an admin user")
    parser.add_argument("--username", help="Log in with these credentials instead of --token")
    parser.add_argument("--password")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_INTER_BATCH_DELAY,
        help="Seconds to wait between batches",
    )
    parser.add_argument("--skip-logos", action="store_true", help="Do not import logos (faster)")
    parser.add_argument(
        "--duplicates",
        choices=[h.value for h in DuplicateHandling],
        default=DuplicateHandling.skip.value,
    )
    parser.add_argument(
        "--no-history", action="store_true", help="Do not record an import history entry"
    )
    parser.add_argument("--error-log", type=Path, help="Write failed rows to this CSV file")
    parser.add_argument(
        "--template",
        type=Path,
        nargs="?",
        const=Path(TEMPLATE_FILENAME),
        help="Write the import template and exit",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate only")
    parser.add_argument("--log-level", default="WARNING")
    return parser


def detect_format(path: Path, explicit: str | None) -> str:
    if explicit:
        return explicit
    return "json" if path.suffix.lower() == ".json" else "csv"


def _print_progress(progress: ImportProgress) -> None:
    print(
        f"  batch {progress.completed_batches}/{progress.total_batches} "
        f"({progress.fraction:.0%})",
        flush=True,
    )


async def run(args: argparse.Namespace) -> int:
    path = Path(args.input)
    try:
        results = validate_text(path.read_bytes(), detect_format(path, args.format))
    except ParseError as exc:
        print(f"Could not parse {path.name}: {exc.message}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    valid = valid_results(results)
    print(f"Validated {len(results)} rows: {len(valid)} valid, {len(results) - len(valid)} invalid")
    for result in results:
        if not result.is_valid:
            print(f"  row {result.row}: {'; '.join(result.errors)}")

    if args.dry_run or not valid:
        return EXIT_OK if len(valid) == len(results) else EXIT_FAILURES

    async with ImportClient(args.base_url, args.token) as client:
        try:
            if args.username:
                await client.login(args.username, args.password or "")
            import_id = None
            if not args.no_history:
                import_id = await client.create_import(path.name, len(valid))
        except TransportError as exc:
            print(f"Import service unavailable: {exc.message}", file=sys.stderr)
            return EXIT_FAILURES

        coordinator = ImportCoordinator(client, on_progress=_print_progress)
        report = await coordinator.submit(
            valid,
            ImportOptions(
                batch_size=args.batch_size,
                skip_logos=args.skip_logos,
                duplicate_handling=DuplicateHandling(args.duplicates),
                inter_batch_delay=args.delay,
                import_id=import_id,
            ),
        )

    print(f"Import complete: {report.successful} imported, {report.failed} failed")
    if report.errors and args.error_log:
        args.error_log.write_text(report.to_error_csv(), encoding="utf-8")
        print(f"Error log written to {args.error_log}")
    return EXIT_FAILURES if report.failed else EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, fmt="console")

    if args.template:
        args.template.write_text(build_template_csv(), encoding="utf-8")
        print(f"Template written to {args.template}")
        return EXIT_OK
    if not args.input:
        parser.error("an input file is required unless --template is given")
    if args.batch_size < 1:
        parser.error("--batch-size must be at least 1")

    return asyncio.run(run(args))
