"""
Main CLI module for the Customer Import service.

Reads a customer CSV export, parses every row into a customer with
canonical domains and creates or updates the matching Linear customers.
Example: python -m services.customer_import --file customers.csv
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import __version__
from .client import LinearClient
from .domains import DomainExtractor
from .errors import ListCustomersError
from .fetcher import FetchError, fetch_rows
from .log_config import configure_logging, get_logger, log_processing_batch
from .parser import ParseOutcome, parse_rows
from .report import create_report, save_report
from .settings import settings
from .upsert import CustomerUpserter, UpsertOutcome

logger = get_logger(__name__)


def mask_key(api_key: str) -> str:
    """Only the first 8 characters of an API key are ever logged."""
    return f"{api_key[:8]}..."


def log_parse_failures(outcome: ParseOutcome) -> None:
    for failed in outcome.failed_rows:
        logger.warning(
            "Row could not be imported",
            row_index=failed.row_index,
            error_kind=failed.error.kind,
            error=failed.error.message,
        )


def log_upsert_failures(outcome: UpsertOutcome) -> None:
    for failure in outcome.failed:
        logger.error(
            "Customer could not be written to Linear",
            customer_id=failure.customer.id,
            name=failure.customer.name,
            action=failure.action.value,
            error=failure.message,
            error_type=type(failure.error).__name__,
        )


def write_report(report, reports_dir: Optional[str]) -> None:
    """Save the import report; a failed write is logged, not raised."""
    config = settings()
    target = Path(reports_dir or config.reports_dir)
    try:
        path = save_report(report, target)
    except OSError as e:
        logger.error("Failed to write import report", reports_dir=str(target), error=str(e))
        return
    logger.info("Import report written", path=str(path), status=report.status)


async def run_import(
    file_path: str,
    api_key: Optional[str] = None,
    strategy: Optional[str] = None,
    dry_run: bool = False,
    reports_dir: Optional[str] = None,
) -> int:
    """
    Run a full import: read, parse, reconcile, report.

    Args:
        file_path: Path to the customer CSV file
        api_key: Linear API key (falls back to LINEAR_API_KEY)
        strategy: Domain strategy override (email, website, combined)
        dry_run: Parse and report only, without touching Linear
        reports_dir: Report directory override

    Returns:
        Exit code (0 when the import ran, 1 on batch-level failure)
    """
    config = settings()
    started_at = datetime.now()
    api_key = (api_key or config.linear_api_key or "").strip()

    if not file_path or not file_path.strip():
        logger.error("File path is required and cannot be empty")
        return 1

    if not dry_run and not api_key:
        logger.error("API key is required and cannot be empty (use --key or LINEAR_API_KEY)")
        return 1

    logger.info(
        "Importing customers",
        file=file_path,
        api_key=mask_key(api_key) if api_key else None,
        strategy=strategy or config.domain_strategy,
        dry_run=dry_run,
    )

    try:
        rows = fetch_rows(file_path, encoding=config.csv_encoding)
    except FetchError as e:
        logger.error("Failed to read customer file", file=file_path, error=str(e))
        write_report(
            create_report(file_path, started_at=started_at, errors=[str(e)], dry_run=dry_run),
            reports_dir,
        )
        return 1

    logger.info("Found rows in CSV file", rows=len(rows))

    extractor = DomainExtractor(
        strategy=strategy or config.domain_strategy,
        excluded_domains=tuple(config.excluded_domains),
    )
    parse_outcome = await parse_rows(rows, extractor, concurrency=config.parse_concurrency)
    log_parse_failures(parse_outcome)
    log_processing_batch(
        logger,
        batch_id=f"parse:{Path(file_path).name}",
        items_processed=len(parse_outcome.customers),
        items_failed=len(parse_outcome.failed_rows),
    )

    if dry_run:
        logger.info("DRY RUN MODE - Skipping Linear upsert", customers=len(parse_outcome.customers))
        write_report(
            create_report(
                file_path,
                rows_total=len(rows),
                parse_outcome=parse_outcome,
                started_at=started_at,
                dry_run=True,
            ),
            reports_dir,
        )
        return 0

    try:
        async with LinearClient(
            api_key,
            api_url=config.linear_api_url,
            timeout=config.api_timeout,
            list_limit=config.customer_list_limit,
        ) as client:
            upserter = CustomerUpserter(client, concurrency=config.upsert_concurrency)
            upsert_outcome = await upserter.upsert_customers(parse_outcome.customers)
    except ListCustomersError as e:
        logger.error("Import failed: could not list existing Linear customers", error=str(e))
        write_report(
            create_report(
                file_path,
                rows_total=len(rows),
                parse_outcome=parse_outcome,
                started_at=started_at,
                errors=[str(e)],
            ),
            reports_dir,
        )
        return 1

    log_upsert_failures(upsert_outcome)
    succeeded = len(parse_outcome.customers) - len(upsert_outcome.failed)
    log_processing_batch(
        logger,
        batch_id=f"upsert:{Path(file_path).name}",
        items_processed=succeeded,
        items_failed=len(upsert_outcome.failed),
        duration_ms=(datetime.now() - started_at).total_seconds() * 1000,
        created=upsert_outcome.created,
        updated=upsert_outcome.updated,
        unchanged=upsert_outcome.unchanged,
    )
    logger.info(
        f"Processed {succeeded} of {len(parse_outcome.customers)} customers successfully",
        rows=len(rows),
        failed_rows=len(parse_outcome.failed_rows),
        failed_upserts=len(upsert_outcome.failed),
    )

    write_report(
        create_report(
            file_path,
            rows_total=len(rows),
            parse_outcome=parse_outcome,
            upsert_outcome=upsert_outcome,
            started_at=started_at,
        ),
        reports_dir,
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Customer Import - Create and update Linear customers from a CSV export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m services.customer_import --file customers.csv --key lin_api_xxx
  python -m services.customer_import --file customers.csv --strategy website
  python -m services.customer_import --file customers.csv --dry-run --log-format text
        """
    )

    parser.add_argument(
        "-f", "--file",
        type=str,
        required=True,
        help="Path to CSV file to import"
    )

    parser.add_argument(
        "-k", "--key",
        type=str,
        help="Linear API key (default: LINEAR_API_KEY)"
    )

    parser.add_argument(
        "--strategy",
        choices=["email", "website", "combined"],
        help="Domain derivation strategy (default: DOMAIN_STRATEGY)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and report without writing to Linear"
    )

    parser.add_argument(
        "--reports-dir",
        type=str,
        help="Directory for the import report (default: REPORTS_DIR)"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration"
    )

    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Override log format from configuration"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Customer Import {__version__}"
    )

    return parser


async def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI application.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.log_level or args.log_format:
        configure_logging(args.log_level, args.log_format)

    config = settings()
    logger.info(
        "Service starting",
        service_name=config.service_name,
        version=__version__,
        environment=config.environment,
        log_level=config.log_level
    )

    try:
        return await run_import(
            args.file,
            api_key=args.key,
            strategy=args.strategy,
            dry_run=args.dry_run,
            reports_dir=args.reports_dir,
        )
    except KeyboardInterrupt:
        logger.warning("Service interrupted by user")
        return 1


def cli_main():
    """Synchronous entry point for setuptools console scripts."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
