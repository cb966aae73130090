"""
Batch parsing of CSV rows into customer records.

Every row is validated and turned into a CustomerRecord independently.
Rows run concurrently (unbounded unless a limit is given); a bad row ends
up in failed_rows and never stops its siblings.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from .domains import CustomerRecord, DomainExtractor, InvalidDomainError
from .log_config import get_logger
from .schemas import RowValidationError, validate_row

logger = get_logger(__name__)


@dataclass(frozen=True)
class FailedRow:
    """A row that could not become a CustomerRecord."""
    row_index: int
    row_contents: Any
    error: Union[RowValidationError, InvalidDomainError]


@dataclass
class ParseOutcome:
    """Result of parse_rows()."""
    failed_rows: List[FailedRow] = field(default_factory=list)
    customers: List[CustomerRecord] = field(default_factory=list)


def parse_row(
    row: Mapping[str, Any],
    row_index: int,
    extractor: DomainExtractor,
) -> Union[CustomerRecord, FailedRow]:
    """Validate one row and derive its CustomerRecord."""
    validated = validate_row(row, row_index)
    if isinstance(validated, RowValidationError):
        return FailedRow(row_index=row_index, row_contents=row, error=validated)

    customer = extractor.parse_customer(validated)
    if isinstance(customer, InvalidDomainError):
        return FailedRow(row_index=row_index, row_contents=row, error=customer)

    return customer


async def parse_rows(
    rows: Sequence[Mapping[str, Any]],
    extractor: DomainExtractor,
    concurrency: Optional[int] = None,
) -> ParseOutcome:
    """
    Parse a batch of raw rows.

    Args:
        rows: Raw CSV rows in file order
        extractor: DomainExtractor holding the active domain policy
        concurrency: Maximum rows in flight (None = unbounded)

    Returns:
        ParseOutcome with failed rows (sorted by original 0-based index)
        and the customers that parsed successfully
    """
    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def run(index: int, row: Mapping[str, Any]) -> Union[CustomerRecord, FailedRow]:
        if semaphore is None:
            return parse_row(row, index, extractor)
        async with semaphore:
            return parse_row(row, index, extractor)

    results = await asyncio.gather(*(run(index, row) for index, row in enumerate(rows)))

    outcome = ParseOutcome()
    for result in results:
        if isinstance(result, FailedRow):
            outcome.failed_rows.append(result)
        else:
            outcome.customers.append(result)

    outcome.failed_rows.sort(key=lambda failed: failed.row_index)

    logger.debug(
        "Parsed rows",
        total_rows=len(rows),
        customers=len(outcome.customers),
        failed_rows=len(outcome.failed_rows),
    )

    return outcome
