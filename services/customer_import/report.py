"""
Report generation for customer imports.

Every import writes a JSON report listing the rows that could not be parsed
and the customers that could not be written, so operators can fix the CSV
and re-run. Reports are saved to data/customer_import/reports/ with
timestamped filenames.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .parser import FailedRow, ParseOutcome
from .upsert import UpsertFailure, UpsertOutcome

DEFAULT_REPORTS_DIR = Path("data/customer_import/reports")


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def failed_row_to_dict(failed: FailedRow) -> Dict[str, Any]:
    return {
        "row_index": failed.row_index,
        "row": _json_safe(failed.row_contents),
        "error_kind": failed.error.kind,
        "message": failed.error.message,
    }


def upsert_failure_to_dict(failure: UpsertFailure) -> Dict[str, Any]:
    return {
        "customer_id": failure.customer.id,
        "name": failure.customer.name,
        "domains": list(failure.customer.domains),
        "action": failure.action.value,
        "error_kind": type(failure.error).__name__,
        "message": failure.message,
    }


@dataclass
class ImportReport:
    """Complete import operation report."""
    timestamp: datetime
    source_file: str
    status: str  # "ok", "partial", "error"
    rows_total: int = 0
    customers_parsed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    dry_run: bool = False
    failed_rows: List[Dict[str, Any]] = field(default_factory=list)
    failed_upserts: List[Dict[str, Any]] = field(default_factory=list)
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "source_file": self.source_file,
            "status": self.status,
            "dry_run": self.dry_run,
            "rows": {
                "total": self.rows_total,
                "parsed": self.customers_parsed,
                "failed": len(self.failed_rows),
            },
            "upsert": {
                "created": self.created,
                "updated": self.updated,
                "unchanged": self.unchanged,
                "failed": len(self.failed_upserts),
            },
            "failed_rows": self.failed_rows,
            "failed_upserts": self.failed_upserts,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def create_report(
    source_file: str,
    rows_total: int = 0,
    parse_outcome: Optional[ParseOutcome] = None,
    upsert_outcome: Optional[UpsertOutcome] = None,
    started_at: Optional[datetime] = None,
    errors: Optional[List[str]] = None,
    dry_run: bool = False,
) -> ImportReport:
    """
    Create an import report from stage results.

    Status is "error" when the batch failed as a whole (errors given, or
    nothing was parsed from a non-empty file), "partial" when some rows or
    writes failed, and "ok" otherwise.
    """
    now = datetime.now()
    all_errors = list(errors or [])

    failed_rows = [failed_row_to_dict(f) for f in parse_outcome.failed_rows] if parse_outcome else []
    customers_parsed = len(parse_outcome.customers) if parse_outcome else 0
    failed_upserts = [upsert_failure_to_dict(f) for f in upsert_outcome.failed] if upsert_outcome else []

    if all_errors or (rows_total > 0 and customers_parsed == 0):
        status = "error"
    elif failed_rows or failed_upserts:
        status = "partial"
    else:
        status = "ok"

    duration = (now - started_at).total_seconds() if started_at else 0.0

    return ImportReport(
        timestamp=now,
        source_file=source_file,
        status=status,
        rows_total=rows_total,
        customers_parsed=customers_parsed,
        created=upsert_outcome.created if upsert_outcome else 0,
        updated=upsert_outcome.updated if upsert_outcome else 0,
        unchanged=upsert_outcome.unchanged if upsert_outcome else 0,
        dry_run=dry_run,
        failed_rows=failed_rows,
        failed_upserts=failed_upserts,
        duration_seconds=duration,
        errors=all_errors,
    )


def save_report(
    report: ImportReport,
    reports_dir: Optional[Path] = None,
) -> Path:
    """
    Save report to JSON file.

    File is named with timestamp: YYYY-MM-DD_HHMMSS.json

    Args:
        report: ImportReport to save
        reports_dir: Directory for reports (default: data/customer_import/reports/)

    Returns:
        Path to saved report file
    """
    if reports_dir is None:
        reports_dir = DEFAULT_REPORTS_DIR

    reports_dir.mkdir(parents=True, exist_ok=True)

    timestamp_str = report.timestamp.strftime("%Y-%m-%d_%H%M%S")
    filepath = reports_dir / f"{timestamp_str}.json"

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(report.to_json())

    return filepath


def load_report(filepath: Path) -> ImportReport:
    """
    Load a report from JSON file.

    Args:
        filepath: Path to report file

    Returns:
        ImportReport instance
    """
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)

    rows = data.get("rows") or {}
    upsert = data.get("upsert") or {}

    return ImportReport(
        timestamp=datetime.fromisoformat(data["timestamp"]),
        source_file=data["source_file"],
        status=data["status"],
        rows_total=rows.get("total", 0),
        customers_parsed=rows.get("parsed", 0),
        created=upsert.get("created", 0),
        updated=upsert.get("updated", 0),
        unchanged=upsert.get("unchanged", 0),
        dry_run=data.get("dry_run", False),
        failed_rows=data.get("failed_rows", []),
        failed_upserts=data.get("failed_upserts", []),
        duration_seconds=data.get("duration_seconds", 0.0),
        errors=data.get("errors", []),
    )
