"""Tests for report module."""

import json
from datetime import datetime

from services.customer_import.domains import CustomerRecord, InvalidDomainError
from services.customer_import.errors import CreateCustomerError, LinearInternalError
from services.customer_import.parser import FailedRow, ParseOutcome
from services.customer_import.report import ImportReport, create_report, load_report, save_report
from services.customer_import.schemas import CsvRow, CustomerPayload, FieldIssue, RowValidationError
from services.customer_import.upsert import UpsertAction, UpsertFailure, UpsertOutcome

ACME = CustomerRecord(id="1", name="Acme", domains=("acme.com",), child_count=3)


def validation_failure(index=1):
    row = {"name": "", "website": "x.com", "email": "x@x.com"}
    return FailedRow(
        row_index=index,
        row_contents=row,
        error=RowValidationError(
            row_index=index,
            row_contents=row,
            issues=(FieldIssue(field="customer_name", message="String should have at least 1 character"),),
        ),
    )


def domain_failure(index=2):
    row = CsvRow(customer_name="Bad", website="-bad.com", email="a@bad.com")
    return FailedRow(
        row_index=index,
        row_contents={"name": "Bad", "website": "-bad.com", "email": "a@bad.com"},
        error=InvalidDomainError(domain="-bad.com", row=row, customer_name="Bad"),
    )


def upsert_failure():
    payload = CustomerPayload(name="Acme", domains=["acme.com"], external_ids=["1"], size=3)
    return UpsertFailure(
        customer=ACME,
        action=UpsertAction.CREATE,
        error=CreateCustomerError(payload, LinearInternalError("boom")),
    )


class TestCreateReport:
    """Tests for create_report()."""

    def test_ok_status(self):
        report = create_report(
            "customers.csv",
            rows_total=1,
            parse_outcome=ParseOutcome(customers=[ACME]),
            upsert_outcome=UpsertOutcome(created=1),
        )

        assert report.status == "ok"
        assert report.customers_parsed == 1
        assert report.created == 1
        assert report.failed_rows == []

    def test_partial_on_failed_rows(self):
        report = create_report(
            "customers.csv",
            rows_total=2,
            parse_outcome=ParseOutcome(customers=[ACME], failed_rows=[validation_failure()]),
            upsert_outcome=UpsertOutcome(created=1),
        )

        assert report.status == "partial"
        assert report.failed_rows[0]["row_index"] == 1
        assert report.failed_rows[0]["error_kind"] == "validation"
        assert "customer_name" in report.failed_rows[0]["message"]

    def test_partial_on_failed_upserts(self):
        report = create_report(
            "customers.csv",
            rows_total=1,
            parse_outcome=ParseOutcome(customers=[ACME]),
            upsert_outcome=UpsertOutcome(failed=[upsert_failure()]),
        )

        assert report.status == "partial"
        failure = report.failed_upserts[0]
        assert failure["customer_id"] == "1"
        assert failure["action"] == "create"
        assert failure["error_kind"] == "CreateCustomerError"
        assert "boom" in failure["message"]

    def test_error_on_batch_errors(self):
        report = create_report("customers.csv", errors=["File not found"])

        assert report.status == "error"
        assert report.errors == ["File not found"]

    def test_error_when_nothing_parsed(self):
        report = create_report(
            "customers.csv",
            rows_total=2,
            parse_outcome=ParseOutcome(failed_rows=[validation_failure(0), domain_failure(1)]),
        )

        assert report.status == "error"

    def test_empty_file_is_ok(self):
        report = create_report("customers.csv", rows_total=0, parse_outcome=ParseOutcome())

        assert report.status == "ok"

    def test_duration_from_start(self):
        report = create_report("customers.csv", started_at=datetime(2020, 1, 1))

        assert report.duration_seconds > 0

    def test_domain_failure_is_serializable(self):
        report = create_report(
            "customers.csv",
            rows_total=1,
            parse_outcome=ParseOutcome(failed_rows=[domain_failure()]),
        )

        data = json.loads(report.to_json())
        assert data["failed_rows"][0]["error_kind"] == "domain"
        assert data["failed_rows"][0]["row"]["website"] == "-bad.com"


class TestImportReport:
    """Tests for ImportReport serialization."""

    def test_to_dict_groups_counts(self):
        report = ImportReport(
            timestamp=datetime(2025, 1, 1, 12, 0, 0),
            source_file="customers.csv",
            status="ok",
            rows_total=3,
            customers_parsed=3,
            created=1,
            updated=1,
            unchanged=1,
        )

        d = report.to_dict()

        assert d["timestamp"] == "2025-01-01T12:00:00"
        assert d["rows"] == {"total": 3, "parsed": 3, "failed": 0}
        assert d["upsert"] == {"created": 1, "updated": 1, "unchanged": 1, "failed": 0}


class TestSaveAndLoad:
    """Tests for save_report() and load_report()."""

    def test_round_trip(self, tmp_path):
        report = create_report(
            "customers.csv",
            rows_total=2,
            parse_outcome=ParseOutcome(customers=[ACME], failed_rows=[validation_failure()]),
            upsert_outcome=UpsertOutcome(updated=1),
            dry_run=False,
        )

        path = save_report(report, tmp_path / "reports")
        loaded = load_report(path)

        assert path.name == report.timestamp.strftime("%Y-%m-%d_%H%M%S") + ".json"
        assert loaded.status == "partial"
        assert loaded.rows_total == 2
        assert loaded.updated == 1
        assert loaded.failed_rows == report.failed_rows

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "reports"

        path = save_report(create_report("customers.csv"), target)

        assert path.parent == target
        assert path.exists()
