"""Tests for fetcher module."""

import pytest

from services.customer_import.fetcher import FetchError, UnsupportedFormatError, fetch_rows

HEADER = "Debitornummer,B_Zuordnung,Website,E_Mail,Kinderzahl\n"


class TestFetchRows:
    """Tests for fetch_rows()."""

    def test_reads_rows_as_strings(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(
            HEADER
            + "1001,Kita Sonnenschein,kita-sonnenschein.de,info@kita-sonnenschein.de,42\n"
            + "0042,Kita Regenbogen,,info@regenbogen.de,\n",
            encoding="utf-8",
        )

        rows = fetch_rows(path)

        assert len(rows) == 2
        assert rows[0] == {
            "Debitornummer": "1001",
            "B_Zuordnung": "Kita Sonnenschein",
            "Website": "kita-sonnenschein.de",
            "E_Mail": "info@kita-sonnenschein.de",
            "Kinderzahl": "42",
        }
        # leading zeros survive
        assert rows[1]["Debitornummer"] == "0042"

    def test_empty_cells_become_none(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(HEADER + "1,Acme,,a@acme.com,\n", encoding="utf-8")

        row = fetch_rows(path)[0]

        assert row["Website"] is None
        assert row["Kinderzahl"] is None

    def test_na_strings_are_kept(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(HEADER + "1,NA,,na@acme.com,\n", encoding="utf-8")

        assert fetch_rows(path)[0]["B_Zuordnung"] == "NA"

    def test_quoted_line_break_is_kept_in_cell(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(HEADER + '1,"Kita\nSonnenschein",,a@acme.com,\n', encoding="utf-8")

        rows = fetch_rows(path)

        assert len(rows) == 1
        assert rows[0]["B_Zuordnung"] == "Kita\nSonnenschein"

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_bytes((HEADER + "1,Kita Müller,,info@mueller.de,3\n").encode("latin-1"))

        rows = fetch_rows(path)

        assert rows[0]["B_Zuordnung"] == "Kita Müller"

    def test_header_only_file(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(HEADER, encoding="utf-8")

        assert fetch_rows(path) == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text("", encoding="utf-8")

        assert fetch_rows(path) == []

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "customers.xlsx"
        path.write_bytes(b"not a csv")

        with pytest.raises(UnsupportedFormatError):
            fetch_rows(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FetchError, match="File not found"):
            fetch_rows(tmp_path / "missing.csv")

    def test_accepts_string_path(self, tmp_path):
        path = tmp_path / "customers.csv"
        path.write_text(HEADER + "1,Acme,acme.com,a@acme.com,1\n", encoding="utf-8")

        assert len(fetch_rows(str(path))) == 1
