"""Tests for DuckDB and in-memory repositories."""

from datetime import date

import pytest

from thirteenf.core.models import (
    Address,
    Filer,
    Holding,
    LatestActivity,
    PortfolioChanges,
    QuarterHoldings,
    QuarterlyReport,
    ReportSummary,
    SectorSlice,
)
from thirteenf.core.repository import FilerRepository, HoldingsRepository
from thirteenf.storage import (
    Database,
    InMemoryFilerRepository,
    InMemoryHoldingsRepository,
)
from thirteenf.storage.connection import split_sql_statements

CIK = "0001517137"


def make_report(quarter, period, filed, accession, holdings_count=2, value=1000.0):
    return QuarterlyReport(
        quarter=quarter,
        period_of_report=period,
        filing_date=filed,
        accession_number=accession,
        summary=ReportSummary(total_holdings_count=holdings_count, total_market_value=value),
        portfolio_changes=PortfolioChanges(new_positions=holdings_count),
        sector_breakdown=[SectorSlice(sector="Technology", value=value, percentage=100.0)],
    )


def make_filer(*reports):
    return Filer(
        cik=CIK,
        filer_name="Starboard Value LP",
        address=Address(street1="777 Third Avenue", city="New York", state="NY", zip="10017"),
        latest_activity=LatestActivity(
            last_reported_quarter="24Q2",
            last_filing_date=date(2024, 8, 14),
            current_holdings_count=2,
            current_market_value=1000.0,
        ),
        quarterly_reports=list(reports),
    )


def make_document(quarter, *holdings):
    return QuarterHoldings(
        cik=CIK,
        quarter=quarter,
        filer_name="Starboard Value LP",
        accession_number=f"0001517137-24-0000{quarter[-1]}",
        holdings=list(holdings),
    )


Q2 = make_report("24Q2", date(2024, 6, 30), date(2024, 8, 14), "0001517137-24-000005")
Q3 = make_report("24Q3", date(2024, 9, 30), date(2024, 11, 14), "0001517137-24-000009")


@pytest.fixture(params=["duckdb", "memory"])
def repositories(request, temp_db):
    if request.param == "duckdb":
        return temp_db.filers, temp_db.holdings
    return InMemoryFilerRepository(), InMemoryHoldingsRepository()


class TestFilerRepository:
    """Contract tests run against both repository implementations."""

    def test_protocols(self, repositories):
        filers, holdings = repositories
        assert isinstance(filers, FilerRepository)
        assert isinstance(holdings, HoldingsRepository)

    def test_missing_filer(self, repositories):
        filers, _ = repositories
        assert filers.get_filer(CIK) is None

    def test_save_and_get(self, repositories):
        filers, _ = repositories

        filers.save_filer(make_filer(Q2))
        loaded = filers.get_filer(CIK)

        assert loaded.filer_name == "Starboard Value LP"
        assert loaded.address.city == "New York"
        assert loaded.latest_activity.last_reported_quarter == "24Q2"
        assert loaded.latest_activity.last_filing_date == date(2024, 8, 14)
        assert loaded.quarterly_reports == [Q2]

    def test_reports_are_append_only(self, repositories):
        filers, _ = repositories
        filers.save_filer(make_filer(Q2))

        altered = make_report("24Q2", date(2024, 6, 30), date(2024, 9, 1), "amended", value=5.0)
        filers.save_filer(make_filer(altered, Q3))
        loaded = filers.get_filer(CIK)

        assert [r.quarter for r in loaded.quarterly_reports] == ["24Q2", "24Q3"]
        assert loaded.quarterly_reports[0].accession_number == "0001517137-24-000005"
        assert loaded.quarterly_reports[0].summary.total_market_value == 1000.0

    def test_reports_ordered_by_period(self, repositories):
        filers, _ = repositories
        filers.save_filer(make_filer(Q3, Q2))

        assert [r.quarter for r in filers.get_filer(CIK).quarterly_reports] == ["24Q2", "24Q3"]

    def test_filer_fields_updated(self, repositories):
        filers, _ = repositories
        filers.save_filer(make_filer(Q2))

        filer = filers.get_filer(CIK)
        filer.filer_name = "Starboard Value"
        filers.save_filer(filer)

        assert filers.get_filer(CIK).filer_name == "Starboard Value"
        assert len(filers.list_filers()) == 1


class TestHoldingsRepository:
    def test_missing_document(self, repositories):
        _, holdings = repositories
        assert holdings.get_holdings(CIK, "24Q2") is None

    def test_upsert_replaces(self, repositories):
        _, holdings = repositories
        apple = Holding(cusip="037833100", issuer_name="APPLE INC", value=6000, shares=100,
                        ticker="AAPL", sector="Technology", change_type="NEW")
        msft = Holding(cusip="594918104", issuer_name="MICROSOFT CORP", value=4000, shares=50)

        holdings.upsert_holdings(make_document("24Q2", apple, msft))
        holdings.upsert_holdings(make_document("24Q2", apple))
        document = holdings.get_holdings(CIK, "24Q2")

        assert [h.cusip for h in document.holdings] == ["037833100"]
        assert document.holdings[0].ticker == "AAPL"
        assert document.holdings[0].change_type == "NEW"

    def test_list_quarters(self, repositories):
        _, holdings = repositories
        holdings.upsert_holdings(make_document("24Q3"))
        holdings.upsert_holdings(make_document("24Q2"))

        assert holdings.list_quarters(CIK) == ["24Q2", "24Q3"]
        assert holdings.list_quarters("0000000001") == []


class TestDatabase:
    """DuckDB-specific behaviour."""

    def test_schema_is_idempotent(self, temp_db):
        temp_db.initialize_schema()
        assert temp_db.filers.count_reports() == 0

    def test_semicolons_in_comments_do_not_split(self):
        statements = split_sql_statements(
            "-- header; with a semicolon\n"
            "CREATE TABLE t (x INT); -- trailing; note\n"
            "CREATE INDEX i ON t(x);\n"
        )

        assert statements == ["CREATE TABLE t (x INT)", "CREATE INDEX i ON t(x)"]

    def test_packaged_schema_creates_tables(self, temp_db):
        tables = {
            row[0] for row in temp_db.connection.execute(
                "SELECT table_name FROM information_schema.tables"
            ).fetchall()
        }
        assert {"filers", "quarterly_reports", "quarter_holdings"} <= tables

    def test_in_memory_database(self):
        with Database(":memory:") as db:
            db.initialize_schema()
            db.filers.save_filer(make_filer(Q2))
            assert db.filers.count_reports() == 1

    def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "reopen.duckdb")
        with Database(path) as db:
            db.initialize_schema()
            db.filers.save_filer(make_filer(Q2))

        with Database(path, read_only=True) as db:
            assert db.filers.get_filer(CIK).quarterly_reports == [Q2]

    def test_holdings_frame(self, temp_db):
        temp_db.holdings.upsert_holdings(make_document(
            "24Q2",
            Holding(cusip="594918104", issuer_name="MICROSOFT CORP", value=4000, shares=50),
            Holding(cusip="037833100", issuer_name="APPLE INC", value=6000, shares=100),
        ))

        df = temp_db.holdings.get_holdings_frame(CIK, "24Q2")

        assert list(df["cusip"]) == ["037833100", "594918104"]
        assert "percent_of_portfolio" in df.columns

    def test_empty_holdings_frame(self, temp_db):
        df = temp_db.holdings.get_holdings_frame(CIK, "24Q1")
        assert df.empty
        assert "ticker" in df.columns
