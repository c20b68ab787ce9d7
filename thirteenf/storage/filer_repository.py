"""
Filer repository for the filer aggregate.

A filer row holds identity, address and latest activity; its quarterly
reports live in their own table and are only ever inserted.
"""

import json
from dataclasses import asdict
from typing import Optional

import duckdb

from ..core.exceptions import StorageError
from ..core.models import Address, Filer, LatestActivity, QuarterlyReport
from ..utils.logger import get_logger
from .connection import Database

logger = get_logger("thirteenf.storage.filer_repository")


class DuckDBFilerRepository:
    """Repository for filer data operations."""

    def __init__(self, db: Database):
        self.db = db

    def _reports_for(self, cik: str) -> list[QuarterlyReport]:
        sql = """
            SELECT report FROM quarterly_reports
            WHERE cik = ?
            ORDER BY period_of_report, filing_date
        """
        rows = self.db.connection.execute(sql, [cik]).fetchall()
        return [QuarterlyReport.from_dict(json.loads(row[0])) for row in rows]

    def _row_to_filer(self, row: dict) -> Filer:
        address = json.loads(row["address"]) if row.get("address") else {}
        activity = json.loads(row["latest_activity"]) if row.get("latest_activity") else None
        return Filer(
            cik=row["cik"],
            filer_name=row["filer_name"],
            address=Address(**address),
            latest_activity=LatestActivity.from_dict(activity),
            quarterly_reports=self._reports_for(row["cik"]),
        )

    def get_filer(self, cik: str) -> Optional[Filer]:
        """Get filer by CIK, with its reports oldest first."""
        try:
            result = self.db.connection.execute(
                "SELECT * FROM filers WHERE cik = ?", [cik]
            ).fetchone()
            if not result:
                return None
            columns = [desc[0] for desc in self.db.connection.description]
            return self._row_to_filer(dict(zip(columns, result)))
        except duckdb.Error as e:
            raise StorageError(f"Failed to load filer {cik}: {e}", context={"cik": cik}) from e

    def save_filer(self, filer: Filer) -> None:
        """
        Upsert the filer row and insert any reports not yet stored.

        Existing reports are left untouched, so a (cik, quarter) summary is
        written exactly once.
        """
        filer_sql = """
            INSERT INTO filers (cik, filer_name, address, latest_activity, created_at, updated_at)
            VALUES (?, ?, ?, ?, now(), now())
            ON CONFLICT (cik) DO UPDATE SET
                filer_name = EXCLUDED.filer_name,
                address = EXCLUDED.address,
                latest_activity = EXCLUDED.latest_activity,
                updated_at = now()
        """
        report_sql = """
            INSERT INTO quarterly_reports (
                cik, quarter, accession_number, period_of_report, filing_date, report
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (cik, quarter) DO NOTHING
        """
        conn = self.db.connection
        try:
            conn.execute("BEGIN TRANSACTION")
            conn.execute(filer_sql, [
                filer.cik,
                filer.filer_name,
                json.dumps(asdict(filer.address)),
                json.dumps(filer.latest_activity.to_dict()),
            ])
            for report in filer.quarterly_reports:
                conn.execute(report_sql, [
                    filer.cik,
                    report.quarter,
                    report.accession_number,
                    report.period_of_report,
                    report.filing_date,
                    json.dumps(report.to_dict()),
                ])
            conn.execute("COMMIT")
        except duckdb.Error as e:
            conn.execute("ROLLBACK")
            raise StorageError(
                f"Failed to save filer {filer.cik}: {e}", context={"cik": filer.cik}
            ) from e

        logger.debug(f"Saved filer: {filer.cik} ({len(filer.quarterly_reports)} reports)")

    def list_filers(self) -> list[Filer]:
        """All filers, ordered by name."""
        try:
            results = self.db.connection.execute(
                "SELECT * FROM filers ORDER BY filer_name"
            ).fetchall()
            columns = [desc[0] for desc in self.db.connection.description]
            rows = [dict(zip(columns, row)) for row in results]
            return [self._row_to_filer(row) for row in rows]
        except duckdb.Error as e:
            raise StorageError(f"Failed to list filers: {e}") from e

    def count_reports(self) -> int:
        result = self.db.connection.execute("SELECT COUNT(*) FROM quarterly_reports").fetchone()
        return int(result[0]) if result else 0
