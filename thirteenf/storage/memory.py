"""
In-memory repositories.

Used by tests and dry runs. Documents are stored as dicts so callers never
share mutable state with the store, the same way a real database behaves.
"""

from dataclasses import asdict
from typing import Optional

from ..core.models import (
    Address,
    Filer,
    Holding,
    LatestActivity,
    QuarterHoldings,
    QuarterlyReport,
)


class InMemoryFilerRepository:
    def __init__(self):
        self._filers: dict[str, dict] = {}
        self._reports: dict[str, dict[str, dict]] = {}
        self.save_count = 0

    def get_filer(self, cik: str) -> Optional[Filer]:
        row = self._filers.get(cik)
        if row is None:
            return None
        reports = [QuarterlyReport.from_dict(r) for r in self._reports.get(cik, {}).values()]
        reports.sort(key=lambda r: (r.period_of_report, r.filing_date))
        return Filer(
            cik=cik,
            filer_name=row["filer_name"],
            address=Address(**row["address"]),
            latest_activity=LatestActivity.from_dict(row["latest_activity"]),
            quarterly_reports=reports,
        )

    def save_filer(self, filer: Filer) -> None:
        self._filers[filer.cik] = {
            "filer_name": filer.filer_name,
            "address": asdict(filer.address),
            "latest_activity": filer.latest_activity.to_dict(),
        }
        stored = self._reports.setdefault(filer.cik, {})
        for report in filer.quarterly_reports:
            stored.setdefault(report.quarter, report.to_dict())
        self.save_count += 1

    def list_filers(self) -> list[Filer]:
        filers = [self.get_filer(cik) for cik in self._filers]
        return sorted((f for f in filers if f), key=lambda f: f.filer_name)


class InMemoryHoldingsRepository:
    def __init__(self):
        self._documents: dict[tuple[str, str], dict] = {}
        self.upsert_count = 0

    def get_holdings(self, cik: str, quarter: str) -> Optional[QuarterHoldings]:
        doc = self._documents.get((cik, quarter))
        if doc is None:
            return None
        return QuarterHoldings(
            cik=cik,
            quarter=quarter,
            filer_name=doc["filer_name"],
            accession_number=doc["accession_number"],
            holdings=[Holding.from_dict(h) for h in doc["holdings"]],
        )

    def upsert_holdings(self, document: QuarterHoldings) -> None:
        self._documents[(document.cik, document.quarter)] = {
            "filer_name": document.filer_name,
            "accession_number": document.accession_number,
            "holdings": [h.to_dict() for h in document.holdings],
        }
        self.upsert_count += 1

    def list_quarters(self, cik: str) -> list[str]:
        return sorted(q for (c, q) in self._documents if c == cik)
