"""
Quarter labels and per-quarter summaries.

The quarter label is the storage key that links a quarterly report on the
filer to its holdings document, and the orchestrator uses it to load the
previous quarter's holdings for the diff.
"""

from datetime import date, datetime

from ..core.models import (
    Holding,
    PortfolioChanges,
    QuarterlyReport,
    ReportSummary,
    SectorSlice,
)
from ..core.types import UNKNOWN_SECTOR
from .diff_calculator import EXITED


def quarter_label(report_date: date | datetime | str) -> str:
    """
    Label for the calendar quarter containing ``report_date``.

    Usage:
        quarter_label(date(2024, 9, 30))  # "24Q3"
    """
    if isinstance(report_date, str):
        report_date = date.fromisoformat(report_date[:10])
    quarter = (report_date.month - 1) // 3 + 1
    return f"{report_date.year % 100:02d}Q{quarter}"


def active_holdings(holdings: list[Holding]) -> list[Holding]:
    return [h for h in holdings if h.change_type != EXITED]


def sector_breakdown(holdings: list[Holding]) -> list[SectorSlice]:
    """Value per sector over non-exited holdings, largest first."""
    active = active_holdings(holdings)
    total = sum(h.value for h in active)

    by_sector: dict[str, float] = {}
    for holding in active:
        sector = holding.sector or UNKNOWN_SECTOR
        by_sector[sector] = by_sector.get(sector, 0.0) + holding.value

    slices = [
        SectorSlice(
            sector=sector,
            value=value,
            percentage=value / total * 100 if total > 0 else 0.0,
        )
        for sector, value in by_sector.items()
    ]
    slices.sort(key=lambda s: s.value, reverse=True)
    return slices


def build_quarterly_report(
    quarter: str,
    period_of_report: date,
    filing_date: date,
    accession_number: str,
    holdings: list[Holding],
    stats: PortfolioChanges,
) -> QuarterlyReport:
    """Summarize a diffed quarter; totals cover non-exited holdings only."""
    active = active_holdings(holdings)
    return QuarterlyReport(
        quarter=quarter,
        period_of_report=period_of_report,
        filing_date=filing_date,
        accession_number=accession_number,
        summary=ReportSummary(
            total_holdings_count=len(active),
            total_market_value=sum(h.value for h in active),
        ),
        portfolio_changes=stats,
        sector_breakdown=sector_breakdown(holdings),
    )
