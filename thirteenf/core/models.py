"""
Domain records for filers, filings and holdings.

Records are plain dataclasses. Persistence goes through ``to_dict`` /
``from_dict`` so the storage layer can keep nested parts (quarterly reports,
holdings arrays) as JSON documents.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .types import CIK, AccessionNumber, ChangeType, FormType, QuarterLabel


def _to_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class CompanyFiler:
    """An institutional manager identified by CIK."""
    cik: str
    name: str


@dataclass
class Filing:
    """One 13F-HR (or amendment) submission listed in a filer's history."""
    cik: CIK
    company_name: str
    accession_number: AccessionNumber
    filing_date: date
    period_of_report: date
    form_type: FormType
    filing_url: Optional[str] = None

    @property
    def accession_number_raw(self) -> str:
        """Accession number without dashes (for archive paths)."""
        return self.accession_number.replace("-", "")


@dataclass
class VotingAuthority:
    sole: float = 0.0
    shared: float = 0.0
    none: float = 0.0

    def add(self, other: Optional["VotingAuthority"]) -> None:
        if other is None:
            return
        self.sole += other.sole or 0
        self.shared += other.shared or 0
        self.none += other.none or 0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "VotingAuthority":
        data = data or {}
        return cls(
            sole=float(data.get("sole") or 0),
            shared=float(data.get("shared") or 0),
            none=float(data.get("none") or 0),
        )


@dataclass
class Holding:
    """
    One position in an information table.

    The same record is carried through every stage: normalization fills the
    reported fields, deduplication the audit fields, resolution the ticker,
    enrichment the sector, and the QoQ diff the change fields.
    """
    cusip: str
    issuer_name: str
    value: float
    shares: float
    title_of_class: Optional[str] = None
    share_type: str = "SH"
    investment_discretion: Optional[str] = None
    voting_authority: VotingAuthority = field(default_factory=VotingAuthority)
    ticker: Optional[str] = None
    sector: Optional[str] = None

    # Deduplication audit trail
    duplicate_count: int = 1
    original_indices: list[int] = field(default_factory=list)

    # Quarter-over-quarter fields
    percent_of_portfolio: float = 0.0
    change_type: Optional[ChangeType] = None
    value_change: Optional[float] = None
    value_change_pct: Optional[float] = None
    shares_change: Optional[float] = None
    shares_change_pct: Optional[float] = None

    def to_dict(self) -> dict:
        """Persisted shape (audit fields are not stored)."""
        data = asdict(self)
        data.pop("duplicate_count")
        data.pop("original_indices")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Holding":
        return cls(
            cusip=data["cusip"],
            issuer_name=data.get("issuer_name") or "",
            value=float(data.get("value") or 0),
            shares=float(data.get("shares") or 0),
            title_of_class=data.get("title_of_class"),
            share_type=data.get("share_type") or "SH",
            investment_discretion=data.get("investment_discretion"),
            voting_authority=VotingAuthority.from_dict(data.get("voting_authority")),
            ticker=data.get("ticker"),
            sector=data.get("sector"),
            percent_of_portfolio=float(data.get("percent_of_portfolio") or 0),
            change_type=data.get("change_type"),
            value_change=data.get("value_change"),
            value_change_pct=data.get("value_change_pct"),
            shares_change=data.get("shares_change"),
            shares_change_pct=data.get("shares_change_pct"),
        )


@dataclass
class PortfolioChanges:
    """Aggregate QoQ statistics for one quarter."""
    new_positions: int = 0
    increased_positions: int = 0
    decreased_positions: int = 0
    unchanged_positions: int = 0
    exited_positions: int = 0
    total_value_change: float = 0.0
    total_value_change_pct: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PortfolioChanges":
        return cls(**(data or {}))


@dataclass
class SectorSlice:
    sector: str
    value: float
    percentage: float


@dataclass
class ReportSummary:
    total_holdings_count: int
    total_market_value: float


@dataclass
class QuarterlyReport:
    """Summary of one quarter for a filer. Written once, never mutated."""
    quarter: QuarterLabel
    period_of_report: date
    filing_date: date
    accession_number: AccessionNumber
    summary: ReportSummary
    portfolio_changes: PortfolioChanges
    sector_breakdown: list[SectorSlice] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["period_of_report"] = self.period_of_report.isoformat()
        data["filing_date"] = self.filing_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "QuarterlyReport":
        return cls(
            quarter=data["quarter"],
            period_of_report=_to_date(data["period_of_report"]),
            filing_date=_to_date(data["filing_date"]),
            accession_number=data["accession_number"],
            summary=ReportSummary(**data["summary"]),
            portfolio_changes=PortfolioChanges.from_dict(data.get("portfolio_changes")),
            sector_breakdown=[SectorSlice(**s) for s in data.get("sector_breakdown") or []],
        )


@dataclass
class Address:
    street1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.street1, self.city, self.state, self.zip))


@dataclass
class LatestActivity:
    last_reported_quarter: Optional[str] = None
    last_filing_date: Optional[date] = None
    current_holdings_count: int = 0
    current_market_value: float = 0.0
    last_updated: Optional[datetime] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_filing_date"] = (
            self.last_filing_date.isoformat() if self.last_filing_date else None
        )
        data["last_updated"] = self.last_updated.isoformat() if self.last_updated else None
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LatestActivity":
        data = data or {}
        return cls(
            last_reported_quarter=data.get("last_reported_quarter"),
            last_filing_date=_to_date(data.get("last_filing_date")),
            current_holdings_count=int(data.get("current_holdings_count") or 0),
            current_market_value=float(data.get("current_market_value") or 0),
            last_updated=_to_datetime(data.get("last_updated")),
        )


@dataclass
class Filer:
    """Aggregate for one institutional manager, owned by the pipeline."""
    cik: str
    filer_name: str
    address: Address = field(default_factory=Address)
    latest_activity: LatestActivity = field(default_factory=LatestActivity)
    quarterly_reports: list[QuarterlyReport] = field(default_factory=list)

    @property
    def latest_report(self) -> Optional[QuarterlyReport]:
        return self.quarterly_reports[-1] if self.quarterly_reports else None

    def has_accession(self, accession_number: str) -> bool:
        return any(r.accession_number == accession_number for r in self.quarterly_reports)

    def has_quarter(self, quarter: str) -> bool:
        return any(r.quarter == quarter for r in self.quarterly_reports)


@dataclass
class QuarterHoldings:
    """All holdings of one filer for one quarter, stored as one document."""
    cik: str
    quarter: str
    filer_name: str
    accession_number: str
    holdings: list[Holding] = field(default_factory=list)


@dataclass
class FilingDocuments:
    """Parsed primary document and information table of one filing."""
    primary: dict
    info_table: dict
    primary_url: str
    info_table_url: str


@dataclass
class TickerInfo:
    """One row of SEC's company_tickers.json."""
    cik: str
    ticker: str
    title: str


@dataclass
class SectorData:
    ticker: str
    sector: str
    industry: Optional[str] = None
    market_cap: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SectorData":
        return cls(
            ticker=data["ticker"],
            sector=data["sector"],
            industry=data.get("industry"),
            market_cap=data.get("market_cap"),
        )
