"""
Core domain layer.

This module provides:
- Exception hierarchy for consistent error handling
- Domain records for filers, filings and holdings
- Repository protocols for data access abstraction
- Shared type definitions

Usage:
    from thirteenf.core import ThirteenFError, StructuralParseError, Holding
    from thirteenf.core.types import ChangeType, CIK
"""

from .exceptions import (
    CacheError,
    ConfigurationError,
    ExternalApiError,
    IngestionError,
    MissingConfigError,
    ParsingError,
    PipelineError,
    RateLimitError,
    StorageError,
    StructuralParseError,
    ThirteenFError,
    TransientNetworkError,
)
from .models import (
    Address,
    CompanyFiler,
    Filer,
    Filing,
    FilingDocuments,
    Holding,
    LatestActivity,
    PortfolioChanges,
    QuarterHoldings,
    QuarterlyReport,
    ReportSummary,
    SectorData,
    SectorSlice,
    TickerInfo,
    VotingAuthority,
)
from .repository import FilerRepository, HoldingsRepository
from .types import (
    CIK,
    CUSIP,
    THIRTEEN_F_FORMS,
    UNKNOWN_SECTOR,
    AccessionNumber,
    ChangeType,
    FormType,
    QuarterLabel,
)

__all__ = [
    # Exceptions
    "ThirteenFError",
    "IngestionError",
    "ExternalApiError",
    "TransientNetworkError",
    "RateLimitError",
    "ParsingError",
    "StructuralParseError",
    "StorageError",
    "ConfigurationError",
    "MissingConfigError",
    "PipelineError",
    "CacheError",
    # Models
    "Address",
    "CompanyFiler",
    "Filer",
    "Filing",
    "FilingDocuments",
    "Holding",
    "LatestActivity",
    "PortfolioChanges",
    "QuarterHoldings",
    "QuarterlyReport",
    "ReportSummary",
    "SectorData",
    "SectorSlice",
    "TickerInfo",
    "VotingAuthority",
    # Repository protocols
    "FilerRepository",
    "HoldingsRepository",
    # Types
    "CIK",
    "CUSIP",
    "AccessionNumber",
    "ChangeType",
    "FormType",
    "QuarterLabel",
    "THIRTEEN_F_FORMS",
    "UNKNOWN_SECTOR",
]
