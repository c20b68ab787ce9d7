"""Pure transformations applied to a filing's holdings."""

from .deduplication import deduplicate_holdings, is_valid_cusip, normalize_cusip, unique_tickers
from .diff_calculator import (
    DECREASED,
    EXITED,
    INCREASED,
    NEW,
    UNCHANGED,
    DiffResult,
    calculate_diff,
)
from .quarters import build_quarterly_report, quarter_label, sector_breakdown

__all__ = [
    "deduplicate_holdings",
    "is_valid_cusip",
    "normalize_cusip",
    "unique_tickers",
    "calculate_diff",
    "DiffResult",
    "NEW",
    "INCREASED",
    "DECREASED",
    "UNCHANGED",
    "EXITED",
    "build_quarterly_report",
    "quarter_label",
    "sector_breakdown",
]
