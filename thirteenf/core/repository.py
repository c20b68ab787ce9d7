"""
Repository protocols (interfaces) for data access abstraction.

These protocols define the storage contract the pipeline relies on, so the
orchestrator can run against DuckDB in production and an in-memory fake in
tests.
"""

from typing import Optional, Protocol, runtime_checkable

from .models import Filer, QuarterHoldings


@runtime_checkable
class FilerRepository(Protocol):
    """Repository for filer aggregates."""

    def get_filer(self, cik: str) -> Optional[Filer]:
        """Get filer by CIK, including its quarterly reports."""
        ...

    def save_filer(self, filer: Filer) -> None:
        """
        Persist a filer.

        Quarterly reports already stored are never rewritten; new ones are
        appended.
        """
        ...

    def list_filers(self) -> list[Filer]:
        """List all filers."""
        ...


@runtime_checkable
class HoldingsRepository(Protocol):
    """
    Repository for per-quarter holdings documents.

    Read contract: ``get_holdings(cik, quarter)`` returns the document last
    written for that pair, or None when the quarter was never persisted.
    """

    def get_holdings(self, cik: str, quarter: str) -> Optional[QuarterHoldings]:
        """Get the holdings document for one (cik, quarter)."""
        ...

    def upsert_holdings(self, document: QuarterHoldings) -> None:
        """Insert, or replace wholesale, the document for (cik, quarter)."""
        ...

    def list_quarters(self, cik: str) -> list[str]:
        """Quarters with a holdings document for this filer."""
        ...
