"""DuckDB persistence for filers, quarterly reports and holdings."""

from .connection import Database, initialize_database
from .filer_repository import DuckDBFilerRepository
from .holdings_repository import DuckDBHoldingsRepository
from .memory import InMemoryFilerRepository, InMemoryHoldingsRepository

__all__ = [
    "Database",
    "DuckDBFilerRepository",
    "DuckDBHoldingsRepository",
    "InMemoryFilerRepository",
    "InMemoryHoldingsRepository",
    "initialize_database",
]
