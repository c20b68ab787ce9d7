"""
Database connection management and schema initialization.

Provides the Database class with connection lifecycle and schema setup for
DuckDB. Composes the filer and holdings repositories.
"""

from pathlib import Path
from typing import Optional

import duckdb

from ..core.exceptions import StorageError
from ..utils.config import get_absolute_path, get_settings
from ..utils.logger import get_logger

logger = get_logger("thirteenf.storage.connection")

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def split_sql_statements(sql: str) -> list[str]:
    """Split a SQL script into statements, dropping `--` comments first."""
    lines = [line.split("--", 1)[0] for line in sql.splitlines()]
    statements = [s.strip() for s in "\n".join(lines).split(";")]
    return [s for s in statements if s]


class Database:
    """
    DuckDB database wrapper for filer and holdings data.

    Writes are expected from one thread at a time; the pipeline processes
    filings serially.
    """

    def __init__(self, db_path: Optional[str] = None, read_only: bool = False) -> None:
        """
        Args:
            db_path: Path to the DuckDB file, or ":memory:". If None, uses config.
            read_only: Open in read-only mode (allows concurrent readers).
        """
        path = db_path or get_settings().storage.database_path
        if path == ":memory:":
            self.db_path = path
        else:
            self.db_path = get_absolute_path(str(path))
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.read_only = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

        # Lazy-loaded repositories (avoid circular imports)
        self._filer_repo = None
        self._holdings_repo = None

        logger.info(f"Database initialized: {self.db_path} (read_only={read_only})")

    @property
    def filers(self):
        """Get filer repository."""
        if self._filer_repo is None:
            from .filer_repository import DuckDBFilerRepository
            self._filer_repo = DuckDBFilerRepository(self)
        return self._filer_repo

    @property
    def holdings(self):
        """Get holdings repository."""
        if self._holdings_repo is None:
            from .holdings_repository import DuckDBHoldingsRepository
            self._holdings_repo = DuckDBHoldingsRepository(self)
        return self._holdings_repo

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(str(self.db_path), read_only=self.read_only)
            except duckdb.Error as e:
                raise StorageError(
                    f"Could not open database: {e}", context={"path": str(self.db_path)}
                ) from e
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def initialize_schema(self) -> None:
        """Create all tables and indexes if they don't exist."""
        if not SCHEMA_PATH.exists():
            raise StorageError(f"Schema file not found: {SCHEMA_PATH}")

        with open(SCHEMA_PATH) as f:
            schema_sql = f.read()

        for statement in split_sql_statements(schema_sql):
            try:
                self.connection.execute(statement)
            except duckdb.Error as e:
                raise StorageError(f"Schema statement failed: {e}") from e

        logger.info("Database schema initialized")


def initialize_database(db_path: Optional[str] = None) -> Database:
    """Open the database and make sure the schema exists."""
    db = Database(db_path)
    db.initialize_schema()
    return db
