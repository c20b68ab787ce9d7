"""
Holdings repository: one document per (cik, quarter).
"""

import json
from typing import Optional

import duckdb
import pandas as pd

from ..core.exceptions import StorageError
from ..core.models import Holding, QuarterHoldings
from ..utils.logger import get_logger
from .connection import Database

logger = get_logger("thirteenf.storage.holdings_repository")

FRAME_COLUMNS = [
    "cusip", "ticker", "issuer_name", "sector", "value", "shares",
    "percent_of_portfolio", "change_type", "value_change", "shares_change",
]


class DuckDBHoldingsRepository:
    """Repository for quarter holdings documents."""

    def __init__(self, db: Database):
        self.db = db

    def get_holdings(self, cik: str, quarter: str) -> Optional[QuarterHoldings]:
        """Get the holdings document for one (cik, quarter), or None."""
        sql = """
            SELECT cik, quarter, filer_name, accession_number, holdings
            FROM quarter_holdings
            WHERE cik = ? AND quarter = ?
        """
        try:
            row = self.db.connection.execute(sql, [cik, quarter]).fetchone()
        except duckdb.Error as e:
            raise StorageError(
                f"Failed to load holdings {cik}/{quarter}: {e}",
                context={"cik": cik, "quarter": quarter},
            ) from e

        if not row:
            return None
        return QuarterHoldings(
            cik=row[0],
            quarter=row[1],
            filer_name=row[2],
            accession_number=row[3],
            holdings=[Holding.from_dict(h) for h in json.loads(row[4])],
        )

    def upsert_holdings(self, document: QuarterHoldings) -> None:
        """Insert, or replace wholesale, the document for (cik, quarter)."""
        sql = """
            INSERT INTO quarter_holdings (
                cik, quarter, filer_name, accession_number, holdings_count, holdings, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, now())
            ON CONFLICT (cik, quarter) DO UPDATE SET
                filer_name = EXCLUDED.filer_name,
                accession_number = EXCLUDED.accession_number,
                holdings_count = EXCLUDED.holdings_count,
                holdings = EXCLUDED.holdings,
                updated_at = now()
        """
        payload = json.dumps([h.to_dict() for h in document.holdings])
        try:
            self.db.connection.execute(sql, [
                document.cik,
                document.quarter,
                document.filer_name,
                document.accession_number,
                len(document.holdings),
                payload,
            ])
        except duckdb.Error as e:
            raise StorageError(
                f"Failed to save holdings {document.cik}/{document.quarter}: {e}",
                context={"cik": document.cik, "quarter": document.quarter},
            ) from e

        logger.debug(
            f"Upserted holdings: {document.cik}/{document.quarter} "
            f"({len(document.holdings)} positions)"
        )

    def list_quarters(self, cik: str) -> list[str]:
        sql = "SELECT quarter FROM quarter_holdings WHERE cik = ? ORDER BY quarter"
        try:
            return [row[0] for row in self.db.connection.execute(sql, [cik]).fetchall()]
        except duckdb.Error as e:
            raise StorageError(f"Failed to list quarters for {cik}: {e}") from e

    def get_holdings_frame(self, cik: str, quarter: str) -> pd.DataFrame:
        """
        One quarter's holdings as a DataFrame, largest positions first.

        Returns an empty frame with the standard columns when nothing is stored.
        """
        document = self.get_holdings(cik, quarter)
        if document is None or not document.holdings:
            return pd.DataFrame(columns=FRAME_COLUMNS)

        df = pd.DataFrame([h.to_dict() for h in document.holdings])
        return df[FRAME_COLUMNS].sort_values("value", ascending=False).reset_index(drop=True)
