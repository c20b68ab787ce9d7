"""
SEC company ticker reference index.

Downloads SEC's ``company_tickers.json`` (every registrant with a listed
ticker), keeps a copy on disk for 24 hours, and indexes it three ways:

    TICKER             -> TickerInfo
    CIK:<10-digit cik> -> TickerInfo
    NAME:<normalized>  -> TickerInfo

Issuer names in 13F information tables are abbreviated ("HLDGS", "MFG",
"CL A"), so both sides of a name lookup go through ``normalize_company_name``.
"""

import json
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Optional

from ..core.exceptions import IngestionError, ThirteenFError
from ..core.models import TickerInfo
from ..utils.logger import get_logger

logger = get_logger("thirteenf.resolution.ticker_index")

CIK_PREFIX = "CIK:"
NAME_PREFIX = "NAME:"

# Applied to the space-padded name, so each key matches whole words only
ABBREVIATIONS: list[tuple[str, str]] = [
    (" PRODS ", " PRODUCTS "),
    (" PROD ", " PRODUCTS "),
    (" CHEMS ", " CHEMICALS "),
    (" CHEM ", " CHEMICAL "),
    (" HLDGS ", " HOLDINGS "),
    (" HLDG ", " HOLDING "),
    (" FINL ", " FINANCIAL "),
    (" WTR ", " WATER "),
    (" WKS ", " WORKS "),
    (" MFG ", " MANUFACTURING "),
    (" INTL ", " INTERNATIONAL "),
    (" NATL ", " NATIONAL "),
    (" SVCS ", " SERVICES "),
    (" SVC ", " SERVICE "),
    (" TECH ", " TECHNOLOGY "),
    (" COMM ", " COMMUNICATIONS "),
    (" CMNTYS ", " COMMUNITIES "),
    (" PPTY ", " PROPERTY "),
    (" PRTS ", " PARTS "),
    (" MGMT ", " MANAGEMENT "),
    (" INVT ", " INVESTMENT "),
    (" INVS ", " INVESTMENTS "),
    (" BANCORP", " BANK CORP"),
]

_AMPERSAND_RE = re.compile(r"\s+&\s+")
_SUFFIX_RES = [
    re.compile(r"\s+(INC|CORP|LLC|LTD|CO|LP|COMPANY|INCORPORATED|CORPORATION)\.?\s*$"),
    re.compile(r"\s+NEW\s*$"),
    re.compile(r"\s+COMMON STOCK\s*$"),
    re.compile(r"\s+CLASS [A-Z]\s*$"),
    re.compile(r"\s+CL [A-Z]\s*$"),
]
_SPECIAL_CHARS_RE = re.compile(r"[^A-Z0-9\s.]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_company_name(name: str) -> str:
    """
    Canonical form of a company name for index lookups.

    Usage:
        normalize_company_name("Acme Hldgs Inc")  # "ACME HOLDINGS"
    """
    normalized = f" {(name or '').upper()} "

    for abbreviation, expansion in ABBREVIATIONS:
        normalized = normalized.replace(abbreviation, expansion)

    normalized = _AMPERSAND_RE.sub(" AND ", normalized)

    for pattern in _SUFFIX_RES:
        normalized = pattern.sub("", normalized)

    normalized = _SPECIAL_CHARS_RE.sub("", normalized)
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def build_index(data: dict[str, Any]) -> dict[str, TickerInfo]:
    """
    Build the lookup map from SEC's ``{"0": {cik_str, ticker, title}, ...}``.

    Later rows overwrite earlier ones under the same key.
    """
    index: dict[str, TickerInfo] = {}
    for entry in data.values():
        if not isinstance(entry, dict) or not entry.get("ticker") or not entry.get("title"):
            continue

        info = TickerInfo(
            cik=str(entry.get("cik_str", "")).zfill(10),
            ticker=str(entry["ticker"]).upper(),
            title=str(entry["title"]),
        )
        index[info.ticker] = info
        index[f"{CIK_PREFIX}{info.cik}"] = info
        index[f"{NAME_PREFIX}{normalize_company_name(info.title)}"] = info
    return index


class TickerIndex:
    """
    File-backed SEC ticker index with a freshness window.

    Args:
        fetch: Callable returning the parsed ``company_tickers.json``
            (normally ``SECApi.get_company_tickers``).
        path: Location of the on-disk copy.
        ttl_hours: Age after which the on-disk copy is re-downloaded.
        clock: Wall clock (seconds since the epoch) compared to file mtime.
    """

    def __init__(
        self,
        fetch: Callable[[], dict[str, Any]],
        path: str | Path,
        ttl_hours: float = 24,
        clock: Callable[[], float] = time.time,
    ):
        self._fetch = fetch
        self.path = Path(path)
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock

        self._index: Optional[dict[str, TickerInfo]] = None
        self._entries: list[tuple[str, TickerInfo]] = []
        self._loaded_at: float = 0.0

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def _file_is_fresh(self) -> bool:
        if not self.path.exists():
            return False
        return self._clock() - self.path.stat().st_mtime < self.ttl_seconds

    def _read_file(self) -> dict[str, Any]:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_file(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_name, self.path)

    def _install(self, data: dict[str, Any]) -> None:
        self._index = build_index(data)
        # One row per ticker, with its normalized name, for the scanning matchers
        self._entries = [
            (normalize_company_name(info.title), info)
            for key, info in self._index.items()
            if not key.startswith((CIK_PREFIX, NAME_PREFIX))
        ]
        self._loaded_at = self._clock()

    def load(self) -> None:
        """
        Make the index available, downloading only when needed.

        Order: in-memory copy younger than the TTL, then a fresh file, then a
        download. If the download fails a stale file is used.

        Raises:
            IngestionError: If nothing could be downloaded and no file exists.
        """
        if self._index is not None and self._clock() - self._loaded_at < self.ttl_seconds:
            return

        if self._file_is_fresh():
            try:
                self._install(self._read_file())
                logger.info(f"Loaded {len(self._entries)} SEC tickers from {self.path}")
                return
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ticker index file unreadable, downloading: {e}")

        self.refresh()

    def refresh(self) -> None:
        """Force a download, falling back to the on-disk copy on failure."""
        logger.info("Downloading SEC company tickers")
        try:
            data = self._fetch()
        except ThirteenFError as e:
            logger.error(f"Failed to download SEC tickers: {e}")
            if not self.path.exists():
                raise IngestionError(
                    "Failed to download SEC tickers and no cached copy is available",
                    context={"path": str(self.path)},
                ) from e
            self._install(self._read_file())
            logger.warning(f"Using stale SEC tickers file ({len(self._entries)} tickers)")
            return

        try:
            self._write_file(data)
        except OSError as e:
            logger.warning(f"Could not save SEC tickers file {self.path}: {e}")

        self._install(data)
        logger.info(f"Downloaded and indexed {len(self._entries)} SEC tickers")

    def _ensure_loaded(self) -> dict[str, TickerInfo]:
        self.load()
        return self._index or {}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def by_ticker(self, ticker: str) -> Optional[TickerInfo]:
        return self._ensure_loaded().get(ticker.strip().upper())

    def by_cik(self, cik: str) -> Optional[TickerInfo]:
        return self._ensure_loaded().get(f"{CIK_PREFIX}{cik.zfill(10)}")

    def by_name(self, issuer_name: str) -> Optional[TickerInfo]:
        """Exact lookup on the normalized name."""
        normalized = normalize_company_name(issuer_name)
        if not normalized:
            return None
        return self._ensure_loaded().get(f"{NAME_PREFIX}{normalized}")

    def entries(self) -> list[tuple[str, TickerInfo]]:
        """``(normalized_title, info)`` per ticker, in file order."""
        self._ensure_loaded()
        return self._entries
