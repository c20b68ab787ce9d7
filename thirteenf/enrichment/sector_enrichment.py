"""
Sector enrichment for resolved holdings.

Looks up each ticker's sector, industry and market cap from the Financial
Datasets company-facts API. Results are cached by upper-cased ticker,
including misses, so a ticker is asked about at most once across runs.
Holdings without a ticker, or whose lookup fails, get the "Unknown" sector.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Optional

import requests

from ..caching.store import Cache
from ..core.exceptions import CacheError, ExternalApiError, RateLimitError
from ..core.models import Holding, SectorData
from ..core.types import UNKNOWN_SECTOR
from ..ingestion.http import send
from ..utils.config import EnrichmentConfig
from ..utils.logger import get_logger
from ..utils.rate_limiter import RateLimiter

logger = get_logger("thirteenf.enrichment.sector")


def cache_key(ticker: str) -> str:
    return ticker.strip().upper()


class SectorEnricher:
    """
    Batched, cache-first sector lookup.

    Args:
        api_key: Financial Datasets key. Without one every holding is
            tagged "Unknown" and no request is made.
        cache: ticker -> ``SectorData.to_dict()`` or None.
        config: Batch sizes, concurrency and backoff.
    """

    def __init__(
        self,
        api_key: Optional[str],
        cache: Cache,
        config: Optional[EnrichmentConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.api_key = api_key
        self.cache = cache
        self.config = config or EnrichmentConfig()
        self.session = session or requests.Session()
        self._sleep = sleep
        self.rate_limiter = rate_limiter

        if api_key:
            self.session.headers.update({"X-API-KEY": api_key})

    # -------------------------------------------------------------------------
    # Single lookup
    # -------------------------------------------------------------------------

    def _request(self, ticker: str) -> Optional[SectorData]:
        if self.rate_limiter:
            self.rate_limiter.wait()
        response = send(
            self.session,
            "GET",
            self.config.facts_api_url,
            params={"ticker": ticker},
            timeout=self.config.timeout,
        )
        body = response.json()
        facts = body.get("company_facts") if isinstance(body, dict) else None
        if not isinstance(facts, dict):
            return None
        sector = facts.get("sector")
        if not sector or not isinstance(sector, str):
            return None
        return SectorData(
            ticker=ticker,
            sector=sector,
            industry=facts.get("industry"),
            market_cap=facts.get("market_cap"),
        )

    def fetch_sector(self, ticker: str) -> Optional[SectorData]:
        """
        Look up one ticker.

        A 429 is retried once after ``rate_limit_backoff`` seconds; any other
        failure is a miss.
        """
        for attempt in (1, 2):
            try:
                return self._request(ticker)
            except RateLimitError:
                if attempt == 2:
                    logger.warning(f"Sector lookup for {ticker} rate limited twice, giving up")
                    return None
                logger.debug(f"Sector lookup for {ticker} rate limited, backing off")
                self._sleep(self.config.rate_limit_backoff)
            except (ExternalApiError, ValueError) as e:
                logger.debug(f"Sector lookup failed for {ticker}: {e}")
                return None
        return None

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def _fetch_batch(self, tickers: list[str]) -> dict[str, Optional[SectorData]]:
        with ThreadPoolExecutor(max_workers=self.config.request_concurrency) as executor:
            results = list(executor.map(self.fetch_sector, tickers))
        return dict(zip(tickers, results))

    def fetch_sectors(self, tickers: list[str]) -> dict[str, Optional[SectorData]]:
        """Fetch and cache sector data for tickers not already cached."""
        size = self.config.batch_size
        batches = [tickers[i:i + size] for i in range(0, len(tickers), size)]

        fetched: dict[str, Optional[SectorData]] = {}
        with ThreadPoolExecutor(max_workers=self.config.batch_concurrency) as executor:
            for result in executor.map(self._fetch_batch, batches):
                fetched.update(result)

        for ticker, data in fetched.items():
            self.cache.set(ticker, data.to_dict() if data else None)
        return fetched

    def _cached(self, ticker: str) -> Optional[SectorData]:
        value = self.cache.get(ticker)
        return SectorData.from_dict(value) if value else None

    # -------------------------------------------------------------------------
    # Holdings
    # -------------------------------------------------------------------------

    def enrich(self, holdings: list[Holding]) -> list[Holding]:
        """
        Return copies of the holdings with ``sector`` set, in input order.
        """
        if not holdings:
            return []

        if not self.api_key:
            logger.warning("FINANCIAL_DATASETS_API_KEY not set, sectors default to Unknown")
            return [replace(h, sector=UNKNOWN_SECTOR) for h in holdings]

        to_fetch: list[str] = []
        for holding in holdings:
            if not holding.ticker:
                continue
            key = cache_key(holding.ticker)
            if not self.cache.contains(key) and key not in to_fetch:
                to_fetch.append(key)

        fetched = self.fetch_sectors(to_fetch) if to_fetch else {}
        if to_fetch:
            try:
                self.cache.persist()
            except CacheError as e:
                logger.warning(f"Sector cache not saved: {e}")

        enriched = []
        for holding in holdings:
            if not holding.ticker:
                enriched.append(replace(holding, sector=UNKNOWN_SECTOR))
                continue
            key = cache_key(holding.ticker)
            data = fetched[key] if key in fetched else self._cached(key)
            enriched.append(replace(holding, sector=data.sector if data else UNKNOWN_SECTOR))

        known = sum(1 for h in enriched if h.sector != UNKNOWN_SECTOR)
        logger.info(f"Sectors: {known}/{len(enriched)} known ({len(to_fetch)} tickers fetched)")
        return enriched

    def close(self) -> None:
        self.session.close()
