"""
Ticker resolvers.

Each resolver maps ``(cusip, issuer_name)`` requests to tickers and returns
only the ones it could resolve. The cascade runs them in a fixed order and
hands each resolver whatever the previous ones left unresolved.

Resolvers, cheapest first:
- IndexExactResolver: normalized-name lookup in the SEC ticker index
- IndexContainmentResolver: normalized names containing one another
- WordOverlapResolver: two or more significant words in common
- MappingApiResolver: batched CUSIP mapping via OpenFIGI
- AiTickerResolver: single-completion model fallback, capped and timed out
"""

import re
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

import openai
import requests
from openai import OpenAI

from ..core.exceptions import ExternalApiError, IngestionError
from ..ingestion.http import send
from ..utils.logger import get_logger
from ..utils.rate_limiter import RateLimiter
from ..utils.retry import RetryStrategy
from .ticker_index import TickerIndex, normalize_company_name

logger = get_logger("thirteenf.resolution.resolvers")

MAPPING_TICKER_RE = re.compile(r"^[A-Z]{1,5}(\.[A-Z]{1,2})?$")
AI_TICKER_RE = re.compile(r"^[A-Z]{1,5}(\.[A-Z])?$")
US_EXCHANGE_CODES = ("US", "UN", "UQ")
AI_UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ResolutionRequest:
    cusip: str
    issuer_name: str


@runtime_checkable
class Resolver(Protocol):
    """One step of the ticker resolution cascade."""

    name: str

    def resolve_many(self, items: list[ResolutionRequest]) -> dict[str, str]:
        """Return ``{cusip: ticker}`` for the requests this step resolved."""
        ...


def clean_ticker(ticker: Optional[str]) -> Optional[str]:
    """
    Normalize a ticker from the mapping API, or None if it is not a ticker.

    Usage:
        clean_ticker("ticker: brk.b")  # "BRK.B"
    """
    if not ticker:
        return None
    cleaned = ticker.strip().upper()
    cleaned = re.sub(r"^TICKER:?\s*", "", cleaned)
    cleaned = re.sub(r"\s*(INC|CORP|LTD|LLC|LP|CLASS\s+[A-Z])$", "", cleaned)
    return cleaned if MAPPING_TICKER_RE.match(cleaned) else None


def is_valid_ai_ticker(ticker: Optional[str]) -> bool:
    if not ticker:
        return False
    return bool(AI_TICKER_RE.match(ticker.strip().upper()))


class SingleItemResolver:
    """Base for resolvers that handle one request at a time."""

    name = "single"

    def resolve(self, cusip: str, issuer_name: str) -> Optional[str]:
        raise NotImplementedError

    def resolve_many(self, items: list[ResolutionRequest]) -> dict[str, str]:
        resolved = {}
        for request in items:
            ticker = self.resolve(request.cusip, request.issuer_name)
            if ticker:
                resolved[request.cusip] = ticker
        return resolved


# =============================================================================
# SEC reference index
# =============================================================================

class IndexExactResolver(SingleItemResolver):
    name = "index_exact"

    def __init__(self, index: TickerIndex):
        self.index = index

    def resolve(self, cusip: str, issuer_name: str) -> Optional[str]:
        info = self.index.by_name(issuer_name)
        return info.ticker if info else None


class IndexContainmentResolver(SingleItemResolver):
    """Accepts the first index name that contains, or is contained in, the issuer name."""

    name = "index_containment"

    def __init__(self, index: TickerIndex):
        self.index = index

    def resolve(self, cusip: str, issuer_name: str) -> Optional[str]:
        normalized = normalize_company_name(issuer_name)
        if not normalized:
            return None
        for title, info in self.index.entries():
            if title and (title in normalized or normalized in title):
                return info.ticker
        return None


class WordOverlapResolver(SingleItemResolver):
    name = "word_overlap"

    def __init__(self, index: TickerIndex, min_matches: int = 2, min_word_length: int = 4):
        self.index = index
        self.min_matches = min_matches
        self.min_word_length = min_word_length

    def resolve(self, cusip: str, issuer_name: str) -> Optional[str]:
        words = [
            w for w in normalize_company_name(issuer_name).split(" ")
            if len(w) >= self.min_word_length
        ]
        if len(words) < self.min_matches:
            return None

        for title, info in self.index.entries():
            matched = sum(1 for w in words if w in title)
            if matched >= self.min_matches:
                return info.ticker
        return None


# =============================================================================
# CUSIP mapping API (OpenFIGI)
# =============================================================================

class MappingApiResolver:
    """
    Batched CUSIP to ticker mapping.

    Batches are sent one after another with a fixed pause in between; a
    failed batch leaves its CUSIPs for the next resolver.
    """

    name = "mapping_api"

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        batch_size: int = 10,
        batch_delay: float = 0.5,
        retry: Optional[RetryStrategy] = None,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.retry = retry or RetryStrategy(max_attempts=2, initial_delay=1.0, sleep=sleep)
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self._sleep = sleep

        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"X-OPENFIGI-APIKEY": api_key})

    def _post(self, payload: list[dict]) -> list[dict]:
        if self.rate_limiter:
            self.rate_limiter.wait()
        response = send(self.session, "POST", self.url, json=payload, timeout=self.timeout)
        try:
            results = response.json()
        except ValueError as e:
            raise ExternalApiError(f"Mapping API returned invalid JSON: {e}", url=self.url) from e
        if not isinstance(results, list):
            raise ExternalApiError(
                f"Mapping API returned {type(results).__name__}, expected a list", url=self.url
            )
        return results

    @staticmethod
    def pick_ticker(result: dict) -> Optional[str]:
        """Prefer a US equity listing, else the first listing with a ticker."""
        if not isinstance(result, dict) or result.get("error") or not result.get("data"):
            return None
        listings = [item for item in result["data"] if isinstance(item, dict)]

        primary = next(
            (
                item for item in listings
                if item.get("marketSector") == "Equity"
                and item.get("exchCode") in US_EXCHANGE_CODES
                and item.get("ticker")
            ),
            None,
        )
        ticker = (primary or (listings[0] if listings else {})).get("ticker")
        return clean_ticker(ticker)

    def resolve_batch(self, batch: list[ResolutionRequest]) -> dict[str, str]:
        payload = [
            {"idType": "ID_CUSIP", "idValue": r.cusip.strip(), "exchCode": "US"}
            for r in batch
        ]
        results = self.retry.execute(self._post, payload)

        resolved = {}
        for request, result in zip(batch, results or []):
            ticker = self.pick_ticker(result)
            if ticker:
                resolved[request.cusip] = ticker
        return resolved

    def resolve_many(self, items: list[ResolutionRequest]) -> dict[str, str]:
        resolved: dict[str, str] = {}
        batches = [
            items[i:i + self.batch_size] for i in range(0, len(items), self.batch_size)
        ]

        for i, batch in enumerate(batches):
            try:
                resolved.update(self.resolve_batch(batch))
            except IngestionError as e:
                logger.warning(f"Mapping batch {i + 1}/{len(batches)} failed: {e}")

            if i < len(batches) - 1:
                self._sleep(self.batch_delay)

        logger.debug(f"Mapping API resolved {len(resolved)}/{len(items)} CUSIPs")
        return resolved

    def close(self) -> None:
        self.session.close()


# =============================================================================
# AI fallback
# =============================================================================

class AiTickerResolver:
    """
    Last-resort model completion for a single ticker.

    Only the first ``max_items`` requests are attempted, one at a time. Each
    call is abandoned after ``timeout`` seconds. Answers that are not a bare
    ticker are discarded.
    """

    name = "ai"

    SYSTEM_PROMPT = "You are a financial data expert. Provide ONLY the stock ticker symbol."

    def __init__(
        self,
        client: OpenAI,
        model: str = "gpt-4o-mini",
        max_items: int = 100,
        timeout: float = 10.0,
        item_delay: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.client = client
        self.model = model
        self.max_items = max_items
        self.timeout = timeout
        self.item_delay = item_delay
        self._sleep = sleep
        self.rate_limiter = rate_limiter

    def _complete(self, request: ResolutionRequest) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"CUSIP: {request.cusip}, Company: {request.issuer_name}. "
                        f'Return ticker or "{AI_UNKNOWN}".'
                    ),
                },
            ],
            temperature=0,
            max_tokens=10,
            timeout=self.timeout,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    def resolve(self, cusip: str, issuer_name: str) -> Optional[str]:
        """Ask the model once; a timeout or API error counts as a miss."""
        request = ResolutionRequest(cusip=cusip, issuer_name=issuer_name)
        if self.rate_limiter:
            self.rate_limiter.wait()
        # A fresh worker per call so a hung request cannot delay the next one
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ai-resolver")
        future = executor.submit(self._complete, request)
        try:
            return self.parse_answer(future.result(timeout=self.timeout))
        except FutureTimeoutError:
            logger.debug(f"AI resolution timed out for {cusip}")
        except openai.OpenAIError as e:
            logger.debug(f"AI resolution failed for {cusip}: {e}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return None

    @staticmethod
    def parse_answer(answer: Optional[str]) -> Optional[str]:
        ticker = (answer or "").strip().upper()
        if not ticker or ticker == AI_UNKNOWN or len(ticker) > 6:
            return None
        return ticker if is_valid_ai_ticker(ticker) else None

    def resolve_many(self, items: list[ResolutionRequest]) -> dict[str, str]:
        attempted = items[: self.max_items]
        if len(items) > len(attempted):
            logger.info(
                f"AI resolution limited to {len(attempted)} items "
                f"({len(items) - len(attempted)} skipped)"
            )

        resolved: dict[str, str] = {}
        for request in attempted:
            ticker = self.resolve(request.cusip, request.issuer_name)
            if ticker:
                resolved[request.cusip] = ticker
            self._sleep(self.item_delay)

        logger.debug(f"AI resolved {len(resolved)}/{len(attempted)} CUSIPs")
        return resolved

    def close(self) -> None:
        self.client.close()
