"""
Ticker resolution cascade.

Resolvers are tried in a fixed order, cheapest and most trusted first. Each
step only sees the CUSIPs that every earlier step failed on, so an earlier
answer always wins. Resolved tickers are cached by CUSIP, and a cache hit
skips the cascade entirely.
"""

import time
from dataclasses import replace

from openai import OpenAI

from ..caching.store import Cache
from ..core.exceptions import CacheError
from ..core.models import Holding
from ..processing.deduplication import is_valid_cusip, normalize_cusip
from ..utils.config import EnvSettings, ResolutionConfig
from ..utils.logger import get_logger
from ..utils.rate_limiter import RateLimiter
from ..utils.retry import RetryStrategy
from .resolvers import (
    AiTickerResolver,
    IndexContainmentResolver,
    IndexExactResolver,
    MappingApiResolver,
    ResolutionRequest,
    Resolver,
    WordOverlapResolver,
)
from .ticker_index import TickerIndex

logger = get_logger("thirteenf.resolution.cascade")


class TickerResolutionCascade:
    """
    Applies an ordered list of resolvers to a filing's holdings.

    Args:
        resolvers: Resolvers in precedence order.
        cache: CUSIP -> ticker cache shared across filings.
    """

    def __init__(self, resolvers: list[Resolver], cache: Cache):
        self.resolvers = resolvers
        self.cache = cache

    def resolve_tickers(self, requests: list[ResolutionRequest]) -> dict[str, str]:
        """
        Resolve ``{cusip: ticker}`` for the requests, consulting the cache first.

        Requests must carry normalized CUSIPs.
        """
        resolved: dict[str, str] = {}
        pending: list[ResolutionRequest] = []

        for request in requests:
            cached = self.cache.get(request.cusip)
            if cached:
                resolved[request.cusip] = cached
            else:
                pending.append(request)

        cache_hits = len(resolved)

        for resolver in self.resolvers:
            if not pending:
                break

            started = time.perf_counter()
            found = resolver.resolve_many(pending)
            elapsed_ms = (time.perf_counter() - started) * 1000

            for cusip, ticker in found.items():
                resolved[cusip] = ticker
                self.cache.set(cusip, ticker)

            pending = [r for r in pending if r.cusip not in found]
            logger.debug(
                f"{resolver.name}: resolved {len(found)}, {len(pending)} left "
                f"({elapsed_ms:.0f}ms)"
            )

        logger.info(
            f"Tickers resolved: {len(resolved)}/{len(requests)} "
            f"(cache hits {cache_hits}, unresolved {len(pending)})"
        )
        return resolved

    def resolve_holdings(self, holdings: list[Holding]) -> list[Holding]:
        """
        Return copies of the holdings with ``ticker`` filled where resolved.

        Holdings whose CUSIP is not nine alphanumeric characters keep their
        current ticker (usually None).
        """
        requests: dict[str, ResolutionRequest] = {}
        for holding in holdings:
            cusip = normalize_cusip(holding.cusip)
            if is_valid_cusip(cusip) and cusip not in requests:
                requests[cusip] = ResolutionRequest(cusip=cusip, issuer_name=holding.issuer_name)

        if not requests:
            return list(holdings)

        tickers = self.resolve_tickers(list(requests.values()))
        try:
            self.cache.persist()
        except CacheError as e:
            logger.warning(f"Ticker cache not saved: {e}")

        return [
            replace(h, ticker=tickers.get(normalize_cusip(h.cusip), h.ticker))
            for h in holdings
        ]

    def close(self) -> None:
        """Close resolvers that hold HTTP sessions or API clients."""
        for resolver in self.resolvers:
            close = getattr(resolver, "close", None)
            if close is not None:
                close()


def build_default_resolvers(
    index: TickerIndex,
    config: ResolutionConfig,
    env: EnvSettings,
) -> list[Resolver]:
    """
    Standard resolver order: reference index (exact, containment, word
    overlap), then the mapping API, then the model fallback when enabled and
    an OpenAI key is configured.
    """
    resolvers: list[Resolver] = [
        IndexExactResolver(index),
        IndexContainmentResolver(index),
        WordOverlapResolver(index),
        MappingApiResolver(
            url=config.mapping_api_url,
            api_key=env.openfigi_api_key,
            batch_size=config.mapping_batch_size,
            batch_delay=config.mapping_batch_delay,
            retry=RetryStrategy(
                max_attempts=config.mapping_max_attempts,
                initial_delay=config.mapping_initial_delay,
            ),
            rate_limiter=RateLimiter(
                rate=config.mapping_rate_limit_per_second, name="mapping_api"
            ),
        ),
    ]

    if config.ai_enabled and env.openai_api_key:
        resolvers.append(AiTickerResolver(
            client=OpenAI(api_key=env.openai_api_key),
            model=config.ai_model,
            max_items=config.ai_max_items,
            timeout=config.ai_timeout,
            item_delay=config.ai_item_delay,
            rate_limiter=RateLimiter(rate=config.ai_rate_limit_per_second, name="ai"),
        ))
    elif config.ai_enabled:
        logger.warning("OPENAI_API_KEY not set, AI ticker fallback disabled")

    return resolvers


def build_cascade(
    index: TickerIndex,
    cache: Cache,
    config: ResolutionConfig,
    env: EnvSettings,
) -> TickerResolutionCascade:
    return TickerResolutionCascade(build_default_resolvers(index, config, env), cache)
