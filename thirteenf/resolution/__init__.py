"""CUSIP to ticker resolution."""

from .cascade import TickerResolutionCascade, build_cascade, build_default_resolvers
from .resolvers import (
    AiTickerResolver,
    IndexContainmentResolver,
    IndexExactResolver,
    MappingApiResolver,
    ResolutionRequest,
    Resolver,
    SingleItemResolver,
    WordOverlapResolver,
    clean_ticker,
    is_valid_ai_ticker,
)
from .ticker_index import TickerIndex, build_index, normalize_company_name

__all__ = [
    "AiTickerResolver",
    "IndexContainmentResolver",
    "IndexExactResolver",
    "MappingApiResolver",
    "ResolutionRequest",
    "Resolver",
    "SingleItemResolver",
    "TickerIndex",
    "TickerResolutionCascade",
    "WordOverlapResolver",
    "build_cascade",
    "build_default_resolvers",
    "build_index",
    "clean_ticker",
    "is_valid_ai_ticker",
    "normalize_company_name",
]
