"""Tests for sector enrichment and the lookup caches."""

import json
import threading

import pytest

from thirteenf.caching import InMemoryCache, JsonFileCache
from thirteenf.core.exceptions import CacheError
from thirteenf.core.models import Holding
from thirteenf.enrichment import SectorEnricher
from thirteenf.utils.config import EnrichmentConfig
from conftest import CountingLimiter, FakeResponse, FakeSession

SECTORS = {
    "AAPL": {"sector": "Technology", "industry": "Consumer Electronics", "market_cap": 3.4e12},
    "XOM": {"sector": "Energy", "industry": "Oil & Gas", "market_cap": 4.5e11},
}


def facts_responder(counter=None):
    lock = threading.Lock()

    def respond(method, url, kwargs):
        ticker = kwargs["params"]["ticker"]
        if counter is not None:
            with lock:
                counter[ticker] = counter.get(ticker, 0) + 1
        if ticker in SECTORS:
            return FakeResponse(200, {"company_facts": dict(SECTORS[ticker], ticker=ticker)})
        return FakeResponse(404, {"error": "not found"})

    return respond


def holding(cusip, ticker):
    return Holding(cusip=cusip, issuer_name=cusip, value=100, shares=1, ticker=ticker)


class TestSectorEnricher:
    """Tests for SectorEnricher."""

    def test_no_api_key_everything_unknown(self):
        session = FakeSession(facts_responder())
        enricher = SectorEnricher(None, InMemoryCache(), session=session)

        result = enricher.enrich([holding("A", "AAPL"), holding("B", None)])

        assert [h.sector for h in result] == ["Unknown", "Unknown"]
        assert session.requests == []

    def test_empty_input(self):
        assert SectorEnricher("key", InMemoryCache(), session=FakeSession([])).enrich([]) == []

    def test_sectors_fetched_in_input_order(self):
        counter = {}
        session = FakeSession(facts_responder(counter))
        enricher = SectorEnricher("key", InMemoryCache(), session=session)

        result = enricher.enrich([
            holding("A", "XOM"),
            holding("B", None),
            holding("C", "aapl"),
            holding("D", "AAPL"),
            holding("E", "ZZZZ"),
        ])

        assert [h.cusip for h in result] == ["A", "B", "C", "D", "E"]
        assert [h.sector for h in result] == [
            "Energy", "Unknown", "Technology", "Technology", "Unknown",
        ]
        # One request per distinct upper-cased ticker
        assert counter == {"XOM": 1, "AAPL": 1, "ZZZZ": 1}
        assert session.headers["X-API-KEY"] == "key"

    def test_results_and_misses_cached(self):
        cache = InMemoryCache()
        enricher = SectorEnricher("key", cache, session=FakeSession(facts_responder()))

        enricher.enrich([holding("A", "AAPL"), holding("B", "ZZZZ")])

        assert cache.get("AAPL")["sector"] == "Technology"
        assert cache.contains("ZZZZ")
        assert cache.get("ZZZZ") is None

    def test_cached_tickers_not_requested(self):
        cache = InMemoryCache({
            "AAPL": {"ticker": "AAPL", "sector": "Technology"},
            "ZZZZ": None,
        })
        session = FakeSession(facts_responder())
        enricher = SectorEnricher("key", cache, session=session)

        result = enricher.enrich([holding("A", "AAPL"), holding("B", "ZZZZ")])

        assert [h.sector for h in result] == ["Technology", "Unknown"]
        assert session.requests == []

    def test_rate_limit_retried_once(self):
        sleeps = []
        session = FakeSession([
            FakeResponse(429, None),
            FakeResponse(200, {"company_facts": {"sector": "Technology"}}),
        ])
        enricher = SectorEnricher(
            "key", InMemoryCache(), config=EnrichmentConfig(rate_limit_backoff=2.0),
            session=session, sleep=sleeps.append,
        )

        data = enricher.fetch_sector("AAPL")

        assert data.sector == "Technology"
        assert sleeps == [2.0]

    def test_second_rate_limit_gives_up(self):
        sleeps = []
        session = FakeSession([FakeResponse(429, None), FakeResponse(429, None)])
        enricher = SectorEnricher("key", InMemoryCache(), session=session, sleep=sleeps.append)

        assert enricher.fetch_sector("AAPL") is None
        assert len(session.requests) == 2
        assert len(sleeps) == 1

    def test_missing_sector_is_a_miss(self):
        session = FakeSession([FakeResponse(200, {"company_facts": {"industry": "X"}})])
        enricher = SectorEnricher("key", InMemoryCache(), session=session)

        assert enricher.fetch_sector("AAPL") is None

    def test_invalid_json_is_a_miss(self):
        session = FakeSession([FakeResponse(200, ValueError("no json"))])
        enricher = SectorEnricher("key", InMemoryCache(), session=session)

        assert enricher.fetch_sector("AAPL") is None

    def test_many_tickers_batched(self):
        counter = {}
        session = FakeSession(facts_responder(counter))
        enricher = SectorEnricher(
            "key", InMemoryCache(),
            config=EnrichmentConfig(batch_size=3, batch_concurrency=2, request_concurrency=2),
            session=session,
        )
        tickers = [f"T{chr(65 + i)}" for i in range(10)]

        fetched = enricher.fetch_sectors(tickers)

        assert set(fetched) == set(tickers)
        assert sorted(counter) == sorted(tickers)

    @pytest.mark.parametrize("body", [
        ["unexpected"],
        {"company_facts": "Technology"},
        {"company_facts": {"sector": 42}},
    ])
    def test_unexpected_body_is_a_miss(self, body):
        session = FakeSession([FakeResponse(200, body)])
        enricher = SectorEnricher("key", InMemoryCache(), session=session)

        assert enricher.fetch_sector("AAPL") is None

    def test_unexpected_bodies_leave_sector_unknown(self):
        session = FakeSession(lambda method, url, kwargs: FakeResponse(200, ["unexpected"]))
        enricher = SectorEnricher("key", InMemoryCache(), session=session)

        result = enricher.enrich([holding("A", "AAPL"), holding("B", "XOM")])

        assert [h.sector for h in result] == ["Unknown", "Unknown"]

    def test_waits_on_rate_limiter_per_request(self):
        limiter = CountingLimiter()
        enricher = SectorEnricher(
            "key", InMemoryCache(),
            config=EnrichmentConfig(request_concurrency=1, batch_concurrency=1),
            session=FakeSession(facts_responder()), rate_limiter=limiter,
        )

        enricher.enrich([holding("A", "AAPL"), holding("B", "XOM"), holding("C", "AAPL")])

        assert limiter.waits == 2

    def test_cache_write_failure_keeps_sectors(self):
        class UnwritableCache(InMemoryCache):
            def persist(self):
                raise CacheError("disk full")

        enricher = SectorEnricher("key", UnwritableCache(), session=FakeSession(facts_responder()))

        result = enricher.enrich([holding("A", "AAPL")])

        assert result[0].sector == "Technology"

    def test_close_closes_session(self):
        session = FakeSession([])
        SectorEnricher("key", InMemoryCache(), session=session).close()
        assert session.closed


class TestCaches:
    """Tests for InMemoryCache and JsonFileCache."""

    def test_negative_entry_distinct_from_missing(self):
        cache = InMemoryCache()
        cache.set("000000000", None)

        assert cache.contains("000000000")
        assert "000000000" in cache
        assert cache.get("000000000") is None
        assert not cache.contains("111111111")
        assert len(cache) == 1

    def test_json_cache_round_trip(self, tmp_path):
        path = tmp_path / "cache" / "tickers.json"
        cache = JsonFileCache(path, name="ticker cache")
        cache.set("037833100", "AAPL")
        cache.set("000000000", None)

        cache.persist()
        reloaded = JsonFileCache(path)

        assert reloaded.load_from_disk() == 2
        assert reloaded.get("037833100") == "AAPL"
        assert reloaded.contains("000000000")

    def test_missing_file_starts_empty(self, tmp_path):
        assert JsonFileCache(tmp_path / "none.json").load_from_disk() == 0

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        cache = JsonFileCache(path)

        assert cache.load_from_disk() == 0
        assert len(cache) == 0

    def test_non_object_file_ignored(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps(["AAPL"]))

        assert JsonFileCache(path).load_from_disk() == 0
