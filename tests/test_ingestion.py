"""Tests for the SEC client, filing fetcher and filer discovery."""

from datetime import date

import pytest

from thirteenf.core.exceptions import ExternalApiError, TransientNetworkError
from thirteenf.ingestion import FilerDiscovery, FilingFetcher, SECApi, parse_filing_list
from thirteenf.utils.config import DiscoveryConfig, PipelineConfig, SECApiConfig
from thirteenf.utils.rate_limiter import AdaptiveRateLimiter, RateLimiter
from thirteenf.utils.retry import RetryStrategy
from conftest import (
    FakeClock,
    FakeResponse,
    FakeSECApi,
    FakeSession,
    info_table_xml,
    holding_xml,
    primary_doc_xml,
    submissions_json,
)

CIK = "0001517137"


def make_sec_api(responses, rate_limiter=None):
    session = FakeSession(responses)
    api = SECApi(
        user_agent="TestSuite test@example.com",
        config=SECApiConfig(),
        rate_limiter=rate_limiter or RateLimiter(rate=100, burst=100),
        retry=RetryStrategy(max_attempts=3, sleep=lambda s: None),
        session=session,
    )
    return api, session


class TestSECApi:
    """Tests for SECApi."""

    def test_submissions_url_and_headers(self):
        api, session = make_sec_api([FakeResponse(200, {"name": "Starboard Value LP"})])

        data = api.get_company_submissions("1517137")

        assert data["name"] == "Starboard Value LP"
        method, url, kwargs = session.requests[0]
        assert method == "GET"
        assert url == "https://data.sec.gov/submissions/CIK0001517137.json"
        assert kwargs["headers"]["Accept"] == "application/json"
        assert session.headers["User-Agent"] == "TestSuite test@example.com"

    def test_transient_errors_retried(self):
        api, session = make_sec_api([
            FakeResponse(503),
            TransientNetworkError("reset"),
            FakeResponse(200, {"0": {"cik_str": 1, "ticker": "A", "title": "A"}}),
        ])

        assert "0" in api.get_company_tickers()
        assert len(session.requests) == 3

    def test_not_found_not_retried(self):
        api, session = make_sec_api([FakeResponse(404), FakeResponse(200, {})])

        with pytest.raises(ExternalApiError) as exc_info:
            api.get_company_submissions(CIK)

        assert exc_info.value.status_code == 404
        assert len(session.requests) == 1

    def test_retry_disabled(self):
        api, session = make_sec_api([FakeResponse(503), FakeResponse(200, {})])

        with pytest.raises(TransientNetworkError):
            api.get_company_submissions(CIK, retry=False)
        assert len(session.requests) == 1

    def test_xml_document_sends_referer(self):
        api, session = make_sec_api([FakeResponse(200, text="<a/>")])

        assert api.get_xml_document("https://www.sec.gov/x.xml", referer="https://idx") == "<a/>"
        headers = session.requests[0][2]["headers"]
        assert headers["Referer"] == "https://idx"
        assert "xml" in headers["Accept"]

    def test_default_limiter_adapts(self):
        api = SECApi(
            user_agent="TestSuite test@example.com",
            config=SECApiConfig(),
            session=FakeSession([]),
        )
        assert isinstance(api.rate_limiter, AdaptiveRateLimiter)

    def test_retry_after_delays_next_request(self):
        clock = FakeClock()
        api, session = make_sec_api(
            [FakeResponse(429, headers={"Retry-After": "3"}), FakeResponse(200, {})],
            rate_limiter=AdaptiveRateLimiter(rate=100, burst=100, clock=clock, sleep=clock.sleep),
        )

        assert api.get_company_submissions(CIK) == {}
        assert len(session.requests) == 2
        assert pytest.approx(3.0) in clock.sleeps

    def test_rate_limit_without_retry_after_slows_down(self):
        clock = FakeClock()
        limiter = AdaptiveRateLimiter(rate=100, burst=100, clock=clock, sleep=clock.sleep)
        api, _ = make_sec_api([FakeResponse(429), FakeResponse(200, {})], rate_limiter=limiter)

        api.get_company_submissions(CIK)

        # Halved on the 429, then nudged back up by the success
        assert limiter.rate == pytest.approx(55.0)


class TestParseFilingList:
    """Tests for selecting 13F filings from submissions data."""

    def test_selects_13f_in_window(self):
        recent = submissions_json("X", [
            ("0000000001-24-000001", "13F-HR", "2024-05-15", "2024-03-31"),
            ("0000000001-24-000002", "10-K", "2024-06-01", "2024-03-31"),
            ("0000000001-23-000003", "13F-HR", "2023-11-14", "2023-09-30"),
            ("0000000001-24-000004", "13F-HR/A", "2024-08-20", "2024-06-30"),
            ("0000000001-26-000005", "13F-HR", "2026-05-15", "2026-03-31"),
            ("0000000001-24-000006", "13F-HR", "", "2024-06-30"),
        ])["filings"]["recent"]

        filings = parse_filing_list(recent, "0000000001", "X", 2024, 2025, date(2024, 3, 31))

        assert [f.accession_number for f in filings] == [
            "0000000001-24-000001", "0000000001-24-000004",
        ]
        assert filings[1].form_type == "13F-HR/A"
        assert filings[0].filing_url.endswith("0000000001-24-000001-index.htm")

    def test_missing_arrays(self):
        assert parse_filing_list({}, "0000000001", "X", 2024, 2025, date(2024, 3, 31)) == []


class TestFilingFetcher:
    """Tests for FilingFetcher."""

    @pytest.fixture
    def sec_api(self):
        submissions = submissions_json("Starboard Value LP", [
            ("0001517137-24-000009", "13F-HR", "2024-11-14", "2024-09-30"),
            ("0001517137-24-000005", "13F-HR", "2024-08-14", "2024-06-30"),
        ])
        submissions["filings"]["files"] = [{"name": "CIK0001517137-submissions-001.json"}]
        documents = {
            "0001517137-24-000005": (
                primary_doc_xml(),
                info_table_xml(holding_xml("APPLE INC", "037833100", 6000, 100)),
            ),
        }
        return FakeSECApi(submissions={CIK: submissions}, documents=documents)

    def test_fetch_filings_sorted_oldest_first(self, sec_api):
        fetcher = FilingFetcher(sec_api, config=PipelineConfig())

        listing = fetcher.fetch_filings("1517137", None, 2024, 2025)

        assert listing.cik == CIK
        assert listing.filer_name == "Starboard Value LP"
        assert [f.accession_number for f in listing.filings] == [
            "0001517137-24-000005", "0001517137-24-000009",
        ]

    def test_known_name_wins(self, sec_api):
        listing = FilingFetcher(sec_api, config=PipelineConfig()).fetch_filings(
            CIK, "Starboard", 2024, 2025
        )
        assert listing.filings[0].company_name == "Starboard"

    def test_unknown_cik_raises(self, sec_api):
        with pytest.raises(ExternalApiError):
            FilingFetcher(sec_api, config=PipelineConfig()).fetch_filings(
                "0000000042", None, 2024, 2025
            )

    def test_fetch_documents(self, sec_api):
        fetcher = FilingFetcher(sec_api, config=PipelineConfig())
        filing = fetcher.fetch_filings(CIK, None, 2024, 2025).filings[0]

        docs = fetcher.fetch_documents(filing)

        assert docs.primary_url.endswith("/primary_doc.xml")
        assert docs.info_table_url.endswith("/infotable.xml")
        assert "edgarsubmission" in docs.primary
        assert "informationtable" in docs.info_table


def registrants(*ciks):
    return {
        str(i): {"cik_str": cik, "ticker": f"T{i}", "title": f"Registrant {cik}"}
        for i, cik in enumerate(ciks)
    }


def activity(*filing_dates, form="13F-HR"):
    return submissions_json("X", [
        (f"acc-{i}", form, d, d) for i, d in enumerate(filing_dates)
    ])


class TestFilerDiscovery:
    """Tests for the resumable registrant scan."""

    @pytest.fixture
    def sec_api(self):
        return FakeSECApi(
            tickers=registrants(1, 2, 3, 4, 5),
            submissions={
                "0000000002": activity("2025-05-15", "2025-02-14"),
                "0000000003": activity("2020-05-15", "2020-02-14"),
                "0000000004": activity("2025-05-15", "2024-11-14", "2024-08-14"),
                "0000000005": activity("2025-05-15", "2025-02-14", form="10-K"),
            },
        )

    @pytest.fixture
    def discovery(self, sec_api):
        sleeps = []
        discovery = FilerDiscovery(
            sec_api,
            config=DiscoveryConfig(registrant_batch_size=2, batch_sleep_seconds=1.5),
            sleep=sleeps.append,
            today=lambda: date(2025, 6, 1),
        )
        discovery.sleeps = sleeps
        return discovery

    def test_resumes_across_calls(self, discovery):
        first = discovery.discover(1)
        second = discovery.discover(1)

        assert [c.cik for c in first] == ["0000000002"]
        assert [c.cik for c in second] == ["0000000004"]
        assert discovery.offset == 4

    def test_sleeps_between_batches(self, discovery):
        found = discovery.discover(5)

        assert [c.cik for c in found] == ["0000000002", "0000000004"]
        assert discovery.sleeps == [1.5, 1.5]
        assert discovery.exhausted
        assert discovery.discover(5) == []

    def test_each_cik_checked_once(self, discovery, sec_api):
        discovery.discover(5)
        discovery.offset = 0
        discovery.discover(5)

        checked = [c[1] for c in sec_api.calls if c[0] == "submissions"]
        assert sorted(checked) == [f"000000000{i}" for i in range(1, 6)]

    def test_reset(self, discovery):
        discovery.discover(5)
        discovery.reset()

        assert discovery.offset == 0
        assert not discovery.exhausted
        assert [c.cik for c in discovery.discover(1)] == ["0000000002"]

    def test_old_filings_do_not_count(self, discovery):
        assert discovery.check_activity("0000000003") is False
        assert discovery.verify_filer_activity("4") is True

    def test_failed_lookup_is_inactive(self, discovery):
        # CIK 1 has no submissions document
        assert discovery.check_activity("0000000001") is False

    def test_registrant_list_failure(self):
        sec_api = FakeSECApi(tickers=ExternalApiError("HTTP 503", status_code=503))
        discovery = FilerDiscovery(sec_api, config=DiscoveryConfig(), sleep=lambda s: None)

        assert discovery.discover(5) == []
