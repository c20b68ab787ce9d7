"""Pytest configuration and fixtures."""

import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set up environment for testing
os.environ.setdefault("SEC_API_USER_AGENT", "TestSuite test@example.com")
os.environ.setdefault("THIRTEENF_ENV", "test")

from thirteenf.core.exceptions import ExternalApiError  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_logging():
    """Set up logging for tests."""
    from thirteenf.utils.logger import setup_logging
    setup_logging(log_level="WARNING")


@pytest.fixture(scope="session")
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Manually advanced clock; ``sleep`` advances it instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def holding_xml(
    issuer: str,
    cusip: str,
    value: float,
    shares: float,
    prefix: str = "ns1:",
    sole: Optional[float] = None,
) -> str:
    p = prefix
    sole = shares if sole is None else sole
    return f"""
  <{p}infoTable>
    <{p}nameOfIssuer>{issuer}</{p}nameOfIssuer>
    <{p}titleOfClass>COM</{p}titleOfClass>
    <{p}cusip>{cusip}</{p}cusip>
    <{p}value>{value:g}</{p}value>
    <{p}shrsOrPrnAmt>
      <{p}sshPrnamt>{shares:g}</{p}sshPrnamt>
      <{p}sshPrnamtType>SH</{p}sshPrnamtType>
    </{p}shrsOrPrnAmt>
    <{p}investmentDiscretion>SOLE</{p}investmentDiscretion>
    <{p}votingAuthority>
      <{p}Sole>{sole:g}</{p}Sole>
      <{p}Shared>0</{p}Shared>
      <{p}None>0</{p}None>
    </{p}votingAuthority>
  </{p}infoTable>"""


def info_table_xml(*entries: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<ns1:informationTable '
        'xmlns:ns1="http://www.sec.gov/edgar/document/thirteenf/informationtable" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        + "".join(entries)
        + "\n</ns1:informationTable>\n"
    )


def primary_doc_xml(period: str = "06-30-2024", name: str = "Starboard Value LP") -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<edgarSubmission xmlns="http://www.sec.gov/edgar/thirteenffiler"
                 xmlns:com="http://www.sec.gov/edgar/common">
  <headerData>
    <submissionType>13F-HR</submissionType>
    <filerInfo>
      <periodOfReport>{period}</periodOfReport>
    </filerInfo>
  </headerData>
  <formData>
    <coverPage>
      <reportCalendarOrQuarter>{period}</reportCalendarOrQuarter>
      <filingManager>
        <name>{name}</name>
        <address>
          <com:street1>777 Third Avenue</com:street1>
          <com:city>New York</com:city>
          <com:stateOrCountry>NY</com:stateOrCountry>
          <com:zipCode>10017</com:zipCode>
        </address>
      </filingManager>
    </coverPage>
  </formData>
</edgarSubmission>
"""


def index_html(cik: str, accession_number: str) -> str:
    folder = f"/Archives/edgar/data/{int(cik)}/{accession_number.replace('-', '')}"
    return f"""<html><body>
<table class="tableFile" summary="Document Format Files">
  <tr><th>Seq</th><th>Description</th><th>Document</th><th>Type</th><th>Size</th></tr>
  <tr><td>1</td><td></td>
      <td><a href="{folder}/xslForm13F_X02/primary_doc.xml">primary_doc.html</a></td>
      <td>13F-HR</td><td>2 KB</td></tr>
  <tr><td>1</td><td></td>
      <td><a href="{folder}/primary_doc.xml">primary_doc.xml</a></td>
      <td>13F-HR</td><td>2 KB</td></tr>
  <tr><td>2</td><td>INFORMATION TABLE</td>
      <td><a href="{folder}/xslForm13F_X02/infotable.xml">infotable.html</a></td>
      <td>INFORMATION TABLE</td><td>9 KB</td></tr>
  <tr><td>2</td><td>INFORMATION TABLE</td>
      <td><a href="{folder}/infotable.xml">infotable.xml</a></td>
      <td>INFORMATION TABLE</td><td>9 KB</td></tr>
  <tr><td></td><td>Complete submission text file</td>
      <td><a href="{folder}/{accession_number}.txt">{accession_number}.txt</a></td>
      <td></td><td>12 KB</td></tr>
</table>
</body></html>"""


def submissions_json(name: str, filings: list[tuple[str, str, str, str]]) -> dict:
    """Build a submissions document from (accession, form, filing_date, report_date) rows."""
    return {
        "cik": "",
        "name": name,
        "filings": {
            "recent": {
                "accessionNumber": [f[0] for f in filings],
                "form": [f[1] for f in filings],
                "filingDate": [f[2] for f in filings],
                "reportDate": [f[3] for f in filings],
            },
            "files": [],
        },
    }


class FakeSECApi:
    """
    In-memory stand-in for SECApi.

    Args:
        submissions: CIK -> submissions JSON.
        documents: accession -> (primary XML, information table XML).
        tickers: company_tickers.json payload.
    """

    def __init__(
        self,
        submissions: Optional[dict] = None,
        documents: Optional[dict] = None,
        tickers: Optional[dict] = None,
    ):
        self.submissions = submissions or {}
        self.documents = documents or {}
        self.tickers = tickers if tickers is not None else {}
        self.calls: list[tuple] = []

    def get_company_submissions(self, cik, retry=True, timeout=None):
        self.calls.append(("submissions", cik))
        if cik not in self.submissions:
            raise ExternalApiError("HTTP 404", status_code=404)
        return self.submissions[cik]

    def get_submissions_file(self, name):
        raise ExternalApiError("HTTP 404", status_code=404)

    def get_company_tickers(self):
        self.calls.append(("tickers",))
        if isinstance(self.tickers, Exception):
            raise self.tickers
        return self.tickers

    def _accession_for(self, url: str) -> str:
        for accession in self.documents:
            if accession.replace("-", "") in url:
                return accession
        raise ExternalApiError("HTTP 404", status_code=404, url=url)

    def get_filing_index(self, url):
        self.calls.append(("index", url))
        accession = self._accession_for(url)
        cik = url.split("/Archives/edgar/data/")[1].split("/")[0]
        return index_html(cik, accession)

    def get_xml_document(self, url, referer=None):
        self.calls.append(("xml", url))
        primary, info_table = self.documents[self._accession_for(url)]
        return primary if url.endswith("primary_doc.xml") else info_table


class StaticResolver:
    """Resolver answering from a fixed CUSIP map and recording what it was asked."""

    def __init__(self, name, answers):
        self.name = name
        self.answers = answers
        self.calls: list[list[str]] = []

    def resolve_many(self, items):
        self.calls.append([r.cusip for r in items])
        return {r.cusip: self.answers[r.cusip] for r in items if r.cusip in self.answers}


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload=None,
        headers: Optional[dict] = None,
        text: str = "",
    ):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """
    Stand-in for ``requests.Session``.

    ``responder`` is either a list of responses served in order or a
    callable ``(method, url, kwargs) -> FakeResponse``.
    """

    def __init__(self, responder):
        self.responder = responder
        self.headers: dict = {}
        self.requests: list[tuple[str, str, dict]] = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if callable(self.responder):
            response = self.responder(method, url, kwargs)
        else:
            response = self.responder.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class CountingLimiter:
    """Rate limiter stand-in that counts how often it was waited on."""

    def __init__(self):
        self.waits = 0

    def wait(self):
        self.waits += 1


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sample_info_table_xml():
    """Information table with a duplicate CUSIP and one zero-value line."""
    return info_table_xml(
        holding_xml("APPLE INC", "037833100", 6000, 100),
        holding_xml("MICROSOFT CORP", "594918104", 3000, 30),
        holding_xml("MICROSOFT CORP", "594918104", 1000, 20),
        holding_xml("WORTHLESS CO", "000000000", 0, 10),
    )


@pytest.fixture
def sample_primary_xml():
    return primary_doc_xml()


@pytest.fixture
def sample_index_html():
    return index_html("0001517137", "0001517137-24-000005")


@pytest.fixture
def sample_ticker_data():
    """Shape of SEC's company_tickers.json."""
    return {
        "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
        "1": {"cik_str": 789019, "ticker": "MSFT", "title": "MICROSOFT CORP"},
        "2": {"cik_str": 1045810, "ticker": "NVDA", "title": "NVIDIA CORP"},
        "3": {"cik_str": 1018724, "ticker": "AMZN", "title": "AMAZON COM INC"},
        "4": {"cik_str": 1067983, "ticker": "BRK-B", "title": "BERKSHIRE HATHAWAY INC"},
    }


@pytest.fixture
def sample_filing_date():
    return date(2024, 8, 14)


@pytest.fixture
def temp_db(tmp_path):
    """DuckDB database in a temporary directory with schema applied."""
    from thirteenf.storage.connection import Database

    db = Database(str(tmp_path / "test.duckdb"))
    db.initialize_schema()
    yield db
    db.close()
