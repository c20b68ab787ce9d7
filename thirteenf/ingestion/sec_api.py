"""
SEC EDGAR API wrapper.

Provides methods to query SEC EDGAR for registrant submissions, filing index
pages and filing documents. Every request goes through one token-bucket
rate limiter (SEC's fair-access policy) and the shared retry strategy.
"""

from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter

from ..core.exceptions import RateLimitError
from ..utils.config import SECApiConfig, get_settings
from ..utils.logger import get_logger
from ..utils.rate_limiter import AdaptiveRateLimiter, RateLimiter
from ..utils.retry import RetryStrategy
from .http import send

logger = get_logger("thirteenf.ingestion.sec_api")

JSON_ACCEPT = "application/json"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
XML_ACCEPT = "application/xml,text/xml;q=0.9,*/*;q=0.8"


class SECApi:
    """
    SEC EDGAR API wrapper.

    Attributes:
        user_agent: User-Agent string required by SEC (must carry a contact).
        base_url: Base URL for the SEC website.
        submissions_url: Base URL for the submissions JSON API.
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        config: Optional[SECApiConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry: Optional[RetryStrategy] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize SEC API client.

        Args:
            user_agent: User-Agent string. Defaults to the configured one.
            config: SEC settings. Defaults to the global settings.
            rate_limiter: Limiter shared by all SEC requests.
            retry: Retry strategy for transient failures.
            session: HTTP session (tests pass a mock).
        """
        self.config = config or get_settings().sec_api
        self.user_agent = user_agent or self.config.user_agent
        self.base_url = self.config.base_url.rstrip("/")
        self.submissions_url = self.config.submissions_url.rstrip("/")

        self.rate_limiter = rate_limiter or AdaptiveRateLimiter(
            rate=self.config.rate_limit_per_second,
            burst=self.config.rate_limit_burst,
            name="sec",
        )
        self.retry = retry or RetryStrategy(
            max_attempts=self.config.max_attempts,
            initial_delay=self.config.initial_retry_delay,
            max_delay=self.config.max_retry_delay,
        )

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session

        self.session.headers.update({
            "User-Agent": self.user_agent,
            "Accept-Encoding": "gzip, deflate",
        })

        logger.info(f"SEC API initialized with User-Agent: {self.user_agent}")

    def _make_request(
        self,
        url: str,
        accept: str = JSON_ACCEPT,
        timeout: Optional[float] = None,
        referer: Optional[str] = None,
    ) -> requests.Response:
        """
        Make one rate-limited request to SEC.

        Raises:
            RateLimitError: If rate limited by SEC.
            TransientNetworkError: Connection failure, timeout or 5xx.
            ExternalApiError: For other HTTP errors.
        """
        self.rate_limiter.wait()

        headers = {"Accept": accept}
        if referer:
            headers["Referer"] = referer

        try:
            response = send(
                self.session,
                "GET",
                url,
                headers=headers,
                timeout=timeout or self.config.timeout,
            )
        except RateLimitError as e:
            if isinstance(self.rate_limiter, AdaptiveRateLimiter):
                self.rate_limiter.report_rate_limit(e.retry_after)
            raise

        if isinstance(self.rate_limiter, AdaptiveRateLimiter):
            self.rate_limiter.report_success()
        return response

    def _get(self, url: str, retry: bool = True, **kwargs) -> requests.Response:
        if not retry:
            return self._make_request(url, **kwargs)
        return self.retry.execute(self._make_request, url, **kwargs)

    def get_json(self, url: str, retry: bool = True, timeout: Optional[float] = None) -> Any:
        return self._get(url, retry=retry, accept=JSON_ACCEPT, timeout=timeout).json()

    def get_text(
        self,
        url: str,
        accept: str = HTML_ACCEPT,
        referer: Optional[str] = None,
    ) -> str:
        return self._get(url, accept=accept, referer=referer).text

    def get_company_submissions(
        self,
        cik: str,
        retry: bool = True,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Get the submissions document for a registrant.

        Args:
            cik: Registrant CIK (zero-padded to 10 digits).
            retry: Whether transient failures are retried.
            timeout: Request timeout override.

        Returns:
            JSON response with filer name and filing history.
        """
        cik_padded = cik.zfill(10)
        url = f"{self.submissions_url}/CIK{cik_padded}.json"

        logger.debug(f"Fetching submissions for CIK {cik_padded}")
        return self.get_json(url, retry=retry, timeout=timeout)

    def get_submissions_file(self, name: str) -> dict[str, Any]:
        """Get one page of older filings listed under ``filings.files``."""
        return self.get_json(f"{self.submissions_url}/{name}")

    def get_company_tickers(self) -> dict[str, Any]:
        """Get SEC's company_tickers.json (every registrant with a ticker)."""
        logger.debug("Fetching SEC company tickers")
        return self.get_json(self.config.company_tickers_url)

    def get_filing_index(self, index_url: str) -> str:
        """Get a filing's HTML index page."""
        return self.get_text(index_url, accept=HTML_ACCEPT)

    def get_xml_document(self, url: str, referer: Optional[str] = None) -> str:
        """Get one XML document of a filing."""
        return self.get_text(url, accept=XML_ACCEPT, referer=referer)

    def close(self) -> None:
        """Close the session."""
        self.session.close()

    def __enter__(self) -> "SECApi":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
