"""SEC EDGAR ingestion: API client, filer discovery, filing fetch."""

from .discovery import FilerDiscovery
from .filing_fetcher import FilerFilings, FilingFetcher, parse_filing_list
from .sec_api import SECApi

__all__ = [
    "FilerDiscovery",
    "FilerFilings",
    "FilingFetcher",
    "SECApi",
    "parse_filing_list",
]
