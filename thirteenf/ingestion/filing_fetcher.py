"""
13F filing listing and document retrieval.

Lists a filer's 13F-HR filings from the submissions API and downloads the
two XML documents of one filing (primary document and information table).
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..core.exceptions import ExternalApiError
from ..core.models import Filing, FilingDocuments
from ..core.types import THIRTEEN_F_FORMS
from ..parsers.index_parser import build_index_url, find_xml_documents
from ..parsers.xml_tree import parse_xml
from ..utils.config import PipelineConfig, get_settings
from ..utils.logger import get_logger
from .sec_api import SECApi

logger = get_logger("thirteenf.ingestion.filing_fetcher")


@dataclass
class FilerFilings:
    """Filings of one registrant plus the name SEC has on record."""
    cik: str
    filer_name: Optional[str]
    filings: list[Filing] = field(default_factory=list)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_filing_list(
    data: dict,
    cik: str,
    company_name: str,
    start_year: int,
    end_year: int,
    cutoff: date,
) -> list[Filing]:
    """
    Select 13F-HR filings from a submissions ``recent`` block or page.

    The block holds parallel arrays (``accessionNumber``, ``form``,
    ``filingDate``, ``reportDate``). A filing is kept when its report
    period is on or after ``cutoff`` and its year is in
    ``[start_year, end_year]``.
    """
    accession_numbers = data.get("accessionNumber") if isinstance(data, dict) else None
    if not isinstance(accession_numbers, list):
        logger.warning(f"No accession numbers in filing data for {company_name}")
        return []

    forms = data.get("form") or []
    filing_dates = data.get("filingDate") or []
    report_dates = data.get("reportDate") or []

    filings = []
    for i, accession_number in enumerate(accession_numbers):
        form_type = forms[i].strip() if i < len(forms) and forms[i] else ""
        if form_type not in THIRTEEN_F_FORMS:
            continue

        filing_date = _parse_date(filing_dates[i] if i < len(filing_dates) else None)
        report_date = _parse_date(report_dates[i] if i < len(report_dates) else None)
        if not accession_number or filing_date is None or report_date is None:
            continue

        if report_date < cutoff or not start_year <= report_date.year <= end_year:
            continue

        filings.append(Filing(
            cik=cik,
            company_name=company_name,
            accession_number=accession_number,
            filing_date=filing_date,
            period_of_report=report_date,
            form_type=form_type,
            filing_url=build_index_url(cik, accession_number),
        ))

    return filings


class FilingFetcher:
    """
    Fetches filing lists and filing documents for the pipeline.

    Usage:
        fetcher = FilingFetcher(sec_api)
        listing = fetcher.fetch_filings("0001517137", "Starboard Value LP", 2024, 2025)
        docs = fetcher.fetch_documents(listing.filings[0])
    """

    def __init__(self, sec_api: SECApi, config: Optional[PipelineConfig] = None):
        self.sec_api = sec_api
        self.config = config or get_settings().pipeline
        self.cutoff = date.fromisoformat(self.config.report_period_cutoff)

    def fetch_filings(
        self,
        cik: str,
        company_name: Optional[str],
        start_year: int,
        end_year: int,
    ) -> FilerFilings:
        """
        List a filer's 13F-HR filings, oldest first, unique by accession.

        Recent filings come from the submissions document; the first
        ``historical_pages`` pages of older filings are read as well, since
        large filers push earlier quarters out of the recent block.

        Raises:
            IngestionError: If the submissions document cannot be fetched.
        """
        cik = cik.zfill(10)
        submissions = self.sec_api.get_company_submissions(cik)
        filer_name = company_name or submissions.get("name")
        label = filer_name or f"CIK:{cik}"

        filing_data = submissions.get("filings") or {}
        filings = parse_filing_list(
            filing_data.get("recent") or {}, cik, label, start_year, end_year, self.cutoff
        )

        pages = filing_data.get("files") or []
        for page in pages[: self.config.historical_pages]:
            try:
                page_data = self.sec_api.get_submissions_file(page["name"])
            except ExternalApiError as e:
                logger.warning(f"Could not fetch historical filings page for {label}: {e}")
                continue
            filings.extend(
                parse_filing_list(page_data, cik, label, start_year, end_year, self.cutoff)
            )

        filings.sort(key=lambda f: f.filing_date)
        unique = list({f.accession_number: f for f in filings}.values())

        logger.info(f"Found {len(unique)} filings for {label} ({start_year}-{end_year})")
        return FilerFilings(cik=cik, filer_name=filer_name, filings=unique)

    def fetch_documents(self, filing: Filing) -> FilingDocuments:
        """
        Download and parse both XML documents of a filing.

        Raises:
            StructuralParseError: If the index page lacks either document or
                a document is not well-formed XML.
            IngestionError: On network failure after retries.
        """
        index_url = filing.filing_url or build_index_url(filing.cik, filing.accession_number)
        html = self.sec_api.get_filing_index(index_url)
        links = find_xml_documents(html, filing.accession_number)

        primary_xml = self.sec_api.get_xml_document(links.primary_doc_url, referer=index_url)
        info_table_xml = self.sec_api.get_xml_document(links.info_table_url, referer=index_url)

        return FilingDocuments(
            primary=parse_xml(primary_xml, source=links.primary_doc_url),
            info_table=parse_xml(info_table_xml, source=links.info_table_url),
            primary_url=links.primary_doc_url,
            info_table_url=links.info_table_url,
        )
