"""
Locates the XML documents of a 13F filing on its EDGAR index page.

The index page has no machine-readable contract. Rows are matched on their
description and type cells and on the link's file name, never on a fixed
column position. XSLT-rendered copies (paths containing ``xsl``) are HTML
views of the same data and are skipped.
"""

import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup, Tag

from ..core.exceptions import StructuralParseError
from ..utils.logger import get_logger

logger = get_logger("thirteenf.parsers.index_parser")

SEC_BASE_URL = "https://www.sec.gov"

PRIMARY_DESC_HINTS = ("primary document",)
PRIMARY_FILENAMES = ("primary_doc.xml", "form13fhr.xml")

INFO_TABLE_DESC_HINTS = ("information table", "infotable", "13f holdings report")
INFO_TABLE_FILENAME_HINTS = ("infotable", "informationtable", "table.xml")

_NUMERIC_XML_RE = re.compile(r"^[0-9-]+\.xml$")


@dataclass
class IndexLinks:
    """Absolute URLs of the two XML documents of a filing."""
    primary_doc_url: str
    info_table_url: str


@dataclass
class _XmlRow:
    url: str
    filename: str
    description: str
    doc_type: str


def absolute_url(href: str, base_url: str = SEC_BASE_URL) -> str:
    """Prefix site-relative links with the SEC host."""
    if href.startswith("http"):
        return href
    if not href.startswith("/"):
        href = "/" + href
    return f"{base_url}{href}"


def _is_xsl(href: str) -> bool:
    return "xsl" in href.lower()


def _collect_rows(soup: BeautifulSoup, base_url: str) -> list[_XmlRow]:
    rows = []
    for tr in soup.find_all("tr"):
        link = tr.find("a", href=True)
        if not isinstance(link, Tag):
            continue
        href = link["href"].strip()
        if not href.lower().endswith(".xml") or _is_xsl(href):
            continue

        cells = [td.get_text(" ", strip=True).lower() for td in tr.find_all("td")]
        rows.append(_XmlRow(
            url=absolute_url(href, base_url),
            filename=href.rsplit("/", 1)[-1].lower(),
            # Description is the second cell and Type the fourth on EDGAR
            # index pages; all cells are searched in case the layout shifts.
            description=" ".join(cells),
            doc_type=cells[3] if len(cells) > 3 else "",
        ))
    return rows


def _looks_like_info_table(row: _XmlRow) -> bool:
    if any(hint in row.description for hint in INFO_TABLE_DESC_HINTS):
        return True
    if "information" in row.doc_type:
        return True
    return any(hint in row.filename for hint in INFO_TABLE_FILENAME_HINTS)


def _looks_like_primary(row: _XmlRow) -> bool:
    if any(hint in row.description for hint in PRIMARY_DESC_HINTS):
        return True
    if "13f-hr" in row.doc_type:
        return True
    if "primary" in row.filename or row.filename in PRIMARY_FILENAMES:
        return True
    return bool(_NUMERIC_XML_RE.match(row.filename))


def find_xml_documents(
    html: str,
    accession_number: Optional[str] = None,
    base_url: str = SEC_BASE_URL,
) -> IndexLinks:
    """
    Find the primary document and information table links.

    The information table is matched first so a row that mentions both
    (e.g. a ``13F-HR`` type column next to ``infotable.xml``) is not taken
    as the primary document. When only one XML row is left unmatched and
    the primary document is still missing, that row is used.

    Raises:
        StructuralParseError: If either document cannot be identified.
    """
    soup = BeautifulSoup(html, "lxml")
    rows = _collect_rows(soup, base_url)

    logger.debug(f"Found {len(rows)} non-XSL XML links in index for {accession_number}")

    info_table = next((r for r in rows if _looks_like_info_table(r)), None)
    remaining = [r for r in rows if r is not info_table]
    primary = next((r for r in remaining if _looks_like_primary(r)), None)

    if primary is None and info_table is not None and len(remaining) == 1:
        primary = remaining[0]

    if primary is None or info_table is None:
        raise StructuralParseError(
            "Missing XML components in filing index",
            context={
                "accession_number": accession_number,
                "primary_doc_found": primary is not None,
                "info_table_found": info_table is not None,
                "xml_links": [r.filename for r in rows],
            },
        )

    logger.debug(
        f"Index {accession_number}: primary={primary.filename}, "
        f"info_table={info_table.filename}"
    )
    return IndexLinks(primary_doc_url=primary.url, info_table_url=info_table.url)


def build_index_url(cik: str, accession_number: str, base_url: str = SEC_BASE_URL) -> str:
    """
    Build the EDGAR index page URL for a filing.

    Usage:
        build_index_url("0001785988", "0001785988-24-000003")
        # https://www.sec.gov/Archives/edgar/data/1785988/000178598824000003/0001785988-24-000003-index.htm
    """
    return (
        f"{base_url}/Archives/edgar/data/{int(cik)}/"
        f"{accession_number.replace('-', '')}/{accession_number}-index.htm"
    )
