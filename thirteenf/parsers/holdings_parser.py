"""
Holdings extraction and normalization for 13F information tables.

Filing agents produce a few different document shapes. Each known shape has
its own extractor, a pure function ``tree -> list of entries or None``;
extractors are tried in order and the first non-empty result wins.

Normalization turns raw entries into ``Holding`` records:
- Values filed before 2023-01-03 were reported in thousands and are scaled
  to dollars; later filings already report dollars.
- Entries without a CUSIP or with a non-positive value are dropped.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional

from ..core.exceptions import StructuralParseError
from ..core.models import Address, Holding, VotingAuthority
from ..utils.logger import get_logger
from .xml_tree import as_list, find_path

logger = get_logger("thirteenf.parsers.holdings_parser")

VALUE_SCALE_CHANGE_DATE = date(2023, 1, 3)

Extractor = Callable[[dict], Optional[list]]


# =============================================================================
# Extractors, one per known information-table shape
# =============================================================================

def extract_information_table(tree: dict) -> Optional[list]:
    """``<informationTable><infoTable>...</infoTable></informationTable>``"""
    return as_list(find_path(tree, "informationtable", "infotable")) or None


def extract_bare_info_table(tree: dict) -> Optional[list]:
    """A document whose root is ``<infoTable>`` (single entry or repeated)."""
    return as_list(tree.get("infotable")) or None


def extract_embedded_cover_page(tree: dict) -> Optional[list]:
    """Information table embedded in the primary document's cover page."""
    return as_list(find_path(
        tree, "edgarsubmission", "formdata", "coverpage", "informationtable", "infotable"
    )) or None


EXTRACTORS: list[Extractor] = [
    extract_information_table,
    extract_bare_info_table,
    extract_embedded_cover_page,
]


def extract_entries(tree: dict, extractors: Optional[list[Extractor]] = None) -> list[dict]:
    """
    Run extractors in order and return the first non-empty entry list.

    Raises:
        StructuralParseError: If no extractor recognizes the document.
    """
    for extractor in extractors or EXTRACTORS:
        entries = extractor(tree)
        if entries:
            logger.debug(f"{extractor.__name__} matched {len(entries)} entries")
            return [e for e in entries if isinstance(e, dict)]

    raise StructuralParseError(
        "Information table does not match any known layout",
        context={"root_keys": list(tree.keys()) if isinstance(tree, dict) else None},
    )


# =============================================================================
# Normalization
# =============================================================================

def _to_float(value: Any) -> float:
    if value is None or value == "" or isinstance(value, dict):
        return 0.0
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return 0.0


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _parse_filing_date(filing_date: Optional[date | datetime | str]) -> Optional[date]:
    if filing_date is None or filing_date == "":
        return None
    if isinstance(filing_date, datetime):
        return filing_date.date()
    if isinstance(filing_date, date):
        return filing_date
    return date.fromisoformat(str(filing_date)[:10])


def value_multiplier(
    filing_date: Optional[date | datetime | str],
    change_date: date = VALUE_SCALE_CHANGE_DATE,
) -> int:
    """
    Return 1000 for filings reported in thousands, else 1.

    A missing filing date is treated as the old format.
    """
    parsed = _parse_filing_date(filing_date)
    if parsed is None or parsed < change_date:
        return 1000
    return 1


def _shares(entry: dict) -> tuple[float, str]:
    amount = entry.get("shrsorprnamt")
    if isinstance(amount, dict):
        return _to_float(amount.get("sshprnamt")), _text(amount.get("sshprnamttype")) or "SH"
    if "sshprnamt" in entry:
        return _to_float(entry.get("sshprnamt")), _text(entry.get("sshprnamttype")) or "SH"
    return 0.0, "SH"


def _voting_authority(entry: dict) -> VotingAuthority:
    voting = entry.get("votingauthority")
    if not isinstance(voting, dict):
        return VotingAuthority()
    return VotingAuthority(
        sole=_to_float(voting.get("sole")),
        shared=_to_float(voting.get("shared")),
        none=_to_float(voting.get("none")),
    )


def normalize_entry(entry: dict, multiplier: int) -> Optional[Holding]:
    """Convert one raw entry; returns None when the entry must be dropped."""
    cusip = (_text(entry.get("cusip")) or "").upper()
    value = _to_float(entry.get("value")) * multiplier

    if not cusip or value <= 0:
        return None

    shares, share_type = _shares(entry)
    return Holding(
        cusip=cusip,
        issuer_name=_text(entry.get("nameofissuer")) or _text(entry.get("issuername")) or "",
        title_of_class=_text(entry.get("titleofclass")) or _text(entry.get("classtitle")),
        value=value,
        shares=shares,
        share_type=share_type,
        investment_discretion=_text(entry.get("investmentdiscretion")),
        voting_authority=_voting_authority(entry),
    )


def normalize_holdings(
    info_table: dict,
    filing_date: Optional[date | datetime | str],
    change_date: date = VALUE_SCALE_CHANGE_DATE,
) -> list[Holding]:
    """
    Extract and normalize every holding of an information table.

    Args:
        info_table: Tree produced by ``parse_xml``.
        filing_date: Date the filing was submitted.
        change_date: First date values were reported in dollars.

    Returns:
        Holdings in document order, with invalid entries dropped.
    """
    entries = extract_entries(info_table)
    multiplier = value_multiplier(filing_date, change_date)

    holdings = []
    dropped = 0
    for entry in entries:
        holding = normalize_entry(entry, multiplier)
        if holding is None:
            dropped += 1
            continue
        holdings.append(holding)

    logger.debug(
        f"Normalized {len(holdings)} holdings (dropped {dropped}, multiplier {multiplier})"
    )
    return holdings


# =============================================================================
# Primary document (cover page)
# =============================================================================

@dataclass
class FilingMetadata:
    """Filer and period details from the primary document."""
    filer_name: Optional[str] = None
    address: Optional[Address] = None
    period_of_report: Optional[date] = None


def parse_report_period(value: Optional[str]) -> Optional[date]:
    """Parse the cover page period (MM-DD-YYYY), tolerating ISO dates."""
    if not value:
        return None
    for fmt in ("%m-%d-%Y", "%Y-%m-%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    logger.warning(f"Unrecognized report period format: {value!r}")
    return None


def extract_filing_metadata(primary: dict) -> FilingMetadata:
    """Read manager name, address and report period from the cover page."""
    form_data = find_path(primary, "edgarsubmission", "formdata") or {}
    cover = find_path(form_data, "coverpage") or {}
    manager = find_path(cover, "filingmanager") or {}
    address_node = find_path(manager, "address") or {}

    address = None
    if isinstance(address_node, dict):
        address = Address(
            street1=_text(address_node.get("street1")),
            city=_text(address_node.get("city")),
            state=_text(address_node.get("stateorcountry")),
            zip=_text(address_node.get("zipcode")),
        )
        if address.is_empty():
            address = None

    period = _text(cover.get("reportcalendarorquarter")) if isinstance(cover, dict) else None
    if period is None:
        period = _text(find_path(primary, "edgarsubmission", "headerdata", "filerinfo", "periodofreport"))

    return FilingMetadata(
        filer_name=_text(manager.get("name")) if isinstance(manager, dict) else None,
        address=address,
        period_of_report=parse_report_period(period),
    )
