"""13F filing parsers module."""

from .holdings_parser import (
    EXTRACTORS,
    FilingMetadata,
    extract_entries,
    extract_filing_metadata,
    normalize_holdings,
    value_multiplier,
)
from .index_parser import IndexLinks, build_index_url, find_xml_documents
from .xml_tree import as_list, find_path, parse_xml

__all__ = [
    "EXTRACTORS",
    "FilingMetadata",
    "IndexLinks",
    "as_list",
    "build_index_url",
    "extract_entries",
    "extract_filing_metadata",
    "find_path",
    "find_xml_documents",
    "normalize_holdings",
    "parse_xml",
    "value_multiplier",
]
