"""
Same-CUSIP merging within a single filing.

Managers often report one security on several lines (per sub-adviser or
per investment-discretion bucket). The pipeline works with one position per
CUSIP, so those lines are summed here.
"""

import re
from dataclasses import replace

from ..core.models import Holding, VotingAuthority
from ..utils.logger import get_logger

logger = get_logger("thirteenf.processing.deduplication")

CUSIP_RE = re.compile(r"^[A-Z0-9]{9}$")


def normalize_cusip(cusip: str) -> str:
    return (cusip or "").strip().upper()


def is_valid_cusip(cusip: str) -> bool:
    """True for a nine-character alphanumeric CUSIP (after normalization)."""
    return bool(CUSIP_RE.match(normalize_cusip(cusip)))


def deduplicate_holdings(holdings: list[Holding]) -> list[Holding]:
    """
    Merge holdings that share a normalized CUSIP.

    Value, shares and each voting-authority field are summed. The first
    occurrence supplies the descriptive fields, and ``original_indices``
    records which input lines were merged. Input records are not mutated.

    Returns:
        One holding per CUSIP, in order of first appearance.
    """
    merged: dict[str, Holding] = {}

    for index, holding in enumerate(holdings):
        cusip = normalize_cusip(holding.cusip)
        existing = merged.get(cusip)

        if existing is None:
            voting = holding.voting_authority or VotingAuthority()
            merged[cusip] = replace(
                holding,
                cusip=cusip,
                voting_authority=replace(voting),
                duplicate_count=1,
                original_indices=[index],
            )
            continue

        existing.value += holding.value
        existing.shares += holding.shares
        existing.voting_authority.add(holding.voting_authority)
        existing.duplicate_count += 1
        existing.original_indices.append(index)

    result = list(merged.values())
    if len(result) < len(holdings):
        logger.debug(f"Deduplicated {len(holdings)} holdings into {len(result)} unique CUSIPs")
    return result


def unique_tickers(holdings: list[Holding]) -> list[str]:
    """Distinct upper-case tickers, in order of first appearance."""
    seen: dict[str, None] = {}
    for holding in holdings:
        if holding.ticker:
            seen.setdefault(holding.ticker.strip().upper(), None)
    return list(seen)
