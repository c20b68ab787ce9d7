"""
Quarter-over-quarter portfolio comparison.

Positions are matched by CUSIP and classified by the change in share count
(a price move alone leaves a position UNCHANGED). Positions present last
quarter and absent now are emitted as EXITED so the quarter's document
records the sale.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from ..core.models import Holding, PortfolioChanges

NEW = "NEW"
INCREASED = "INCREASED"
DECREASED = "DECREASED"
UNCHANGED = "UNCHANGED"
EXITED = "EXITED"


@dataclass
class DiffResult:
    enriched_holdings: list[Holding] = field(default_factory=list)
    stats: PortfolioChanges = field(default_factory=PortfolioChanges)


def _pct_change(change: float, previous: float) -> Optional[float]:
    if previous <= 0:
        return None
    return change / previous * 100


def calculate_diff(
    current: list[Holding],
    previous: Optional[list[Holding]],
) -> DiffResult:
    """
    Compare a quarter's holdings against the preceding quarter.

    Args:
        current: Deduplicated holdings of the quarter being processed.
        previous: Holdings of the immediately preceding persisted quarter,
            or None if this is the filer's first quarter. Rows that were
            already EXITED last quarter are not positions and are ignored.

    Returns:
        Current holdings with change fields set, followed by EXITED rows,
        plus aggregate statistics. ``percent_of_portfolio`` is relative to
        the current quarter's total value.
    """
    total_value = sum(h.value for h in current)

    prev_map: dict[str, Holding] = {}
    for holding in previous or []:
        if holding.change_type == EXITED:
            continue
        prev_map[holding.cusip] = holding

    stats = PortfolioChanges()
    enriched: list[Holding] = []

    for holding in current:
        prev = prev_map.pop(holding.cusip, None)
        percent = holding.value / total_value * 100 if total_value > 0 else 0.0

        if prev is None:
            stats.new_positions += 1
            enriched.append(replace(
                holding,
                percent_of_portfolio=percent,
                change_type=NEW,
                value_change=holding.value,
                value_change_pct=None,
                shares_change=holding.shares,
                shares_change_pct=None,
            ))
            continue

        value_change = holding.value - prev.value
        shares_change = holding.shares - prev.shares

        if shares_change > 0:
            change_type = INCREASED
            stats.increased_positions += 1
        elif shares_change < 0:
            change_type = DECREASED
            stats.decreased_positions += 1
        else:
            change_type = UNCHANGED
            stats.unchanged_positions += 1

        enriched.append(replace(
            holding,
            percent_of_portfolio=percent,
            change_type=change_type,
            value_change=value_change,
            value_change_pct=_pct_change(value_change, prev.value),
            shares_change=shares_change,
            shares_change_pct=_pct_change(shares_change, prev.shares),
        ))

    for prev in prev_map.values():
        stats.exited_positions += 1
        enriched.append(replace(
            prev,
            value=0.0,
            shares=0.0,
            percent_of_portfolio=0.0,
            change_type=EXITED,
            value_change=-prev.value,
            value_change_pct=-100.0,
            shares_change=-prev.shares,
            shares_change_pct=-100.0,
        ))

    if previous is not None:
        prev_total = sum(h.value for h in previous)
        stats.total_value_change = total_value - prev_total
        stats.total_value_change_pct = (
            (total_value - prev_total) / prev_total * 100 if prev_total > 0 else 0.0
        )

    return DiffResult(enriched_holdings=enriched, stats=stats)
