"""
tail_attribution.py — Chronological overtime attribution.

A day's capacity is filled by the earliest entries first; whatever does not
fit becomes overtime on the later entries ("tail attribution").  Tier-2
overtime is carved from the same chronological order: the tier-1 allowance
is consumed by the earliest overtime hours.

Example (capacity 8):
    09:00-13:00 (4h) -> regular 4, overtime 0
    14:00-19:00 (5h) -> regular 4, overtime 1
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class SplitItem:
    """One allocation candidate: its start, its duration and whether it pools."""
    start: Optional[datetime]
    duration: float
    pooled: bool = True


def allocation_order(items: Sequence[SplitItem]) -> List[int]:
    """
    Indices of ``items`` in allocation order.  Stable ascending by start;
    items without a parseable start sort last in input order.
    """
    dated = [i for i, item in enumerate(items) if item.start is not None]
    undated = [i for i, item in enumerate(items) if item.start is None]
    dated.sort(key=lambda i: items[i].start)
    return dated + undated


def split_day(items: Sequence[SplitItem], capacity: float) -> List[Tuple[float, float]]:
    """
    Split each item into ``(regular, overtime)``, returned in input order.

    Pooled items consume ``capacity`` chronologically.  Items without a start
    contribute 0 duration.  Non-pooled items (PTO) are all regular and never
    consume capacity.
    """
    capacity = max(0.0, capacity)
    result: List[Tuple[float, float]] = [(0.0, 0.0)] * len(items)
    accumulated = 0.0
    for index in allocation_order(items):
        item = items[index]
        duration = max(0.0, item.duration) if item.start is not None else 0.0
        if not item.pooled:
            result[index] = (duration, 0.0)
            continue
        regular = max(0.0, min(duration, capacity - accumulated))
        result[index] = (regular, duration - regular)
        accumulated += duration
    return result


def split_tiers(overtime: float, threshold: float) -> Tuple[float, float]:
    """(tier1, tier2) for ``overtime`` hours; negative thresholds clamp to 0."""
    overtime = max(0.0, overtime)
    threshold = max(0.0, threshold)
    tier1 = min(overtime, threshold)
    return tier1, max(0.0, overtime - threshold)


def distribute_tiers(
    items: Sequence[SplitItem],
    overtimes: Sequence[float],
    threshold: float,
) -> List[Tuple[float, float]]:
    """
    Distribute the tier-1 allowance over per-item overtime in allocation
    order.  Returns ``(tier1, tier2)`` per item in input order.
    """
    result: List[Tuple[float, float]] = [(0.0, 0.0)] * len(items)
    remaining = max(0.0, threshold)
    for index in allocation_order(items):
        tier1, tier2 = split_tiers(overtimes[index], remaining)
        remaining -= tier1
        result[index] = (tier1, tier2)
    return result
