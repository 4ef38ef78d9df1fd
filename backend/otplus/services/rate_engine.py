"""
rate_engine.py — Hourly rate resolution and per-entry amount breakdowns.

Three parallel amount kinds are computed for every entry:
  earned  — billable revenue (0 for non-billable entries)
  cost    — internal cost, tracked regardless of billability
  profit  — earned - cost

Rates are currency units per hour.  Candidates may be numbers, numeric
strings or ``{"amount": ...}`` mappings.  When no direct rate field is set,
the rate is derived from the entry's ``amounts`` list (sum of the matching
type divided by the entry duration).
"""
from typing import Any, Dict, Iterable, Mapping, Optional

from otplus.config import (
    AMOUNT_DISPLAY_MODES,
    AMOUNT_TYPE_COST,
    AMOUNT_TYPE_EARNED,
    COST_RATE_FIELDS,
    EARNED_RATE_FIELDS,
)
from otplus.models.analysis_models import AmountBreakdown
from otplus.services.numeric import finite_product, to_finite

RATE_FIELDS: Dict[str, tuple] = {
    "earned": EARNED_RATE_FIELDS,
    "cost": COST_RATE_FIELDS,
}
AMOUNT_TYPES: Dict[str, str] = {
    "earned": AMOUNT_TYPE_EARNED,
    "cost": AMOUNT_TYPE_COST,
}


def coerce_rate(value: Any) -> Optional[float]:
    """Number, numeric string or ``{amount}`` mapping -> finite float, else None."""
    if isinstance(value, Mapping):
        value = value.get("amount")
    return to_finite(value)


def is_billable(entry: Mapping[str, Any]) -> bool:
    # Only an explicit False marks an entry non-billable
    return entry.get("billable") is not False


def sum_amounts(amounts: Any, amount_type: str) -> float:
    """Sum the ``amounts`` list items whose type matches ``amount_type``."""
    if not isinstance(amounts, (list, tuple)):
        return 0.0
    target = amount_type.upper()
    total = 0.0
    for item in amounts:
        if not isinstance(item, Mapping):
            continue
        kind = str(item.get("type") or item.get("amountType") or "").upper()
        if kind != target:
            continue
        raw = item.get("value")
        value = to_finite(raw if raw is not None else item.get("amount"))
        if value is not None:
            total += value
    return total


def rate_from_amounts(amounts: Any, amount_type: str, duration: float) -> float:
    if duration <= 0:
        return 0.0
    return sum_amounts(amounts, amount_type) / duration


def resolve_rate(entry: Mapping[str, Any], fields: Iterable[str], amount_type: str, duration: float) -> float:
    """
    Resolve one rate kind:

      1. first strictly positive direct field
      2. positive rate derived from ``amounts``
      3. first finite direct field (so an explicit 0 stays 0)
      4. 0
    """
    candidates = [coerce_rate(entry.get(name)) for name in fields]
    for candidate in candidates:
        if candidate is not None and candidate > 0:
            return candidate
    derived = rate_from_amounts(entry.get("amounts"), amount_type, duration)
    if derived > 0:
        return derived
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return 0.0


def resolve_entry_rates(entry: Mapping[str, Any], duration: float) -> Dict[str, float]:
    """Return ``{"earned", "cost", "profit"}`` hourly rates for an entry."""
    earned = 0.0
    if is_billable(entry):
        earned = resolve_rate(entry, RATE_FIELDS["earned"], AMOUNT_TYPES["earned"], duration)
    cost = resolve_rate(entry, RATE_FIELDS["cost"], AMOUNT_TYPES["cost"], duration)
    return {"earned": earned, "cost": cost, "profit": earned - cost}


def compute_amounts(
    rate: float,
    regular: float,
    overtime: float,
    tier1: float,
    tier2: float,
    multiplier: float,
    tier2_multiplier: float,
) -> AmountBreakdown:
    """
    Amount breakdown for one rate:

      regularAmount      = regular x rate
      overtimeAmountBase = overtime x rate
      otPremium          = tier1 x rate x (multiplier - 1)
      tier2Premium       = tier2 x rate x (tier2Multiplier - 1)
      totalAmount        = (regular + overtime) x rate + premiums
    """
    regular_amount = finite_product(regular, rate)
    overtime_base = finite_product(overtime, rate)
    ot_premium = finite_product(tier1, rate, multiplier - 1)
    tier2_premium = finite_product(tier2, rate, tier2_multiplier - 1)
    base_amount = regular_amount + overtime_base
    return AmountBreakdown(
        rate=rate,
        regular_amount=regular_amount,
        overtime_amount_base=overtime_base,
        base_amount=base_amount,
        ot_premium=ot_premium,
        tier2_premium=tier2_premium,
        total_amount=base_amount + ot_premium + tier2_premium,
        overtime_rate=finite_product(rate, multiplier),
    )


def compute_all_amounts(
    rates: Mapping[str, float],
    regular: float,
    overtime: float,
    tier1: float,
    tier2: float,
    multiplier: float,
    tier2_multiplier: float,
) -> Dict[str, AmountBreakdown]:
    return {
        kind: compute_amounts(
            rates.get(kind, 0.0), regular, overtime, tier1, tier2, multiplier, tier2_multiplier,
        )
        for kind in AMOUNT_DISPLAY_MODES
    }
