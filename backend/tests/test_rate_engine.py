"""
test_rate_engine.py — Unit tests for rate resolution and amount breakdowns.

Tests cover:
  - coerce_rate: numbers, numeric strings, {amount} mappings, garbage
  - resolve_entry_rates: field priority, positive-first fallback, amounts
    fallback, non-billable earned = 0, profit = earned - cost
  - compute_amounts: base, OT premium, tier-2 premium, non-finite zeroing
"""

import math

import pytest

from otplus.services.rate_engine import (
    coerce_rate,
    compute_all_amounts,
    compute_amounts,
    resolve_entry_rates,
    sum_amounts,
)


# ===========================================================================
# Class 1: Rate coercion and resolution
# ===========================================================================

class TestRates:

    @pytest.mark.parametrize("raw,expected", [
        (50, 50.0),
        (12.5, 12.5),
        ("40", 40.0),
        ({"amount": 75, "currency": "USD"}, 75.0),
        ({"amount": "30.5"}, 30.5),
    ])
    def test_coerce_accepted_shapes(self, raw, expected):
        assert coerce_rate(raw) == expected

    @pytest.mark.parametrize("raw", [None, "abc", math.nan, math.inf, {}, {"amount": None}, [50], True])
    def test_coerce_rejects_garbage(self, raw):
        assert coerce_rate(raw) is None

    def test_earned_rate_priority(self):
        """earnedRate beats rate beats hourlyRate."""
        entry = {"earnedRate": 60, "rate": 55, "hourlyRate": {"amount": 50}}
        assert resolve_entry_rates(entry, 8.0)["earned"] == 60.0
        entry = {"rate": 55, "hourlyRate": {"amount": 50}}
        assert resolve_entry_rates(entry, 8.0)["earned"] == 55.0

    def test_zero_candidate_does_not_mask_positive(self):
        """A 0 earnedRate falls through to a positive hourlyRate."""
        entry = {"earnedRate": 0, "hourlyRate": {"amount": 50}}
        assert resolve_entry_rates(entry, 8.0)["earned"] == 50.0

    def test_rate_invariant_under_zero_and_absent_reordering(self):
        a = {"earnedRate": None, "rate": 0, "hourlyRate": 42}
        b = {"earnedRate": 0, "rate": None, "hourlyRate": 42}
        c = {"hourlyRate": 42}
        assert resolve_entry_rates(a, 1.0)["earned"] == 42.0
        assert resolve_entry_rates(b, 1.0)["earned"] == 42.0
        assert resolve_entry_rates(c, 1.0)["earned"] == 42.0

    def test_all_zero_is_zero(self):
        assert resolve_entry_rates({"earnedRate": 0, "hourlyRate": 0}, 8.0)["earned"] == 0.0

    def test_non_billable_earned_is_zero_but_cost_kept(self):
        entry = {"billable": False, "hourlyRate": 50, "costRate": 30}
        rates = resolve_entry_rates(entry, 8.0)
        assert rates["earned"] == 0.0
        assert rates["cost"] == 30.0
        assert rates["profit"] == -30.0

    def test_missing_billable_counts_as_billable(self):
        assert resolve_entry_rates({"hourlyRate": 50, "billable": None}, 8.0)["earned"] == 50.0

    def test_profit_is_earned_minus_cost(self):
        rates = resolve_entry_rates({"hourlyRate": 50, "costHourlyRate": {"amount": 35}}, 8.0)
        assert rates == {"earned": 50.0, "cost": 35.0, "profit": 15.0}


# ===========================================================================
# Class 2: amounts[] fallback
# ===========================================================================

class TestAmountsFallback:

    def test_sum_amounts_mixed_keys(self):
        amounts = [
            {"type": "EARNED", "value": 100},
            {"amountType": "earned", "amount": 20},
            {"type": "COST", "value": 80},
            {"type": "EARNED", "value": "NaN"},
            "garbage",
        ]
        assert sum_amounts(amounts, "EARNED") == 120.0
        assert sum_amounts(amounts, "COST") == 80.0
        assert sum_amounts(None, "EARNED") == 0.0

    def test_rates_derived_from_amounts(self):
        """EARNED 120 / 8 h = 15/h; COST 80 / 8 h = 10/h; profit 5/h."""
        entry = {"amounts": [{"type": "EARNED", "value": 120}, {"type": "COST", "value": 80}]}
        rates = resolve_entry_rates(entry, 8.0)
        assert rates == {"earned": 15.0, "cost": 10.0, "profit": 5.0}

    def test_direct_rate_beats_amounts(self):
        entry = {"hourlyRate": 50, "amounts": [{"type": "EARNED", "value": 120}]}
        assert resolve_entry_rates(entry, 8.0)["earned"] == 50.0

    def test_zero_duration_no_amount_rate(self):
        entry = {"amounts": [{"type": "EARNED", "value": 120}]}
        assert resolve_entry_rates(entry, 0.0)["earned"] == 0.0

    def test_non_billable_ignores_earned_amounts(self):
        entry = {"billable": False, "amounts": [{"type": "EARNED", "value": 120}]}
        assert resolve_entry_rates(entry, 8.0)["earned"] == 0.0


# ===========================================================================
# Class 3: Amount breakdowns
# ===========================================================================

class TestAmounts:

    def test_regular_only(self):
        """8 h × $50 = $400, no premium."""
        b = compute_amounts(50.0, 8.0, 0.0, 0.0, 0.0, 1.5, 2.0)
        assert b.regular_amount == 400.0
        assert b.total_amount == 400.0
        assert b.ot_premium == 0.0

    def test_overtime_premium(self):
        """
        8 regular + 2 OT at $50, ×1.5:
        base = 10 × 50 = 500; premium = 2 × 50 × 0.5 = 50; total 550.
        """
        b = compute_amounts(50.0, 8.0, 2.0, 2.0, 0.0, 1.5, 2.0)
        assert b.overtime_amount_base == 100.0
        assert b.base_amount == 500.0
        assert b.ot_premium == 50.0
        assert b.total_amount == 550.0
        assert b.overtime_rate == 75.0

    def test_tier2_premium(self):
        """
        3 OT h: tier1 = 1, tier2 = 2 at $40, ×1.5 / ×2.0:
        premium1 = 1 × 40 × 0.5 = 20; premium2 = 2 × 40 × 1.0 = 80.
        total = 3 × 40 + 100 = 220.
        """
        b = compute_amounts(40.0, 0.0, 3.0, 1.0, 2.0, 1.5, 2.0)
        assert b.ot_premium == 20.0
        assert b.tier2_premium == 80.0
        assert b.total_amount == 220.0

    def test_non_finite_products_zeroed(self):
        b = compute_amounts(math.inf, 0.0, 0.0, 0.0, 0.0, 1.5, 2.0)
        assert b.regular_amount == 0.0
        assert b.total_amount == 0.0

    def test_all_kinds_computed(self):
        amounts = compute_all_amounts(
            {"earned": 50.0, "cost": 30.0, "profit": 20.0}, 8.0, 2.0, 2.0, 0.0, 1.5, 2.0,
        )
        assert set(amounts) == {"earned", "cost", "profit"}
        assert amounts["earned"].total_amount == 550.0
        assert amounts["cost"].total_amount == 330.0
        assert amounts["profit"].total_amount == 220.0
