"""
overtime_engine.py — Overtime Analysis Engine

Turns ``(entries, reference data, date range)`` into per-user, per-day
analysis records and aggregated totals.

Per user and per day, in order:
  1. DayContextBuilder       — base / effective capacity, holiday, time-off
  2. split_day               — chronological tail attribution of overtime
  3. distribute_tiers        — tier-1 / tier-2 split (enableTieredOT)
  4. rate_engine             — earned / cost / profit amounts per entry
  5. UserAccumulator         — folds entries and days into totals

The engine is synchronous, stateless across calls and never mutates its
inputs.  Malformed per-entry data degrades to zero; only structurally
invalid top-level input raises ``AnalysisInputError``.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from otplus.config import (
    CLASS_BREAK,
    CLASS_PTO,
    OVERTIME_BASIS_WEEKLY,
    TAG_BREAK,
    TAG_HOLIDAY,
    TAG_OFF_DAY,
    TAG_TIME_OFF,
    UNKNOWN_USER_ID,
    UNKNOWN_USER_NAME,
)
from otplus.models.analysis_models import (
    AnalysisInputError,
    AnalyzedEntry,
    DayContext,
    DayMeta,
    DayRecord,
    EntryAnalysis,
    ReferenceData,
    UserAnalysisResult,
    UserTotals,
)
from otplus.services.day_context import DayContextBuilder
from otplus.services.entry_classifier import (
    classify,
    entry_date_key,
    entry_duration_hours,
    entry_start,
    iter_date_range,
    parse_date_key,
    week_key,
    weekday_key,
)
from otplus.services.override_resolver import OverrideResolver
from otplus.services.perf_monitor import timed, tracker
from otplus.services.rate_engine import compute_all_amounts, is_billable, resolve_entry_rates
from otplus.services.tail_attribution import (
    SplitItem,
    distribute_tiers,
    split_day,
)

logger = logging.getLogger("otplus-engine")

DateBounds = Tuple[Optional[date], Optional[date]]


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def normalize_entries(entries: Any) -> List[Mapping[str, Any]]:
    """Return the entry mappings in ``entries``; None elements are skipped."""
    if entries is None:
        return []
    if isinstance(entries, (str, bytes, Mapping)) or not isinstance(entries, Iterable):
        raise AnalysisInputError(
            f"entries must be a list of time entries, got {type(entries).__name__}"
        )
    return [e for e in entries if isinstance(e, Mapping)]


def _parse_bound(value: Any, name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    parsed = parse_date_key(value)
    if parsed is None:
        raise AnalysisInputError(f"dateRange.{name} is not a valid date: {value!r}")
    return parsed


def parse_date_range(date_range: Any) -> DateBounds:
    """Accept ``{"start", "end"}``, a ``(start, end)`` pair or None."""
    if date_range is None:
        return None, None
    if isinstance(date_range, Mapping):
        start, end = date_range.get("start"), date_range.get("end")
    elif isinstance(date_range, (list, tuple)) and len(date_range) == 2:
        start, end = date_range
    else:
        raise AnalysisInputError(
            f"dateRange must be {{start, end}} or a (start, end) pair, got {date_range!r}"
        )
    return _parse_bound(start, "start"), _parse_bound(end, "end")


# ---------------------------------------------------------------------------
# Per-user accumulation
# ---------------------------------------------------------------------------

@dataclass
class UserAccumulator:
    """Per-user state threaded through the day fold."""
    user_id: str
    user_name: str
    days: Dict[str, DayRecord] = field(default_factory=dict)
    totals: UserTotals = field(default_factory=UserTotals)
    week_hours: Dict[str, float] = field(default_factory=dict)

    def add_entry(self, item: AnalyzedEntry) -> None:
        a = item.analysis
        t = self.totals
        t.total += item.duration
        t.regular += a.regular
        t.overtime += a.overtime
        t.tier1 += a.tier1
        t.tier2 += a.tier2
        if a.is_break:
            t.breaks += item.duration
        if a.classification == CLASS_PTO:
            t.pto_entry_hours += item.duration

        if a.is_billable:
            t.billable_worked += a.regular
            t.billable_ot += a.overtime
        else:
            t.non_billable_worked += a.regular
            t.non_billable_ot += a.overtime

        primary = a.primary_amounts
        earned, cost, profit = a.amounts["earned"], a.amounts["cost"], a.amounts["profit"]
        t.amount += primary.total_amount
        t.amount_base += primary.base_amount
        t.amount_earned += earned.total_amount
        t.amount_cost += cost.total_amount
        t.amount_profit += profit.total_amount

        t.ot_premium += primary.ot_premium
        t.ot_premium_earned += earned.ot_premium
        t.ot_premium_cost += cost.ot_premium
        t.ot_premium_profit += profit.ot_premium

        t.tier2_premium += primary.tier2_premium
        t.tier2_premium_earned += earned.tier2_premium
        t.tier2_premium_cost += cost.tier2_premium
        t.tier2_premium_profit += profit.tier2_premium

    def add_day(self, ctx: DayContext) -> None:
        t = self.totals
        t.expected_capacity += ctx.effective_capacity
        if ctx.is_holiday:
            t.holiday_count += 1
            t.holiday_hours += ctx.base_capacity
        if ctx.is_time_off:
            t.time_off_count += 1
            t.time_off_hours += ctx.time_off_hours

    def result(self) -> UserAnalysisResult:
        return UserAnalysisResult(
            user_id=self.user_id,
            user_name=self.user_name,
            days=dict(sorted(self.days.items())),
            totals=self.totals.rounded(),
        )


# ---------------------------------------------------------------------------
# OvertimeEngine
# ---------------------------------------------------------------------------

class OvertimeEngine:
    """
    Overtime analysis over a batch of time entries.

    The instance carries no state between calls; one engine may serve many
    concurrent ``analyze`` invocations.
    """

    @timed
    def analyze(
        self,
        entries: Any,
        reference_data: Any = None,
        date_range: Any = None,
    ) -> List[UserAnalysisResult]:
        """
        Analyze ``entries`` against ``reference_data`` within ``date_range``.

        ``reference_data`` may be a ReferenceData or a plain mapping with the
        wire key names.  With a full ``date_range`` every day in it is
        iterated; with an absent or partial range only the days on which a
        user has entries are (a bound that is present still filters them).

        Returns one UserAnalysisResult per roster user, sorted by name.
        """
        start_time = time.perf_counter()
        try:
            rows = normalize_entries(entries)
            reference = ReferenceData.from_mapping(reference_data)
            start, end = parse_date_range(date_range)
        except AnalysisInputError:
            tracker.record_error("engine")
            raise

        if start is None and end is None and not rows:
            return []

        by_user = self._group_entries(rows)
        roster = self._build_roster(reference, rows)
        resolver = OverrideResolver(
            reference.overrides, reference.calc_params, reference.config, reference.profiles,
        )
        contexts = DayContextBuilder(reference, resolver)

        results: List[UserAnalysisResult] = []
        for user_id, user_name in roster.items():
            user_days = by_user.get(user_id, {})
            acc = UserAccumulator(user_id=user_id, user_name=user_name)
            for date_key in self._iter_days(user_days, start, end):
                self._fold_day(acc, date_key, user_days.get(date_key, []), reference, resolver, contexts)
            results.append(acc.result())

        results.sort(key=lambda r: (r.user_name.lower(), r.user_id))

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        tracker.record_run(duration_ms, len(rows), len(results))
        logger.info(
            f"Analyzed {len(rows)} entries for {len(results)} users in {duration_ms}ms",
            extra={"entry_count": len(rows), "user_count": len(results), "duration_ms": duration_ms},
        )
        return results

    # -----------------------------------------------------------------------
    # Grouping
    # -----------------------------------------------------------------------

    @staticmethod
    def _user_id(entry: Mapping[str, Any]) -> str:
        raw = entry.get("userId")
        return UNKNOWN_USER_ID if raw is None or raw == "" else str(raw)

    def _group_entries(
        self, rows: Sequence[Mapping[str, Any]]
    ) -> Dict[str, Dict[str, List[Mapping[str, Any]]]]:
        grouped: Dict[str, Dict[str, List[Mapping[str, Any]]]] = {}
        skipped = 0
        for entry in rows:
            date_key = entry_date_key(entry)
            if date_key is None:
                skipped += 1
                continue
            grouped.setdefault(self._user_id(entry), {}).setdefault(date_key, []).append(entry)
        if skipped:
            logger.debug(f"Skipped {skipped} entries without a parseable start")
        return grouped

    def _build_roster(
        self, reference: ReferenceData, rows: Sequence[Mapping[str, Any]]
    ) -> Dict[str, str]:
        """userId -> userName for supplied users, entry users and reference-map users."""
        roster: Dict[str, str] = {}
        for user in reference.users:
            roster[str(user["id"])] = str(user.get("name") or UNKNOWN_USER_NAME)
        for entry in rows:
            user_id = self._user_id(entry)
            if user_id not in roster:
                roster[user_id] = str(entry.get("userName") or UNKNOWN_USER_NAME)
        for mapping in (reference.profiles, reference.holidays, reference.time_off, reference.overrides):
            for user_id in mapping:
                roster.setdefault(user_id, UNKNOWN_USER_NAME)
        return roster

    @staticmethod
    def _iter_days(
        user_days: Mapping[str, Any], start: Optional[date], end: Optional[date]
    ) -> Iterable[str]:
        if start is not None and end is not None:
            return iter_date_range(start, end)
        lower = start.isoformat() if start else None
        upper = end.isoformat() if end else None
        return [
            key for key in sorted(user_days)
            if (lower is None or key >= lower) and (upper is None or key <= upper)
        ]

    # -----------------------------------------------------------------------
    # Per-day fold
    # -----------------------------------------------------------------------

    def _pool_capacity(
        self, acc: UserAccumulator, ctx: DayContext, date_key: str, reference: ReferenceData
    ) -> float:
        if reference.config.overtime_basis != OVERTIME_BASIS_WEEKLY:
            return ctx.effective_capacity
        if ctx.is_holiday or ctx.is_non_working:
            return 0.0
        used = acc.week_hours.get(week_key(date_key) or "", 0.0)
        return max(0.0, reference.calc_params.weekly_threshold - used)

    def _fold_day(
        self,
        acc: UserAccumulator,
        date_key: str,
        day_entries: List[Mapping[str, Any]],
        reference: ReferenceData,
        resolver: OverrideResolver,
        contexts: DayContextBuilder,
    ) -> None:
        ctx = contexts.build(acc.user_id, date_key, day_entries)
        acc.add_day(ctx)
        if not day_entries and not ctx.has_capacity_event:
            return

        config = reference.config
        fields = resolver.resolve_all(acc.user_id, date_key, weekday_key(date_key))
        multiplier = fields["multiplier"]
        tier2_multiplier = fields["tier2Multiplier"]

        items = []
        for entry in day_entries:
            start = entry_start(entry)
            duration = entry_duration_hours(entry) if start is not None else 0.0
            items.append(SplitItem(start, duration, pooled=classify(entry) != CLASS_PTO))

        splits = split_day(items, self._pool_capacity(acc, ctx, date_key, reference))
        if config.overtime_basis == OVERTIME_BASIS_WEEKLY:
            week = week_key(date_key) or ""
            pooled = sum(item.duration for item in items if item.pooled)
            acc.week_hours[week] = acc.week_hours.get(week, 0.0) + pooled

        overtimes = [ot for _, ot in splits]
        if config.enable_tiered_ot:
            tiers = distribute_tiers(items, overtimes, fields["tier2Threshold"])
        else:
            tiers = [(ot, 0.0) for ot in overtimes]

        record = DayRecord(date=date_key, meta=DayMeta.from_context(ctx))
        # Records keep input order; only allocation is chronological
        for index, (entry, item) in enumerate(zip(day_entries, items)):
            regular, overtime = splits[index]
            tier1, tier2 = tiers[index]
            classification = classify(entry)
            rates = resolve_entry_rates(entry, item.duration)

            tags = set()
            if ctx.is_holiday:
                tags.add(TAG_HOLIDAY)
            if ctx.is_non_working:
                tags.add(TAG_OFF_DAY)
            if ctx.is_time_off:
                tags.add(TAG_TIME_OFF)
            if classification == CLASS_BREAK:
                tags.add(TAG_BREAK)

            analysis = EntryAnalysis(
                regular=regular,
                overtime=overtime,
                tier1=tier1,
                tier2=tier2,
                is_billable=is_billable(entry),
                is_break=classification == CLASS_BREAK,
                classification=classification,
                multiplier=multiplier,
                tier2_multiplier=tier2_multiplier,
                amounts=compute_all_amounts(
                    rates, regular, overtime, tier1, tier2, multiplier, tier2_multiplier,
                ),
                primary=config.amount_display,
                tags=tags,
            )
            analyzed = AnalyzedEntry(entry=entry, analysis=analysis, duration=item.duration)
            record.entries.append(analyzed)
            acc.add_entry(analyzed)

        acc.days[date_key] = record


_default_engine = OvertimeEngine()


def analyze(
    entries: Any,
    reference_data: Any = None,
    date_range: Any = None,
) -> List[UserAnalysisResult]:
    """Module-level convenience wrapper around ``OvertimeEngine.analyze``."""
    return _default_engine.analyze(entries, reference_data, date_range)
