"""
analysis_models.py — Typed records consumed and produced by the overtime engine.

Inputs (ReferenceData, OvertimeConfig, CalcParams, OverrideSpec) are built from
plain mappings with ``from_mapping`` so callers can pass decoded JSON.  Outputs
(DayRecord, UserAnalysisResult and friends) serialize back to camelCase dicts
with ``to_dict`` for the worker and HTTP layers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from otplus.config import (
    AMOUNT_DISPLAY_MODES,
    DEFAULT_AMOUNT_DISPLAY,
    DEFAULT_DAILY_THRESHOLD,
    DEFAULT_OT_MULTIPLIER,
    DEFAULT_TIER2_MULTIPLIER,
    DEFAULT_TIER2_THRESHOLD,
    DEFAULT_WEEKLY_THRESHOLD,
    OVERRIDE_MODE_GLOBAL,
    OVERRIDE_MODE_PER_DAY,
    OVERRIDE_MODE_WEEKLY,
    OVERTIME_BASES,
    OVERTIME_BASIS_DAILY,
)
from otplus.services.numeric import round_hours, round_money, to_finite


class AnalysisInputError(ValueError):
    """Raised only for structurally invalid top-level input to the engine."""


def _require_mapping(value: Any, name: str) -> Mapping:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise AnalysisInputError(
            f"{name} must be a mapping, got {type(value).__name__}"
        )
    return value


def _sub_mapping(value: Any) -> Dict[str, Any]:
    # Malformed nested override levels are treated as empty
    return dict(value) if isinstance(value, Mapping) else {}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OvertimeConfig:
    use_profile_capacity: bool = False
    use_profile_working_days: bool = False
    apply_holidays: bool = False
    apply_time_off: bool = False
    enable_tiered_ot: bool = False
    overtime_basis: str = OVERTIME_BASIS_DAILY
    amount_display: str = DEFAULT_AMOUNT_DISPLAY

    @classmethod
    def from_mapping(cls, data: Any) -> "OvertimeConfig":
        data = _require_mapping(data, "config")
        basis = str(data.get("overtimeBasis") or OVERTIME_BASIS_DAILY).lower()
        display = str(data.get("amountDisplay") or DEFAULT_AMOUNT_DISPLAY).lower()
        return cls(
            use_profile_capacity=bool(data.get("useProfileCapacity", False)),
            use_profile_working_days=bool(data.get("useProfileWorkingDays", False)),
            apply_holidays=bool(data.get("applyHolidays", False)),
            apply_time_off=bool(data.get("applyTimeOff", False)),
            enable_tiered_ot=bool(data.get("enableTieredOT", False)),
            overtime_basis=basis if basis in OVERTIME_BASES else OVERTIME_BASIS_DAILY,
            amount_display=display if display in AMOUNT_DISPLAY_MODES else DEFAULT_AMOUNT_DISPLAY,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "useProfileCapacity": self.use_profile_capacity,
            "useProfileWorkingDays": self.use_profile_working_days,
            "applyHolidays": self.apply_holidays,
            "applyTimeOff": self.apply_time_off,
            "enableTieredOT": self.enable_tiered_ot,
            "overtimeBasis": self.overtime_basis,
            "amountDisplay": self.amount_display,
        }


@dataclass(frozen=True)
class CalcParams:
    """Workspace-level defaults; the lowest override precedence level."""
    daily_threshold: float = DEFAULT_DAILY_THRESHOLD
    weekly_threshold: float = DEFAULT_WEEKLY_THRESHOLD
    overtime_multiplier: float = DEFAULT_OT_MULTIPLIER
    tier2_threshold: float = DEFAULT_TIER2_THRESHOLD
    tier2_multiplier: float = DEFAULT_TIER2_MULTIPLIER

    @classmethod
    def from_mapping(cls, data: Any) -> "CalcParams":
        data = _require_mapping(data, "calcParams")

        def pick(key: str, default: float) -> float:
            value = to_finite(data.get(key))
            return default if value is None else value

        return cls(
            daily_threshold=pick("dailyThreshold", DEFAULT_DAILY_THRESHOLD),
            weekly_threshold=pick("weeklyThreshold", DEFAULT_WEEKLY_THRESHOLD),
            overtime_multiplier=pick("overtimeMultiplier", DEFAULT_OT_MULTIPLIER),
            tier2_threshold=pick("tier2ThresholdHours", DEFAULT_TIER2_THRESHOLD),
            tier2_multiplier=pick("tier2Multiplier", DEFAULT_TIER2_MULTIPLIER),
        )

    def default_for(self, field_name: str) -> float:
        return {
            "capacity": self.daily_threshold,
            "multiplier": self.overtime_multiplier,
            "tier2Threshold": self.tier2_threshold,
            "tier2Multiplier": self.tier2_multiplier,
        }[field_name]

    def to_dict(self) -> Dict[str, float]:
        return {
            "dailyThreshold": self.daily_threshold,
            "weeklyThreshold": self.weekly_threshold,
            "overtimeMultiplier": self.overtime_multiplier,
            "tier2ThresholdHours": self.tier2_threshold,
            "tier2Multiplier": self.tier2_multiplier,
        }


@dataclass(frozen=True)
class OverrideSpec:
    """
    Per-user override set.  ``values`` holds the global-scope fields; the
    per-day and weekly levels hold partial field maps.  Values are kept raw
    and validated lazily by the resolver.
    """
    mode: str = OVERRIDE_MODE_GLOBAL
    values: Dict[str, Any] = field(default_factory=dict)
    per_day: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    weekly: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any) -> "OverrideSpec":
        if not isinstance(data, Mapping):
            return cls()
        mode = data.get("mode") or OVERRIDE_MODE_GLOBAL
        if mode not in (OVERRIDE_MODE_GLOBAL, OVERRIDE_MODE_PER_DAY, OVERRIDE_MODE_WEEKLY):
            mode = OVERRIDE_MODE_GLOBAL
        per_day = {
            str(k): _sub_mapping(v)
            for k, v in _sub_mapping(data.get("perDayOverrides")).items()
        }
        weekly = {
            str(k).upper(): _sub_mapping(v)
            for k, v in _sub_mapping(data.get("weeklyOverrides")).items()
        }
        values = {
            k: v for k, v in data.items()
            if k not in ("mode", "perDayOverrides", "weeklyOverrides")
        }
        return cls(mode=mode, values=values, per_day=per_day, weekly=weekly)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            **self.values,
            "perDayOverrides": {k: dict(v) for k, v in self.per_day.items()},
            "weeklyOverrides": {k: dict(v) for k, v in self.weekly.items()},
        }


@dataclass
class ReferenceData:
    """Read-only contextual data for a single ``analyze`` call."""
    users: List[Dict[str, Any]] = field(default_factory=list)
    profiles: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    holidays: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    time_off: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    overrides: Dict[str, OverrideSpec] = field(default_factory=dict)
    config: OvertimeConfig = field(default_factory=OvertimeConfig)
    calc_params: CalcParams = field(default_factory=CalcParams)

    @classmethod
    def from_mapping(cls, data: Any) -> "ReferenceData":
        """
        Build from a mapping using the wire key names (``timeOff``,
        ``calcParams``).  ``profiles``, ``holidays`` and ``timeOff`` must be
        mappings here; association lists are only accepted at the worker
        boundary (see ``otplus.workers.protocol``).
        """
        if isinstance(data, ReferenceData):
            return data
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise AnalysisInputError(
                f"reference data must be a mapping, got {type(data).__name__}"
            )

        users_raw = data.get("users") or []
        if isinstance(users_raw, (str, bytes, Mapping)) or not hasattr(users_raw, "__iter__"):
            raise AnalysisInputError("users must be a list of {id, name} records")
        users = [dict(u) for u in users_raw if isinstance(u, Mapping) and u.get("id") is not None]

        profiles = {
            str(uid): dict(p) if isinstance(p, Mapping) else {}
            for uid, p in _require_mapping(data.get("profiles"), "profiles").items()
        }

        def nested(key: str) -> Dict[str, Dict[str, Any]]:
            out: Dict[str, Dict[str, Any]] = {}
            for uid, per_date in _require_mapping(data.get(key), key).items():
                if per_date is None:
                    continue
                out[str(uid)] = dict(_require_mapping(per_date, f"{key}[{uid}]"))
            return out

        overrides = {
            str(uid): OverrideSpec.from_mapping(spec)
            for uid, spec in _require_mapping(data.get("overrides"), "overrides").items()
        }

        return cls(
            users=users,
            profiles=profiles,
            holidays=nested("holidays"),
            time_off=nested("timeOff"),
            overrides=overrides,
            config=OvertimeConfig.from_mapping(data.get("config")),
            calc_params=CalcParams.from_mapping(data.get("calcParams")),
        )


@dataclass(frozen=True)
class DayContext:
    base_capacity: float
    effective_capacity: float
    is_holiday: bool = False
    holiday_name: str = ""
    holiday_project_id: Optional[str] = None
    is_non_working: bool = False
    is_time_off: bool = False
    time_off_hours: float = 0.0

    @property
    def has_capacity_event(self) -> bool:
        return self.is_holiday or self.is_time_off


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass
class AmountBreakdown:
    rate: float = 0.0
    regular_amount: float = 0.0
    overtime_amount_base: float = 0.0
    base_amount: float = 0.0
    ot_premium: float = 0.0
    tier2_premium: float = 0.0
    total_amount: float = 0.0
    overtime_rate: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "rate": round_money(self.rate),
            "regularAmount": round_money(self.regular_amount),
            "overtimeAmountBase": round_money(self.overtime_amount_base),
            "baseAmount": round_money(self.base_amount),
            "otPremium": round_money(self.ot_premium),
            "tier2Premium": round_money(self.tier2_premium),
            "totalAmount": round_money(self.total_amount),
            "overtimeRate": round_money(self.overtime_rate),
        }


@dataclass
class EntryAnalysis:
    regular: float = 0.0
    overtime: float = 0.0
    tier1: float = 0.0
    tier2: float = 0.0
    is_billable: bool = True
    is_break: bool = False
    classification: str = "work"
    multiplier: float = DEFAULT_OT_MULTIPLIER
    tier2_multiplier: float = DEFAULT_TIER2_MULTIPLIER
    amounts: Dict[str, AmountBreakdown] = field(default_factory=dict)
    primary: str = DEFAULT_AMOUNT_DISPLAY
    tags: set = field(default_factory=set)

    @property
    def primary_amounts(self) -> AmountBreakdown:
        return self.amounts.get(self.primary) or AmountBreakdown()

    @property
    def hourly_rate(self) -> float:
        return self.primary_amounts.rate

    @property
    def regular_amount(self) -> float:
        return self.primary_amounts.regular_amount

    @property
    def ot_premium(self) -> float:
        return self.primary_amounts.ot_premium

    @property
    def tier2_premium(self) -> float:
        return self.primary_amounts.tier2_premium

    @property
    def amount(self) -> float:
        return self.primary_amounts.total_amount

    def to_dict(self) -> Dict[str, Any]:
        primary = self.primary_amounts
        return {
            "regular": round_hours(self.regular),
            "overtime": round_hours(self.overtime),
            "tier1": round_hours(self.tier1),
            "tier2": round_hours(self.tier2),
            "isBillable": self.is_billable,
            "isBreak": self.is_break,
            "classification": self.classification,
            "multiplier": self.multiplier,
            "tier2Multiplier": self.tier2_multiplier,
            "hourlyRate": round_money(primary.rate),
            "regularAmount": round_money(primary.regular_amount),
            "otPremium": round_money(primary.ot_premium),
            "tier2Premium": round_money(primary.tier2_premium),
            "amount": round_money(primary.total_amount),
            "amounts": {kind: b.to_dict() for kind, b in self.amounts.items()},
            "tags": sorted(self.tags),
        }


@dataclass
class AnalyzedEntry:
    """An input entry paired with its analysis; the entry itself is never mutated."""
    entry: Mapping[str, Any]
    analysis: EntryAnalysis
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {**dict(self.entry), "analysis": self.analysis.to_dict()}


@dataclass
class DayMeta:
    is_holiday: bool = False
    holiday_name: str = ""
    holiday_project_id: Optional[str] = None
    is_non_working: bool = False
    is_time_off: bool = False
    effective_capacity: float = 0.0
    base_capacity: float = 0.0
    time_off_hours: float = 0.0

    @classmethod
    def from_context(cls, ctx: DayContext) -> "DayMeta":
        return cls(
            is_holiday=ctx.is_holiday,
            holiday_name=ctx.holiday_name,
            holiday_project_id=ctx.holiday_project_id,
            is_non_working=ctx.is_non_working,
            is_time_off=ctx.is_time_off,
            effective_capacity=ctx.effective_capacity,
            base_capacity=ctx.base_capacity,
            time_off_hours=ctx.time_off_hours,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isHoliday": self.is_holiday,
            "holidayName": self.holiday_name,
            "holidayProjectId": self.holiday_project_id,
            "isNonWorking": self.is_non_working,
            "isTimeOff": self.is_time_off,
            "effectiveCapacity": round_hours(self.effective_capacity),
            "baseCapacity": round_hours(self.base_capacity),
            "timeOffHours": round_hours(self.time_off_hours),
        }


@dataclass
class DayRecord:
    date: str
    entries: List[AnalyzedEntry] = field(default_factory=list)
    meta: DayMeta = field(default_factory=DayMeta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "entries": [e.to_dict() for e in self.entries],
            "meta": self.meta.to_dict(),
        }


HOUR_TOTAL_FIELDS = (
    "total", "regular", "overtime", "tier1", "tier2", "breaks", "pto_entry_hours",
    "billable_worked", "billable_ot", "non_billable_worked", "non_billable_ot",
    "holiday_hours", "time_off_hours", "expected_capacity",
)
MONEY_TOTAL_FIELDS = (
    "amount", "amount_base", "amount_earned", "amount_cost", "amount_profit",
    "ot_premium", "tier2_premium",
    "ot_premium_earned", "ot_premium_cost", "ot_premium_profit",
    "tier2_premium_earned", "tier2_premium_cost", "tier2_premium_profit",
)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.upper() if p in ("ot",) else p.capitalize() for p in rest)


@dataclass
class UserTotals:
    total: float = 0.0
    regular: float = 0.0
    overtime: float = 0.0
    tier1: float = 0.0
    tier2: float = 0.0
    breaks: float = 0.0
    pto_entry_hours: float = 0.0
    billable_worked: float = 0.0
    billable_ot: float = 0.0
    non_billable_worked: float = 0.0
    non_billable_ot: float = 0.0
    amount: float = 0.0
    amount_base: float = 0.0
    amount_earned: float = 0.0
    amount_cost: float = 0.0
    amount_profit: float = 0.0
    ot_premium: float = 0.0
    tier2_premium: float = 0.0
    ot_premium_earned: float = 0.0
    ot_premium_cost: float = 0.0
    ot_premium_profit: float = 0.0
    tier2_premium_earned: float = 0.0
    tier2_premium_cost: float = 0.0
    tier2_premium_profit: float = 0.0
    holiday_count: int = 0
    holiday_hours: float = 0.0
    time_off_count: int = 0
    time_off_hours: float = 0.0
    expected_capacity: float = 0.0

    def rounded(self) -> "UserTotals":
        values = {name: round_hours(getattr(self, name)) for name in HOUR_TOTAL_FIELDS}
        values.update({name: round_money(getattr(self, name)) for name in MONEY_TOTAL_FIELDS})
        return UserTotals(
            holiday_count=self.holiday_count,
            time_off_count=self.time_off_count,
            **values,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in HOUR_TOTAL_FIELDS + MONEY_TOTAL_FIELDS:
            out[_camel(name)] = getattr(self, name)
        out["holidayCount"] = self.holiday_count
        out["timeOffCount"] = self.time_off_count
        out["profit"] = self.amount_profit
        return out


@dataclass
class UserAnalysisResult:
    user_id: str
    user_name: str
    days: Dict[str, DayRecord] = field(default_factory=dict)
    totals: UserTotals = field(default_factory=UserTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "days": {k: d.to_dict() for k, d in self.days.items()},
            "totals": self.totals.to_dict(),
        }
