"""
override_resolver.py — Four-level override precedence.

Each field (capacity, multiplier, tier2Threshold, tier2Multiplier) resolves
independently, highest precedence first:

  1. perDayOverrides[dateKey][field]    (mode == "perDay")
  2. weeklyOverrides[WEEKDAY][field]    (mode == "weekly")
  3. global override field              (any mode)
  4. workspace default

A level whose value is missing or not a finite number is skipped.
"""
from typing import Any, Dict, Iterator, Mapping, Optional

from otplus.config import OVERRIDE_FIELDS, OVERRIDE_MODE_PER_DAY, OVERRIDE_MODE_WEEKLY
from otplus.models.analysis_models import CalcParams, OverrideSpec, OvertimeConfig
from otplus.services.entry_classifier import weekday_key as weekday_for
from otplus.services.numeric import first_finite, to_finite


class OverrideResolver:
    """Resolves override fields for one ``analyze`` call.  Holds no mutable state."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, OverrideSpec]] = None,
        calc_params: Optional[CalcParams] = None,
        config: Optional[OvertimeConfig] = None,
        profiles: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        self.overrides: Mapping[str, OverrideSpec] = overrides or {}
        self.calc_params = calc_params or CalcParams()
        self.config = config or OvertimeConfig()
        self.profiles: Mapping[str, Mapping[str, Any]] = profiles or {}

    def _candidates(
        self, field: str, user_id: str, date_key: str, weekday_key: Optional[str]
    ) -> Iterator[Any]:
        spec = self.overrides.get(user_id)
        if spec is not None:
            if spec.mode == OVERRIDE_MODE_PER_DAY:
                yield spec.per_day.get(date_key, {}).get(field)
            if spec.mode == OVERRIDE_MODE_WEEKLY:
                weekday = weekday_key or weekday_for(date_key)
                yield spec.weekly.get(weekday or "", {}).get(field)
            yield spec.values.get(field)

    def default(self, field: str, user_id: str) -> float:
        if field == "capacity" and self.config.use_profile_capacity:
            profile = self.profiles.get(user_id) or {}
            capacity = to_finite(profile.get("workCapacityHours"))
            if capacity is not None:
                return capacity
        return self.calc_params.default_for(field)

    def resolve(
        self,
        field: str,
        user_id: str,
        date_key: str,
        weekday_key: Optional[str] = None,
    ) -> float:
        if field not in OVERRIDE_FIELDS:
            raise KeyError(f"Unknown override field: {field}")
        value = first_finite(self._candidates(field, user_id, date_key, weekday_key))
        return self.default(field, user_id) if value is None else value

    def resolve_all(
        self, user_id: str, date_key: str, weekday_key: Optional[str] = None
    ) -> Dict[str, float]:
        return {
            field: self.resolve(field, user_id, date_key, weekday_key)
            for field in OVERRIDE_FIELDS
        }
