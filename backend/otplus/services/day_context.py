"""
day_context.py — Per-user, per-day capacity context.

Combines the resolved base capacity with holiday, non-working-day and
time-off adjustments.  Holiday and time-off are each detected from two
sources (reference data OR entry type) combined with a plain OR.
"""
from typing import Any, Mapping, Optional, Sequence

from otplus.models.analysis_models import DayContext, ReferenceData
from otplus.services.entry_classifier import (
    entry_duration_hours,
    is_holiday_entry,
    is_time_off_entry,
    weekday_key,
)
from otplus.services.numeric import to_finite
from otplus.services.override_resolver import OverrideResolver


class DayContextBuilder:
    def __init__(self, reference: ReferenceData, resolver: Optional[OverrideResolver] = None):
        self.reference = reference
        self.config = reference.config
        self.resolver = resolver or OverrideResolver(
            reference.overrides, reference.calc_params, reference.config, reference.profiles,
        )

    # ── Sources ───────────────────────────────────────────────────────────────

    def holiday_record(self, user_id: str, date_key: str) -> Optional[Mapping[str, Any]]:
        if not self.config.apply_holidays:
            return None
        record = self.reference.holidays.get(user_id, {}).get(date_key)
        if record is None:
            return None
        return record if isinstance(record, Mapping) else {}

    def time_off_record(self, user_id: str, date_key: str) -> Optional[Mapping[str, Any]]:
        if not self.config.apply_time_off:
            return None
        record = self.reference.time_off.get(user_id, {}).get(date_key)
        if record is None:
            return None
        return record if isinstance(record, Mapping) else {}

    def is_non_working(self, user_id: str, weekday: Optional[str]) -> bool:
        if not self.config.use_profile_working_days or weekday is None:
            return False
        profile = self.reference.profiles.get(user_id) or {}
        working_days = profile.get("workingDays")
        if working_days is None or isinstance(working_days, (str, bytes)):
            return False
        try:
            allowed = {str(d).upper() for d in working_days}
        except TypeError:
            return False
        return weekday not in allowed

    # ── Build ─────────────────────────────────────────────────────────────────

    def build(
        self,
        user_id: str,
        date_key: str,
        day_entries: Sequence[Mapping[str, Any]] = (),
    ) -> DayContext:
        weekday = weekday_key(date_key)
        base = max(0.0, self.resolver.resolve("capacity", user_id, date_key, weekday))

        holiday = self.holiday_record(user_id, date_key)
        holiday_entries = [e for e in day_entries if is_holiday_entry(e)]
        is_holiday = holiday is not None or bool(holiday_entries)
        holiday_name = ""
        holiday_project_id = None
        if holiday is not None:
            holiday_name = str(holiday.get("name") or "")
            holiday_project_id = holiday.get("projectId")
        elif holiday_entries:
            first = holiday_entries[0]
            project = first.get("project") if isinstance(first.get("project"), Mapping) else {}
            holiday_name = str(first.get("description") or project.get("name") or "Holiday")
            holiday_project_id = first.get("projectId") or project.get("id")

        time_off = self.time_off_record(user_id, date_key)
        time_off_entries = [e for e in day_entries if is_time_off_entry(e)]
        is_time_off = time_off is not None or bool(time_off_entries)
        if time_off is not None:
            if time_off.get("isFullDay") is True:
                time_off_hours = base
            else:
                time_off_hours = max(0.0, to_finite(time_off.get("hours")) or 0.0)
        else:
            time_off_hours = sum(entry_duration_hours(e) for e in time_off_entries)

        is_non_working = self.is_non_working(user_id, weekday)

        if is_holiday or is_non_working:
            effective = 0.0
        else:
            effective = max(0.0, base - time_off_hours)

        return DayContext(
            base_capacity=base,
            effective_capacity=effective,
            is_holiday=is_holiday,
            holiday_name=holiday_name,
            holiday_project_id=holiday_project_id,
            is_non_working=is_non_working,
            is_time_off=is_time_off,
            time_off_hours=time_off_hours,
        )
