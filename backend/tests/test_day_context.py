"""
test_day_context.py — Unit tests for DayContextBuilder.

Covers dual-source holiday and time-off detection, non-working days from
profile working days, and the effective capacity clamp.
"""

import pytest

from otplus.models.analysis_models import ReferenceData
from otplus.services.day_context import DayContextBuilder

WEDNESDAY = "2025-01-15"
SATURDAY = "2025-01-18"


def _builder(**reference):
    base = {"users": [{"id": "u1", "name": "Alice"}], "calcParams": {"dailyThreshold": 8}}
    base.update(reference)
    return DayContextBuilder(ReferenceData.from_mapping(base))


# ===========================================================================
# Class 1: Holidays
# ===========================================================================

class TestHolidays:

    def test_reference_holiday_zeroes_capacity(self):
        builder = _builder(
            config={"applyHolidays": True},
            holidays={"u1": {WEDNESDAY: {"name": "Founders Day", "projectId": "p9"}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.is_holiday
        assert ctx.holiday_name == "Founders Day"
        assert ctx.holiday_project_id == "p9"
        assert ctx.base_capacity == 8.0
        assert ctx.effective_capacity == 0.0

    def test_reference_holiday_ignored_when_not_applied(self):
        builder = _builder(holidays={"u1": {WEDNESDAY: {"name": "Founders Day"}}})
        ctx = builder.build("u1", WEDNESDAY)
        assert not ctx.is_holiday
        assert ctx.effective_capacity == 8.0

    @pytest.mark.parametrize("entry_type", ["HOLIDAY", "HOLIDAY_TIME_ENTRY"])
    def test_holiday_entry_detected_without_reference(self, entry_type):
        """Entry-type detection works even with applyHolidays off."""
        ctx = _builder().build("u1", WEDNESDAY, [{"type": entry_type, "description": "New Year"}])
        assert ctx.is_holiday
        assert ctx.holiday_name == "New Year"
        assert ctx.effective_capacity == 0.0

    def test_reference_name_wins_over_entry(self):
        builder = _builder(
            config={"applyHolidays": True},
            holidays={"u1": {WEDNESDAY: {"name": "Reference Name"}}},
        )
        ctx = builder.build("u1", WEDNESDAY, [{"type": "HOLIDAY", "description": "Entry Name"}])
        assert ctx.holiday_name == "Reference Name"


# ===========================================================================
# Class 2: Time off
# ===========================================================================

class TestTimeOff:

    def test_partial_time_off_reduces_capacity(self):
        """8 h base - 3 h time off = 5 h effective."""
        builder = _builder(
            config={"applyTimeOff": True},
            timeOff={"u1": {WEDNESDAY: {"isFullDay": False, "hours": 3}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.is_time_off
        assert ctx.time_off_hours == 3.0
        assert ctx.effective_capacity == 5.0

    def test_time_off_larger_than_capacity_clamps_to_zero(self):
        """Scenario: {isFullDay: false, hours: 10} vs capacity 8 → 0, never negative."""
        builder = _builder(
            config={"applyTimeOff": True},
            timeOff={"u1": {WEDNESDAY: {"isFullDay": False, "hours": 10}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.effective_capacity == 0.0
        assert ctx.time_off_hours == 10.0

    def test_full_day_uses_base_capacity(self):
        builder = _builder(
            config={"applyTimeOff": True},
            timeOff={"u1": {WEDNESDAY: {"isFullDay": True, "hours": 0}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.time_off_hours == 8.0
        assert ctx.effective_capacity == 0.0

    @pytest.mark.parametrize("hours", [None, "abc", float("nan")])
    def test_bad_hours_count_as_zero(self, hours):
        builder = _builder(
            config={"applyTimeOff": True},
            timeOff={"u1": {WEDNESDAY: {"isFullDay": False, "hours": hours}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.is_time_off
        assert ctx.time_off_hours == 0.0
        assert ctx.effective_capacity == 8.0

    def test_time_off_entries_sum_durations(self):
        entries = [
            {"type": "TIME_OFF", "timeInterval": {"duration": "PT2H"}},
            {"type": "TIME_OFF_TIME_ENTRY", "timeInterval": {"duration": "PT1H30M"}},
            {"type": "REGULAR", "timeInterval": {"duration": "PT4H"}},
        ]
        ctx = _builder().build("u1", WEDNESDAY, entries)
        assert ctx.is_time_off
        assert abs(ctx.time_off_hours - 3.5) < 1e-9
        assert abs(ctx.effective_capacity - 4.5) < 1e-9


# ===========================================================================
# Class 3: Working days and dominance
# ===========================================================================

class TestWorkingDays:

    def test_non_working_weekday(self):
        builder = _builder(
            config={"useProfileWorkingDays": True},
            profiles={"u1": {"workingDays": ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]}},
        )
        assert builder.build("u1", SATURDAY).is_non_working
        assert builder.build("u1", SATURDAY).effective_capacity == 0.0
        assert not builder.build("u1", WEDNESDAY).is_non_working

    def test_empty_working_days_means_every_day_off(self):
        builder = _builder(
            config={"useProfileWorkingDays": True},
            profiles={"u1": {"workingDays": []}},
        )
        assert builder.build("u1", WEDNESDAY).is_non_working

    def test_working_days_ignored_when_disabled(self):
        builder = _builder(profiles={"u1": {"workingDays": ["MONDAY"]}})
        assert not builder.build("u1", SATURDAY).is_non_working

    def test_missing_working_days_is_working(self):
        builder = _builder(config={"useProfileWorkingDays": True}, profiles={"u1": {}})
        assert not builder.build("u1", SATURDAY).is_non_working

    def test_holiday_dominates_time_off(self):
        """Both flags set; holiday zeroes capacity regardless of time-off hours."""
        builder = _builder(
            config={"applyHolidays": True, "applyTimeOff": True},
            holidays={"u1": {WEDNESDAY: {"name": "H"}}},
            timeOff={"u1": {WEDNESDAY: {"isFullDay": False, "hours": 2}}},
        )
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.is_holiday and ctx.is_time_off
        assert ctx.effective_capacity == 0.0

    def test_negative_capacity_override_clamps(self):
        builder = _builder(overrides={"u1": {"capacity": -4}})
        ctx = builder.build("u1", WEDNESDAY)
        assert ctx.base_capacity == 0.0
        assert ctx.effective_capacity == 0.0
