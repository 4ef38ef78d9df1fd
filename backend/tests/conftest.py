"""
conftest.py — Shared pytest fixtures for the OTPLUS backend test suite.

No broker, database or network fixtures are defined here.  Engine tests are
pure unit tests; Celery tasks run in eager mode and HTTP tests use the
FastAPI TestClient.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``otplus.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any otplus imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def engine():
    """OvertimeEngine; stateless, shared by every test."""
    from otplus.services.overtime_engine import OvertimeEngine
    return OvertimeEngine()


@pytest.fixture
def make_entry():
    """
    Factory for Clockify-shaped time entries on 2025-01-15 (a Wednesday).

    make_entry("09:00", "17:00") -> REGULAR entry, $50/h, billable, user u1.
    Times are UTC; ``duration`` is derived unless passed explicitly.
    """
    counter = {"n": 0}

    def _make(
        start="09:00",
        end="17:00",
        *,
        day="2025-01-15",
        user_id="u1",
        user_name="Alice",
        entry_type="REGULAR",
        rate=50,
        billable=True,
        duration=None,
        **extra,
    ):
        counter["n"] += 1
        interval = {"start": f"{day}T{start}:00Z", "end": f"{day}T{end}:00Z"}
        if duration is not None:
            interval["duration"] = duration
        entry = {
            "id": f"e{counter['n']}",
            "userId": user_id,
            "userName": user_name,
            "type": entry_type,
            "timeInterval": interval,
            "hourlyRate": {"amount": rate, "currency": "USD"},
            "billable": billable,
        }
        entry.update(extra)
        return entry

    return _make


@pytest.fixture
def single_day():
    """Inclusive date range covering only 2025-01-15."""
    return {"start": "2025-01-15", "end": "2025-01-15"}


@pytest.fixture
def base_reference():
    """
    One user (u1 / Alice), workspace defaults:
      dailyThreshold = 8, overtimeMultiplier = 1.5, tier2 disabled.
    """
    return {
        "users": [{"id": "u1", "name": "Alice"}],
        "config": {},
        "calcParams": {"dailyThreshold": 8, "overtimeMultiplier": 1.5},
    }


@pytest.fixture
def eager_celery():
    """Run Celery tasks inline for the duration of one test."""
    from otplus.workers.celery_app import celery_app
    previous = (celery_app.conf.task_always_eager, celery_app.conf.task_eager_propagates)
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True
    yield celery_app
    celery_app.conf.task_always_eager, celery_app.conf.task_eager_propagates = previous


@pytest.fixture(autouse=True)
def _reset_tracker():
    """Each test starts with empty performance counters."""
    from otplus.services.perf_monitor import tracker
    tracker.reset()
    yield
