"""
Engine configuration — single source of truth for workspace defaults,
entry-type vocabularies, rate field priorities and runtime settings.

Import from here in all services and workers rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Workspace calculation defaults ────────────────────────────────────────────
# Used when calcParams omits a value or carries a non-finite one.
DEFAULT_DAILY_THRESHOLD: float = 8.0
DEFAULT_WEEKLY_THRESHOLD: float = 40.0
DEFAULT_OT_MULTIPLIER: float = 1.5
DEFAULT_TIER2_THRESHOLD: float = 0.0
DEFAULT_TIER2_MULTIPLIER: float = 2.0

OVERTIME_BASIS_DAILY: str = "daily"
OVERTIME_BASIS_WEEKLY: str = "weekly"
OVERTIME_BASES: tuple[str, ...] = (OVERTIME_BASIS_DAILY, OVERTIME_BASIS_WEEKLY)

AMOUNT_DISPLAY_MODES: tuple[str, ...] = ("earned", "cost", "profit")
DEFAULT_AMOUNT_DISPLAY: str = "earned"


# ── Override resolution ───────────────────────────────────────────────────────
OVERRIDE_MODE_GLOBAL: str = "global"
OVERRIDE_MODE_PER_DAY: str = "perDay"
OVERRIDE_MODE_WEEKLY: str = "weekly"

# Fields resolvable through per-day > weekly > global > default
OVERRIDE_FIELDS: tuple[str, ...] = (
    "capacity",
    "multiplier",
    "tier2Threshold",
    "tier2Multiplier",
)


# ── Entry classification ──────────────────────────────────────────────────────
ENTRY_TYPE_REGULAR: str = "REGULAR"
ENTRY_TYPE_BREAK: str = "BREAK"

HOLIDAY_ENTRY_TYPES: frozenset[str] = frozenset({"HOLIDAY", "HOLIDAY_TIME_ENTRY"})
TIME_OFF_ENTRY_TYPES: frozenset[str] = frozenset({"TIME_OFF", "TIME_OFF_TIME_ENTRY"})
PTO_ENTRY_TYPES: frozenset[str] = HOLIDAY_ENTRY_TYPES | TIME_OFF_ENTRY_TYPES

CLASS_WORK: str = "work"
CLASS_BREAK: str = "break"
CLASS_PTO: str = "pto"

TAG_HOLIDAY: str = "HOLIDAY"
TAG_OFF_DAY: str = "OFF-DAY"
TAG_TIME_OFF: str = "TIME-OFF"
TAG_BREAK: str = "BREAK"

# Monday first, matching datetime.date.weekday()
WEEKDAY_KEYS: tuple[str, ...] = (
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
)


# ── Rate resolution ───────────────────────────────────────────────────────────
# Priority order; first strictly positive candidate wins.
EARNED_RATE_FIELDS: tuple[str, ...] = ("earnedRate", "rate", "hourlyRate")
COST_RATE_FIELDS: tuple[str, ...] = ("costRate", "costHourlyRate")

AMOUNT_TYPE_EARNED: str = "EARNED"
AMOUNT_TYPE_COST: str = "COST"


# ── Users ─────────────────────────────────────────────────────────────────────
UNKNOWN_USER_ID: str = "unknown"
UNKNOWN_USER_NAME: str = "Unknown"


# ── Rounding ──────────────────────────────────────────────────────────────────
HOURS_PRECISION: int = 4       # 0.0001 h = 0.36 s
CURRENCY_PRECISION: int = 2


# ── Runtime settings (env) ────────────────────────────────────────────────────
CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# Seconds; the engine itself enforces no timeout
TASK_SOFT_TIME_LIMIT: int = int(os.getenv("OTPLUS_TASK_SOFT_TIME_LIMIT", "120"))
TASK_TIME_LIMIT: int = int(os.getenv("OTPLUS_TASK_TIME_LIMIT", "300"))
DISPATCH_TIMEOUT_SECONDS: float = float(os.getenv("OTPLUS_DISPATCH_TIMEOUT", "60"))

# When false the dispatcher runs calculations in-process instead of via Celery
USE_WORKER: bool = os.getenv("OTPLUS_USE_WORKER", "false").lower() in ("1", "true", "yes")

API_VERSION: str = "1.0.0"
