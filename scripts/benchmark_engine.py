#!/usr/bin/env python3
"""
Engine Benchmark — Synthetic load runner for the OTPLUS overtime engine
Generates a month of Clockify-shaped entries for N users, runs the engine
directly and through the dispatcher, and prints timings and totals.

Usage:
    python scripts/benchmark_engine.py                  # 50 users, 1 run
    python scripts/benchmark_engine.py --users 500      # 500 users
    python scripts/benchmark_engine.py --runs 5         # repeat and average
    python scripts/benchmark_engine.py --worker         # send through Celery
"""

import os
import random
import sys
import time
from datetime import date, datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from otplus.services.logging_config import setup_logging  # noqa: E402
from otplus.services.overtime_engine import OvertimeEngine  # noqa: E402
from otplus.services.perf_monitor import tracker  # noqa: E402
from otplus.workers.dispatcher import CalculationDispatcher  # noqa: E402

# ── Configuration ──────────────────────────────────────────────────────
MONTH_START = date(2025, 1, 1)
MONTH_DAYS = 31
SEED = 1337

# ANSI colors
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
BOLD = "\033[1m"
RESET = "\033[0m"
DIM = "\033[2m"


def _arg(name: str, default: int) -> int:
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            try:
                return int(sys.argv[idx + 1])
            except ValueError:
                print(f"{YELLOW}Ignoring non-integer value for {name}{RESET}")
    return default


def generate_workload(user_count: int, rng: random.Random):
    """One to three entries per working day per user, plus some holidays."""
    entries = []
    users = []
    holidays = {}
    for u in range(user_count):
        user_id = f"user-{u:04d}"
        users.append({"id": user_id, "name": f"User {u:04d}"})
        for offset in range(MONTH_DAYS):
            day = MONTH_START + timedelta(days=offset)
            if day.weekday() >= 5 and rng.random() > 0.2:
                continue
            cursor = datetime(day.year, day.month, day.day, 8, tzinfo=timezone.utc)
            for n in range(rng.randint(1, 3)):
                hours = rng.choice([1.5, 2.0, 3.0, 4.0, 4.5, 5.0])
                end = cursor + timedelta(hours=hours)
                entries.append({
                    "id": f"{user_id}-{offset}-{n}",
                    "userId": user_id,
                    "userName": f"User {u:04d}",
                    "type": "BREAK" if rng.random() < 0.05 else "REGULAR",
                    "timeInterval": {
                        "start": cursor.isoformat().replace("+00:00", "Z"),
                        "end": end.isoformat().replace("+00:00", "Z"),
                    },
                    "hourlyRate": {"amount": rng.choice([40, 50, 65]), "currency": "USD"},
                    "costRate": {"amount": 30, "currency": "USD"},
                    "billable": rng.random() > 0.1,
                })
                cursor = end + timedelta(minutes=rng.choice([0, 15, 30]))
        if rng.random() < 0.3:
            holidays[user_id] = {"2025-01-20": {"name": "Company Holiday"}}

    reference = {
        "users": users,
        "holidays": holidays,
        "config": {"applyHolidays": True, "enableTieredOT": True},
        "calcParams": {"dailyThreshold": 8, "overtimeMultiplier": 1.5, "tier2ThresholdHours": 2},
    }
    date_range = {"start": MONTH_START.isoformat(), "end": (MONTH_START + timedelta(days=MONTH_DAYS - 1)).isoformat()}
    return entries, reference, date_range


def _timed(label: str, fn):
    started = time.perf_counter()
    result = fn()
    elapsed_ms = (time.perf_counter() - started) * 1000
    print(f"  {CYAN}{label:<24}{RESET} {BOLD}{elapsed_ms:9.1f} ms{RESET}")
    return result, elapsed_ms


def run_benchmark(user_count: int, runs: int, use_worker: bool):
    rng = random.Random(SEED)
    entries, reference, date_range = generate_workload(user_count, rng)
    print(f"\n{BOLD}OTPLUS engine benchmark{RESET} {DIM}({datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC){RESET}")
    print(f"  {len(entries)} entries, {user_count} users, {MONTH_DAYS} days\n")

    engine = OvertimeEngine()
    dispatcher = CalculationDispatcher(use_worker=use_worker)
    engine_times = []
    results = []

    for run in range(1, runs + 1):
        print(f"{DIM}Run {run}/{runs}{RESET}")
        results, ms = _timed("engine.analyze", lambda: engine.analyze(entries, reference, date_range))
        engine_times.append(ms)
        try:
            _timed("dispatcher.calculate", lambda: dispatcher.calculate(entries, reference, date_range))
        except Exception as e:
            print(f"  {RED}dispatcher failed: {e}{RESET}")

    overtime = sum(r.totals.overtime for r in results)
    amount = sum(r.totals.amount for r in results)
    metrics = tracker.get_metrics()
    print(f"\n{GREEN}Average engine run: {sum(engine_times) / len(engine_times):.1f} ms{RESET}")
    print(f"  Overtime hours:   {overtime:,.2f}")
    print(f"  Earned amount:    {amount:,.2f}")
    print(f"  Tracked runs:     {metrics['runs']} (errors: {metrics['error_count']})")


def main():
    user_count = _arg("--users", 50)
    runs = max(1, _arg("--runs", 1))
    use_worker = "--worker" in sys.argv
    setup_logging(level=os.getenv("LOG_LEVEL", "WARNING"), json_output=False)
    try:
        run_benchmark(user_count, runs, use_worker)
    except KeyboardInterrupt:
        print(f"\n{YELLOW}Benchmark stopped.{RESET}")


if __name__ == "__main__":
    main()
