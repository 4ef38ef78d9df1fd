"""
OTPLUS Overtime Analysis API
FastAPI front for the overtime analysis engine, with Redis/Celery
background workers for large calculations.
"""
import os
import sys
import time
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env before otplus.config reads the environment; no-op when missing
load_dotenv()

from otplus.config import API_VERSION, USE_WORKER  # noqa: E402
from otplus.services.logging_config import setup_logging  # noqa: E402
from otplus.services.middleware import RequestTimingMiddleware  # noqa: E402
from otplus.services.perf_monitor import tracker as perf_tracker  # noqa: E402

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("otplus-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()

app = FastAPI(
    title="OTPLUS Overtime Analysis API",
    version=API_VERSION,
    description="Regular / overtime / tiered overtime analysis for time-tracking entries",
)

_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)


# Routers
from otplus.api.analysis_routes import router as analysis_router  # noqa: E402

app.include_router(analysis_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": API_VERSION,
        "worker_enabled": USE_WORKER,
        "broker_configured": bool(os.getenv("CELERY_BROKER_URL")),
    }


@app.get("/metrics")
async def metrics():
    """
    Engine throughput, average run duration, error counts and process
    memory, sourced from the in-process PerformanceTracker.
    """
    uptime_seconds = round(time.monotonic() - _PROCESS_START, 1)

    memory_mb: float = 0.0
    if sys.platform != "win32":
        import resource
        usage = resource.getrusage(resource.RUSAGE_SELF)
        # ru_maxrss is in kilobytes on Linux, bytes on macOS
        divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
        memory_mb = round(usage.ru_maxrss / divisor, 2)

    return {
        "uptime_seconds": uptime_seconds,
        "memory_usage_mb": memory_mb,
        **perf_tracker.get_metrics(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("otplus.main:app", host="0.0.0.0", port=8000, reload=True)
