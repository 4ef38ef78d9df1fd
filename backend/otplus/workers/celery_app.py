"""
Celery Application — Background overtime analysis for OTPLUS.
Runs the engine off the API request thread; large workspaces with tens of
thousands of entries would otherwise block the event loop.
"""
from celery import Celery

from otplus.config import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    TASK_SOFT_TIME_LIMIT,
    TASK_TIME_LIMIT,
)

celery_app = Celery(
    "otplus",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["otplus.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=TASK_SOFT_TIME_LIMIT,
    task_time_limit=TASK_TIME_LIMIT,
    result_expires=3600,        # Results expire after 1 hour
)
