"""
Celery Tasks — overtime analysis off the API thread.

The task body is the worker protocol handler: it receives the same
``{"type": "calculate", "payload": ...}`` message and returns the same
result or error reply, so callers handle both transports identically.
"""
import logging
from celery.signals import worker_ready

from otplus.workers.celery_app import celery_app
from otplus.workers.protocol import handle_message, ready_message

logger = logging.getLogger("otplus-worker")


def _entry_count(message) -> int:
    payload = message.get("payload") if isinstance(message, dict) else None
    entries = payload.get("entries") if isinstance(payload, dict) else None
    return len(entries) if isinstance(entries, list) else 0


@worker_ready.connect
def announce_ready(sender=None, **kwargs):
    logger.info(f"Worker ready: {ready_message()}")


@celery_app.task(bind=True, name="tasks.calculate_overtime")
def calculate_overtime(self, message: dict) -> dict:
    """Run one calculation message through the protocol handler."""
    entry_count = _entry_count(message)
    if not self.request.is_eager:
        self.update_state(state="PROGRESS", meta={"step": "Analyzing entries", "entries": entry_count})

    reply = handle_message(message)
    if reply["type"] == "error":
        logger.error(
            f"Calculation task {self.request.id} failed: {reply['error']}",
            extra={"task_id": self.request.id},
        )
    else:
        logger.info(
            f"Calculation task {self.request.id} analyzed {entry_count} entries",
            extra={"task_id": self.request.id, "entry_count": entry_count},
        )
    return reply


@celery_app.task(name="tasks.ping")
def ping() -> dict:
    """Readiness probe; replies with the worker ready message."""
    return ready_message()
