"""
Calculation dispatcher — last-request-wins delivery of analysis results.

Every request gets a monotonically increasing sequence number.  A reply is
delivered only if its request is still the newest one; replies that arrive
for superseded requests are dropped.  When the worker is disabled, or the
broker cannot be reached, the protocol handler runs in-process instead.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from celery.exceptions import TimeoutError as CeleryTimeoutError
from kombu.exceptions import OperationalError
from pydantic import ValidationError

from otplus.config import DISPATCH_TIMEOUT_SECONDS, USE_WORKER
from otplus.models.analysis_models import ReferenceData
from otplus.models.worker_models import WorkerResponse
from otplus.workers.protocol import build_calculate_message, deserialize_results, handle_message

logger = logging.getLogger("otplus-worker")

Sender = Callable[[Dict[str, Any]], Dict[str, Any]]


class CalculationError(RuntimeError):
    """The worker replied with an error message."""


def celery_sender(message: Dict[str, Any]) -> Dict[str, Any]:
    """Send a calculate message through Celery and wait for the reply."""
    from otplus.workers.tasks import calculate_overtime
    try:
        return calculate_overtime.apply_async(args=[message]).get(timeout=DISPATCH_TIMEOUT_SECONDS)
    except CeleryTimeoutError as e:
        raise CalculationError(f"Worker did not reply within {DISPATCH_TIMEOUT_SECONDS}s") from e


class CalculationDispatcher:
    def __init__(self, sender: Optional[Sender] = None, use_worker: bool = USE_WORKER):
        self._sender = sender or celery_sender
        self.use_worker = use_worker
        self._lock = threading.Lock()
        self._sequence = 0

    @property
    def latest_sequence(self) -> int:
        with self._lock:
            return self._sequence

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def is_current(self, sequence: int) -> bool:
        with self._lock:
            return sequence == self._sequence

    def deliver(self, sequence: int, reply: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """
        Return the deserialized results for ``reply`` if ``sequence`` is
        still the newest request, None if it has been superseded.  Error
        replies for the newest request raise CalculationError.
        """
        if not self.is_current(sequence):
            logger.debug(
                f"Dropping stale reply for request {sequence} (latest is {self.latest_sequence})",
                extra={"sequence": sequence},
            )
            return None
        try:
            response = WorkerResponse.model_validate(reply)
        except ValidationError as e:
            raise CalculationError(f"Malformed worker reply: {e}") from e
        if response.type == "result":
            return deserialize_results(response.payload or [])
        raise CalculationError(response.error or "Unknown worker error")

    def calculate(
        self,
        entries: Optional[List[Dict[str, Any]]],
        reference: Any,
        date_range: Any,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Analyze ``entries`` and return the results, or None when a newer
        request was issued while this one was in flight.
        """
        sequence = self.next_sequence()
        message = build_calculate_message(entries, ReferenceData.from_mapping(reference), date_range)

        # Missing entries or range short-circuit to the in-process path
        if not self.use_worker or entries is None or date_range is None:
            return self.deliver(sequence, handle_message(message))

        try:
            reply = self._sender(message)
        except (OperationalError, OSError) as e:
            logger.warning(f"Worker unavailable, calculating in-process: {e}")
            reply = handle_message(message)
        return self.deliver(sequence, reply)

    def submit(self, message: Dict[str, Any]) -> Tuple[str, int]:
        """Enqueue ``message`` without waiting; returns (task_id, sequence)."""
        from otplus.workers.tasks import calculate_overtime
        sequence = self.next_sequence()
        result = calculate_overtime.apply_async(args=[message])
        logger.info(f"Queued calculation {result.id} as request {sequence}", extra={"task_id": result.id, "sequence": sequence})
        return result.id, sequence


dispatcher = CalculationDispatcher()
