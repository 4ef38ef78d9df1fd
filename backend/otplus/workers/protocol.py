"""
Worker message protocol.

Inbound:   {"type": "calculate", "payload": {entries, dateRange, store}}
Outbound:  {"type": "ready"}
           {"type": "result", "payload": [user, ...]}   days as [[dateKey, day], ...]
           {"type": "error", "error": "<message>"}

``handle_message`` never raises: every failure becomes an error reply.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from otplus.models.analysis_models import ReferenceData, UserAnalysisResult
from otplus.models.worker_models import CalculatePayload, StorePayload
from otplus.services.overtime_engine import analyze
from otplus.services.perf_monitor import tracker

logger = logging.getLogger("otplus-worker")

MESSAGE_CALCULATE = "calculate"
_MISSING = object()


def ready_message() -> Dict[str, str]:
    return {"type": "ready"}


def _js_string(value: Any) -> str:
    """Render a value the way the browser client's String() would."""
    if value is _MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def stringify_error(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    return _js_string(error)


def error_message(error: Any) -> Dict[str, str]:
    return {"type": "error", "error": stringify_error(error)}


# ---------------------------------------------------------------------------
# Store (de)serialization
# ---------------------------------------------------------------------------

def _pairs_to_dict(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}
    return {str(k): v for k, v in value}


def reconstruct_store(store: Union[StorePayload, Mapping[str, Any], None]) -> ReferenceData:
    """Rebuild ReferenceData from a store whose maps arrive as association lists."""
    if store is None:
        return ReferenceData()
    if isinstance(store, Mapping):
        store = StorePayload.model_validate(store)
    return ReferenceData.from_mapping({
        "users": store.users,
        "profiles": _pairs_to_dict(store.profiles),
        "holidays": {uid: _pairs_to_dict(v) for uid, v in _pairs_to_dict(store.holidays).items()},
        "timeOff": {uid: _pairs_to_dict(v) for uid, v in _pairs_to_dict(store.timeOff).items()},
        "overrides": store.overrides,
        "config": store.config,
        "calcParams": store.calcParams,
    })


def serialize_store(reference: ReferenceData) -> Dict[str, Any]:
    """Inverse of ``reconstruct_store``: maps become association lists."""
    return {
        "users": [dict(u) for u in reference.users],
        "profiles": [[uid, dict(p)] for uid, p in reference.profiles.items()],
        "holidays": [
            [uid, [[k, v] for k, v in per_date.items()]]
            for uid, per_date in reference.holidays.items()
        ],
        "timeOff": [
            [uid, [[k, v] for k, v in per_date.items()]]
            for uid, per_date in reference.time_off.items()
        ],
        "overrides": {uid: spec.to_dict() for uid, spec in reference.overrides.items()},
        "config": reference.config.to_dict(),
        "calcParams": reference.calc_params.to_dict(),
    }


def serialize_results(results: List[UserAnalysisResult]) -> List[Dict[str, Any]]:
    serialized = []
    for result in results:
        user = result.to_dict()
        user["days"] = [[date_key, day] for date_key, day in user["days"].items()]
        serialized.append(user)
    return serialized


def deserialize_results(payload: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn each user's ``days`` association list back into a dict."""
    return [{**user, "days": _pairs_to_dict(user.get("days"))} for user in payload or []]


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------

def build_calculate_message(
    entries: Optional[List[Dict[str, Any]]],
    reference: ReferenceData,
    date_range: Any,
) -> Dict[str, Any]:
    if isinstance(date_range, (list, tuple)) and len(date_range) == 2:
        date_range = {"start": date_range[0], "end": date_range[1]}
    return {
        "type": MESSAGE_CALCULATE,
        "payload": {
            "entries": entries,
            "dateRange": {
                key: value.isoformat() if isinstance(value, date) else value
                for key, value in date_range.items()
            } if isinstance(date_range, Mapping) else None,
            "store": serialize_store(reference),
        },
    }


def run_calculation(payload: CalculatePayload) -> List[Dict[str, Any]]:
    """Run the engine for a validated payload and serialize for the wire."""
    reference = reconstruct_store(payload.store)
    date_range = payload.dateRange.model_dump() if payload.dateRange else None
    return serialize_results(analyze(payload.entries, reference, date_range))


def handle_message(message: Any) -> Dict[str, Any]:
    """Process one inbound worker message and return the reply."""
    if isinstance(message, Mapping):
        msg_type = message.get("type", _MISSING)
    else:
        msg_type = _MISSING
    if msg_type != MESSAGE_CALCULATE:
        return error_message(f"Unknown message type: {_js_string(msg_type)}")

    try:
        payload = CalculatePayload.model_validate(message.get("payload"))
        return {"type": "result", "payload": run_calculation(payload)}
    except Exception as e:
        logger.error(f"Calculation failed: {e}")
        tracker.record_error("worker")
        return error_message(e)
