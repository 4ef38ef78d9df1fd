"""
Worker and HTTP message models.

The calculate payload mirrors the worker wire format: reference maps travel
as association lists (``[[userId, value], ...]``) and are rebuilt into
dicts by ``otplus.workers.protocol.reconstruct_store``.  Plain objects are
accepted in their place for HTTP callers.
"""
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, Field

PairsOrMap = Union[List[Tuple[Any, Any]], Dict[str, Any]]


class DateRangeModel(BaseModel):
    start: Optional[str] = None     # YYYY-MM-DD or ISO instant
    end: Optional[str] = None


class StorePayload(BaseModel):
    """Serialized reference data for one calculation."""
    users: List[Dict[str, Any]] = Field(default_factory=list)
    profiles: PairsOrMap = Field(default_factory=list)
    holidays: PairsOrMap = Field(default_factory=list)
    timeOff: PairsOrMap = Field(default_factory=list)
    overrides: Dict[str, Any] = Field(default_factory=dict)
    config: Dict[str, Any] = Field(default_factory=dict)
    calcParams: Dict[str, Any] = Field(default_factory=dict)


class CalculatePayload(BaseModel):
    entries: Optional[List[Optional[Dict[str, Any]]]] = None
    dateRange: Optional[DateRangeModel] = None
    store: StorePayload = Field(default_factory=StorePayload)

    model_config = {"json_schema_extra": {
        "example": {
            "entries": [{
                "id": "e1",
                "userId": "u1",
                "userName": "Alice",
                "type": "REGULAR",
                "timeInterval": {
                    "start": "2025-01-15T09:00:00Z",
                    "end": "2025-01-15T19:00:00Z",
                    "duration": "PT10H",
                },
                "hourlyRate": {"amount": 50, "currency": "USD"},
                "billable": True,
            }],
            "dateRange": {"start": "2025-01-15", "end": "2025-01-15"},
            "store": {
                "users": [{"id": "u1", "name": "Alice"}],
                "calcParams": {"dailyThreshold": 8, "overtimeMultiplier": 1.5},
            },
        }
    }}


class WorkerResponse(BaseModel):
    """Reply envelope: ready, result (payload) or error (error string)."""
    type: Literal["ready", "result", "error"]
    payload: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None


class JobAccepted(BaseModel):
    task_id: str
    sequence: int
    status: str = "PENDING"


class JobStatus(BaseModel):
    task_id: str
    status: str                     # Celery state: PENDING, PROGRESS, SUCCESS, FAILURE
    progress: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
