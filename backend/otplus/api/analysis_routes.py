"""
Overtime analysis routes.
Synchronous calculation for interactive callers plus a Celery-backed job
API for large workspaces.
"""
import logging
from typing import Any, Dict, List
from fastapi import APIRouter, HTTPException, Request

from otplus.models.analysis_models import AnalysisInputError
from otplus.models.worker_models import CalculatePayload, JobAccepted, JobStatus
from otplus.workers.celery_app import celery_app
from otplus.workers.dispatcher import dispatcher
from otplus.workers.protocol import MESSAGE_CALCULATE, run_calculation

router = APIRouter(prefix="/api/analysis", tags=["Overtime Analysis"])
logger = logging.getLogger("otplus-api")


@router.post("/calculate")
def calculate(payload: CalculatePayload, request: Request) -> List[Dict[str, Any]]:
    """
    Run the engine inline and return the result payload (users with days
    as ``[[dateKey, day], ...]``).  Structurally invalid input is a 422.
    """
    request_id = getattr(request.state, "request_id", None)
    try:
        return run_calculation(payload)
    except AnalysisInputError as e:
        logger.warning(f"Rejected calculation: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/jobs", response_model=JobAccepted, status_code=202)
def submit_job(payload: CalculatePayload) -> JobAccepted:
    """Queue a calculation on the Celery worker."""
    message = {"type": MESSAGE_CALCULATE, "payload": payload.model_dump()}
    task_id, sequence = dispatcher.submit(message)
    return JobAccepted(task_id=task_id, sequence=sequence)


@router.get("/jobs/{task_id}", response_model=JobStatus)
def job_status(task_id: str) -> JobStatus:
    """Poll a queued calculation; the result is returned once it succeeds."""
    result = celery_app.AsyncResult(task_id)
    status = JobStatus(task_id=task_id, status=result.state)

    if result.state == "PROGRESS" and isinstance(result.info, dict):
        status.progress = result.info
    elif result.state == "SUCCESS":
        reply = result.result or {}
        if reply.get("type") == "result":
            status.result = reply.get("payload") or []
        else:
            status.status = "FAILURE"
            status.error = reply.get("error") or "Unknown worker error"
    elif result.state == "FAILURE":
        status.error = str(result.info)
    return status
