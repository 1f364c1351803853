# =============================================================================
# app/routers/tasks.py - Background Job Status
# =============================================================================
# Staff can poll the Celery jobs they queue from the admin dashboard
# (leaderboard recalculation, webhook reprocessing).
# =============================================================================

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel

from app.auth import require_staff

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_staff)])


class TaskStatusResponse(BaseModel):
    """Response model for task status."""
    task_id: str
    status: str
    message: str | None = None
    result: Any = None
    error: str | None = None


STATUS_MESSAGES = {
    "PENDING": "Waiting in queue...",
    "STARTED": "Running...",
    "RETRY": "Retrying...",
    "SUCCESS": "Complete",
    "FAILURE": "Failed",
    "REVOKED": "Cancelled",
}


@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")]
):
    """
    Get the status of a background job.

    - PENDING: waiting in queue (also returned for unknown ids)
    - STARTED: picked up by a worker
    - SUCCESS: includes the task's return value
    - FAILURE: includes the error message
    """
    try:
        from workers.celery_app import celery_app

        result = celery_app.AsyncResult(task_id)
        state = result.status
    except Exception as e:
        logger.error(f"Error getting task status: {e}")
        raise HTTPException(status_code=503, detail=f"Task backend unavailable: {e}")

    response = TaskStatusResponse(
        task_id=task_id,
        status=state,
        message=STATUS_MESSAGES.get(state),
    )
    if state == "SUCCESS":
        response.result = result.result
    elif state == "FAILURE":
        response.error = str(result.result) if result.result else "Unknown error"
    return response
