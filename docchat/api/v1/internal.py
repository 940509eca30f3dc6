"""
Internal endpoints called by Cloud Tasks and operators, not by clients.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from docchat.core.cleanup import CascadeDeleter
from docchat.core.config import settings
from docchat.core.dependencies import Services, get_db, get_services
from docchat.core.exceptions import NotFoundError
from docchat.services.task_queue import Job

logger = logging.getLogger(__name__)

router = APIRouter()


class JobDelivery(BaseModel):
    """Body of a queued HTTP task."""
    job_id: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


@router.post("/jobs/{job_name}")
def run_job(
    job_name: str,
    body: JobDelivery,
    retry_count: int = Header(0, alias="X-CloudTasks-TaskRetryCount"),
    services: Services = Depends(get_services),
) -> Any:
    """
    Execute one queued job.

    Answers 503 when the attempt failed and Cloud Tasks should retry.
    """
    if job_name not in services.registry.handlers:
        raise NotFoundError(f"No handler registered for job '{job_name}'")

    job = Job(
        name=job_name,
        payload=body.payload,
        job_id=body.job_id,
        attempt=retry_count + 1,
        max_attempts=settings.JOB_MAX_ATTEMPTS,
    )
    try:
        services.registry.dispatch(job)
    except Exception as e:
        if job.is_last_attempt:
            services.registry.exhausted(job, e)
            return {"status": "exhausted", "job_id": job.job_id}
        logger.warning(f"Job {job_name}:{job.job_id} attempt {job.attempt} failed, asking for retry: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "retry", "job_id": job.job_id},
        )
    return {"status": "completed", "job_id": job.job_id}


@router.post("/cleanup/reconcile")
def reconcile_cleanup(db: Session = Depends(get_db), services: Services = Depends(get_services)) -> Any:
    """Retry object and vector deletions left over from cascading deletes."""
    resolved = CascadeDeleter(db, services.object_store, services.vector_index).reconcile()
    return {"resolved": resolved}
