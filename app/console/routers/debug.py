"""
Debug Router - failed job inspection.
"""

from fastapi import APIRouter, HTTPException
from typing import List

from core.repositories import job_repo
from core.schemas.enums import JobStatus
from app.console.schemas import FailedJobSummary, JobDebugResponse, JobResponse

router = APIRouter(prefix="/api/debug", tags=["debug"])


@router.get("/jobs/failed", response_model=List[FailedJobSummary])
async def failed_jobs():
    """Last 20 failed jobs with their error details."""
    jobs = await job_repo.list(status=JobStatus.FAILED.value, limit=20)
    return [
        FailedJobSummary(
            job_id=job.id,
            platform=job.platform,
            search_type=job.search_type,
            search_params=job.search_params,
            error=job.error,
            error_summary=job.error_summary,
            created_at=job.created_at,
            failed_at=job.completed_at,
        )
        for job in jobs
    ]


@router.get("/jobs/{job_id}", response_model=JobDebugResponse)
async def job_details(job_id: str):
    job = await job_repo.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    error_details = None
    if job.error:
        error_details = {
            "phase": job.error.phase,
            "type": job.error.error_type,
            "message": job.error.message,
            "screenshot_path": job.error.screenshot_path,
            "timestamp": job.completed_at,
        }
    return JobDebugResponse(job=JobResponse.model_validate(job), error_details=error_details)
