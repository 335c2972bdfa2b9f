"""
Scraper Router - start, inspect and cancel scraping jobs.
"""

import logging
from fastapi import APIRouter, HTTPException, Query
from typing import List, Optional

from core.errors import ValidationError
from core.jobs.manager import job_manager
from app.console.schemas import (
    BatchDetailsRequest,
    CancelResponse,
    DetailsResponse,
    JobResponse,
    ProductResponse,
    SearchRequest,
    SearchStarted,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scraper", tags=["scraper"])


@router.post("/search", response_model=SearchStarted)
async def start_search(request: SearchRequest):
    """Start a search job. A category name is searched like a keyword."""
    try:
        job_id = await job_manager.start_search(request.model_dump())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"🚀 Search job {job_id} started on {request.platform}")
    return SearchStarted(job_id=job_id)


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(status: Optional[str] = None, limit: int = Query(50, ge=1, le=500)):
    """List jobs, newest first."""
    jobs = await job_manager.list_jobs(status=status, limit=limit)
    return [JobResponse.model_validate(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str):
    job = await job_manager.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.model_validate(job)


@router.delete("/jobs/{job_id}", response_model=CancelResponse)
async def cancel_job(job_id: str):
    """Cancel a job. Running jobs are marked cancelled immediately."""
    result = await job_manager.cancel(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return CancelResponse(**result)


@router.post("/details/{item_id}", response_model=DetailsResponse)
async def scrape_details(item_id: str, force: bool = False):
    """Scrape detail fields for one stored product and wait for the result."""
    outcome = await job_manager.rescrape_product(item_id, force=force)
    if outcome.status == "not_found":
        raise HTTPException(status_code=404, detail="Product not found")
    if outcome.status in ("low_quality", "failed"):
        raise HTTPException(status_code=422, detail=outcome.error)

    product = ProductResponse.model_validate(outcome.product) if outcome.product else None
    return DetailsResponse(status=outcome.status, quality=outcome.quality, product=product)


@router.post("/batch-details", response_model=SearchStarted)
async def batch_details(request: BatchDetailsRequest):
    """Start a job that scrapes details for stored products lacking them."""
    try:
        job_id = await job_manager.start_batch_details(request.item_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SearchStarted(job_id=job_id)
