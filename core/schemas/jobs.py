"""
Job domain models. ScrapingJob (the Beanie document) extends JobRecord.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from core.schemas.enums import JobPhase, JobStatus, Platform, SearchType
from core.utils.date_utils import get_now


def generate_uuid():
    """Generate UUID string for document IDs"""
    return str(uuid.uuid4())


class SearchParams(BaseModel):
    keyword: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    max_products: int = 100
    max_pages: int = 10
    include_details: bool = True
    item_ids: List[str] = Field(default_factory=list)  # batch detail jobs only


class JobProgress(BaseModel):
    current_page: int = 0
    total_pages: int = 0
    products_scraped: int = 0
    details_scraped: int = 0
    details_failed: int = 0


class JobResults(BaseModel):
    new_products: int = 0
    updated_products: int = 0
    failed_products: int = 0
    details_scraped: int = 0
    details_failed: int = 0


class JobError(BaseModel):
    phase: JobPhase
    error_type: str
    message: str
    traceback: Optional[str] = None
    screenshot_path: Optional[str] = None
    occurred_at: datetime = Field(default_factory=get_now)

    @property
    def summary(self) -> str:
        return f"{self.phase.value} phase failed: {self.error_type}: {self.message}"


class JobRecord(BaseModel):
    id: str = Field(default_factory=generate_uuid)
    platform: Optional[Platform] = None
    search_type: SearchType = SearchType.KEYWORD
    search_params: SearchParams = Field(default_factory=SearchParams)
    status: JobStatus = JobStatus.PENDING
    progress: JobProgress = Field(default_factory=JobProgress)
    results: JobResults = Field(default_factory=JobResults)
    error: Optional[JobError] = None
    error_summary: Optional[str] = None
    cancel_requested: bool = False
    logs: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=get_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=get_now)
