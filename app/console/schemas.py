from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from core.schemas.enums import Platform, SearchType
from core.schemas.jobs import JobError, JobRecord, SearchParams
from core.schemas.products import ProductRecord


class SearchRequest(BaseModel):
    platform: Optional[str] = None
    keyword: Optional[str] = None
    category_name: Optional[str] = None
    category_id: Optional[str] = None
    max_products: Optional[int] = Field(default=None, ge=1, le=5000)
    max_pages: Optional[int] = Field(default=None, ge=1, le=100)
    include_details: bool = True


class SearchStarted(BaseModel):
    job_id: str
    status: str = "started"


class BatchDetailsRequest(BaseModel):
    item_ids: List[str]


class CancelResponse(BaseModel):
    job_id: str
    cancelled: bool
    status: str


class JobResponse(JobRecord):
    model_config = ConfigDict(from_attributes=True)


class ProductResponse(ProductRecord):
    model_config = ConfigDict(from_attributes=True)


class DetailsResponse(BaseModel):
    status: str
    quality: Optional[int] = None
    product: Optional[ProductResponse] = None


class ProductPage(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int
    limit: int
    pages: int


class NameCount(BaseModel):
    name: Optional[str]
    count: int


class ProductStats(BaseModel):
    total_products: int
    products_with_details: int
    details_percentage: float
    by_platform: List[NameCount] = []
    top_categories: List[NameCount] = []
    top_keywords: List[NameCount] = []


class FailedJobSummary(BaseModel):
    job_id: str
    platform: Optional[Platform]
    search_type: SearchType
    search_params: SearchParams
    error: Optional[JobError]
    error_summary: Optional[str]
    created_at: datetime
    failed_at: Optional[datetime]


class JobDebugResponse(BaseModel):
    job: JobResponse
    error_details: Optional[Dict[str, Any]] = None
