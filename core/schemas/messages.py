from pydantic import BaseModel, Field
from typing import Dict, Any, Optional

from core.schemas.products import ProductRecord

class ExtractionResult(BaseModel):
    fields: Dict[str, Any] = Field(default_factory=dict)
    completeness_score: int = Field(default=0, ge=0, le=100)

class UpsertOutcome(BaseModel):
    is_new: bool
    product: ProductRecord

class RescrapeOutcome(BaseModel):
    status: str  # scraped, already_detailed, not_found, low_quality, failed
    product: Optional[ProductRecord] = None
    quality: Optional[int] = None
    error: Optional[str] = None
